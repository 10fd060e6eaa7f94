import logging
from typing import Any, Dict, List, Mapping, Optional
from sqlalchemy import bindparam, delete, func, insert, select, update
from .db import Database
from .errors import NotFoundError, ServerError, ValidationError
from .models import task_table
from .schemas import TaskBase, TaskCreate, TaskResponse, TaskUpdate
from .utils import blank_if_none, validate_task_data

logger = logging.getLogger(__name__)

_SELECT_TASKS = select(
    task_table.c.taskid,
    task_table.c.name,
    task_table.c.description,
    task_table.c.status,
    task_table.c.priority,
    task_table.c.created_at,
)

_LIST_TASKS = _SELECT_TASKS.order_by(task_table.c.created_at.desc())

_GET_TASK = _SELECT_TASKS.where(task_table.c.taskid == bindparam("task_id"))

_COUNT_TASK = (
    select(func.count())
    .select_from(task_table)
    .where(task_table.c.taskid == bindparam("task_id"))
)

_INSERT_TASK = insert(task_table).values(
    name=bindparam("task_name"),
    description=bindparam("task_description"),
    status=bindparam("task_status"),
    priority=bindparam("task_priority"),
    created_at=func.now(),
)

_UPDATE_TASK = (
    update(task_table)
    .where(task_table.c.taskid == bindparam("task_id"))
    .values(
        name=bindparam("task_name"),
        description=bindparam("task_description"),
        status=bindparam("task_status"),
        priority=bindparam("task_priority"),
    )
)

_DELETE_TASK = delete(task_table).where(task_table.c.taskid == bindparam("task_id"))


def row_to_task(row: Mapping[str, Any]) -> TaskResponse:
    """Map a task row to the API entity, reading NULL text columns as empty strings"""
    return TaskResponse(
        id=int(row["taskid"]),
        name=row["name"],
        description=blank_if_none(row["description"]),
        status=blank_if_none(row["status"]),
        priority=blank_if_none(row["priority"]),
        created_at=row["created_at"],
    )


def validate_task(task: Optional[TaskBase]) -> TaskBase:
    """Reject a missing body or a blank name before anything touches the store"""
    if task is None:
        raise ValidationError("Task data is required")

    is_valid, message = validate_task_data(task.model_dump())
    if not is_valid:
        raise ValidationError(message)
    return task


def _task_params(task: TaskBase) -> Dict[str, Any]:
    return {
        "task_name": task.name,
        "task_description": blank_if_none(task.description),
        "task_status": blank_if_none(task.status),
        "task_priority": blank_if_none(task.priority),
    }


async def _fetch_task(db: Database, task_id: int) -> Optional[TaskResponse]:
    rows = await db.execute_query(_GET_TASK, {"task_id": task_id})
    if not rows:
        return None
    return row_to_task(rows[0])


async def get_tasks(db: Database) -> List[TaskResponse]:
    """Get all tasks, newest first"""
    rows = await db.execute_query(_LIST_TASKS)
    return [row_to_task(row) for row in rows]


async def get_task(db: Database, task_id: int) -> TaskResponse:
    """Get a task by ID"""
    task = await _fetch_task(db, task_id)
    if task is None:
        raise NotFoundError(task_id)
    return task


async def task_exists(db: Database, task_id: int) -> bool:
    count = await db.execute_scalar(_COUNT_TASK, {"task_id": task_id})
    return count is not None and int(count) > 0


async def create_task(db: Database, task: Optional[TaskCreate]) -> TaskResponse:
    """Create a new task and return it as stored"""
    task = validate_task(task)

    result = await db.execute_non_query(_INSERT_TASK, _task_params(task))
    logger.info("Created task %s", result.inserted_id)

    created = None
    if result.inserted_id is not None:
        created = await _fetch_task(db, result.inserted_id)
    if created is None:
        raise ServerError("Failed to retrieve created task")
    return created


async def update_task(db: Database, task_id: int, task: Optional[TaskUpdate]) -> TaskResponse:
    """Overwrite the mutable fields of a task"""
    task = validate_task(task)

    if not await task_exists(db, task_id):
        raise NotFoundError(task_id)

    params = _task_params(task)
    params["task_id"] = task_id
    await db.execute_non_query(_UPDATE_TASK, params)
    logger.info("Updated task %s", task_id)

    # The row can vanish between the update and this read.
    updated = await _fetch_task(db, task_id)
    if updated is None:
        raise NotFoundError(task_id, f"Task with id {task_id} not found after update")
    return updated


async def delete_task(db: Database, task_id: int) -> None:
    """Delete a task"""
    if not await task_exists(db, task_id):
        raise NotFoundError(task_id)

    await db.execute_non_query(_DELETE_TASK, {"task_id": task_id})
    logger.info("Deleted task %s", task_id)
