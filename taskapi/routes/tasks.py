from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Path, Request, Response, status
from .. import crud
from ..db import Database
from ..schemas import ErrorResponse, TaskCreate, TaskResponse, TaskUpdate

router = APIRouter(prefix="/task", tags=["task"])

# Range of the Integer taskid column
MIN_TASK_ID = -2147483648
MAX_TASK_ID = 2147483647

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_db(request: Request) -> Database:
    """Dependency returning the gateway created at startup"""
    return request.app.state.database


@router.get("", response_model=List[TaskResponse], responses={500: _ERRORS[500]})
async def get_tasks(db: Database = Depends(get_db)):
    """List all tasks, newest first"""
    return await crud.get_tasks(db)


@router.get("/{task_id}", response_model=TaskResponse, responses=_ERRORS)
async def get_task(
    task_id: int = Path(..., ge=MIN_TASK_ID, le=MAX_TASK_ID),
    db: Database = Depends(get_db),
):
    """Get a specific task by ID"""
    return await crud.get_task(db, task_id)


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: _ERRORS[400], 500: _ERRORS[500]},
)
async def create_task(
    request: Request,
    response: Response,
    task: Optional[TaskCreate] = Body(None),
    db: Database = Depends(get_db),
):
    """Create a new task"""
    created = await crud.create_task(db, task)
    response.headers["Location"] = str(request.url_for("get_task", task_id=created.id))
    return created


@router.put("/{task_id}", response_model=TaskResponse, responses=_ERRORS)
async def update_task(
    task_id: int = Path(..., ge=MIN_TASK_ID, le=MAX_TASK_ID),
    task: Optional[TaskUpdate] = Body(None),
    db: Database = Depends(get_db),
):
    """Update a specific task"""
    return await crud.update_task(db, task_id, task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_ERRORS,
)
async def delete_task(
    task_id: int = Path(..., ge=MIN_TASK_ID, le=MAX_TASK_ID),
    db: Database = Depends(get_db),
):
    """Delete a specific task"""
    await crud.delete_task(db, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
