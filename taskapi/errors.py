from typing import Optional


class TaskApiError(Exception):
    """Base class for errors surfaced by the task API"""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class ValidationError(TaskApiError):
    """Missing or malformed input; never reaches the store"""

    status_code = 400


class NotFoundError(TaskApiError):
    """Referenced task does not exist at time of check"""

    status_code = 404

    def __init__(self, task_id: int, message: Optional[str] = None):
        super().__init__(message or f"Task with id {task_id} not found")
        self.task_id = task_id


class StoreError(TaskApiError):
    """Failure acquiring a connection or executing a statement"""

    status_code = 500


class ServerError(TaskApiError):
    """Invariant violation, e.g. a freshly inserted row that cannot be read back"""

    status_code = 500
