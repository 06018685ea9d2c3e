"""
Domain error taxonomy.

Services raise these; `main.py` turns them into JSON responses. The `detail`
of every error here is safe to show to the caller.
"""
from fastapi import status


class TaskDeskError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal Server Error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(TaskDeskError):
    """Missing or malformed input, including uniqueness violations."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFoundError(TaskDeskError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class AuthorizationError(TaskDeskError):
    """Authenticated but not allowed. Never says why."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class ConflictError(TaskDeskError):
    """A business rule blocks the operation (role in use, open tasks, default role)."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation conflicts with current state"


class UnexpectedError(TaskDeskError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal Server Error"
