# taskboard/exceptions/errors.py
from typing import Optional, Dict, Any
from fastapi import HTTPException, status


class TaskAPIError(HTTPException):
    """Base error carrying a machine-readable code alongside the HTTP status"""
    code = "API_ERROR"

    def __init__(
            self,
            status_code: int,
            detail: str,
            code: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail)
        if code:
            self.code = code
        self.details = details


class TaskValidationError(TaskAPIError):
    """Input violates a business rule"""
    def __init__(self, detail: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, "VALIDATION_ERROR", details)


class TaskNotFoundError(TaskAPIError):
    """Task does not exist"""
    def __init__(self, detail: str = "Task not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail, "NOT_FOUND")


class ConflictError(TaskAPIError):
    """Write conflicts with the stored state"""
    def __init__(self, detail: str = "Resource conflict", code: str = "CONFLICT"):
        super().__init__(status.HTTP_409_CONFLICT, detail, code)


class DatabaseError(TaskAPIError):
    """Store failure reported without internal detail"""
    def __init__(self, detail: str = "Database error occurred", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail, "DATABASE_ERROR", details)
