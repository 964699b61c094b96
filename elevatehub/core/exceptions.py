# elevatehub/core/exceptions.py
# Error taxonomy. Every member is an HTTPException, so services raise them
# exactly where they would raise HTTPException and FastAPI maps the status.
from typing import Dict, List, Optional
from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: Optional[str] = None

    def __init__(
        self,
        detail: str,
        errors: Optional[List[Dict[str, str]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=self.status_code_default, detail=detail, headers=headers)
        self.errors = errors


class ValidationError(AppError):
    """Malformed or missing input; `errors` holds the field-level detail."""
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls("Validation failed", errors=[{"field": field, "message": message}])


class AuthenticationError(AppError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_FAILED"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AppError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code_default = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InvalidStateError(AppError):
    """The entity exists but its lifecycle state does not allow the operation."""
    status_code_default = status.HTTP_409_CONFLICT
    code = "INVALID_STATE"
