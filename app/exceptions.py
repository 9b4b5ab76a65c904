from typing import Dict, List, Optional

from fastapi import HTTPException, status


class APIError(HTTPException):
    """HTTPException whose extra keys are merged into the error envelope."""

    def __init__(self, status_code: int, message: str, headers: Optional[Dict[str, str]] = None, **extra):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.extra = extra


class ValidationFailedError(APIError):
    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            message=message,
            errors=errors,
        )


class BadRequestError(APIError):
    def __init__(self, message: str, **extra):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, message=message, **extra)


class NotFoundError(APIError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, message=message)


class UnauthorizedError(APIError):
    def __init__(self, message: str = "Not authorized to access this route", **extra):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            message=message,
            headers={"WWW-Authenticate": "Bearer"},
            **extra,
        )


class ForbiddenError(APIError):
    def __init__(self, role: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            message=f"User role {role} is not authorized to access this route",
        )


class DuplicateEmailError(APIError):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            message="User already exists with this email address",
        )


class ConflictError(APIError):
    """A unique field (registration number, plate number, ...) is already taken."""

    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, message=message)


class ServerError(APIError):
    def __init__(self, message: str = "Server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, message=message)


def format_validation_errors(errors) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into [{field, message}] for the error envelope."""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"field": ".".join(loc), "message": message})
    return formatted
