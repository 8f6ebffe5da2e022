# iaschool/core/exceptions.py
"""Custom exceptions for the IA School application."""
from fastapi import HTTPException
from typing import Any, Dict, Iterable, Optional


class IASchoolException(HTTPException):
    """Base exception for IA School application."""
    def __init__(
        self,
        status_code: int,
        detail: Any,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class NotFoundError(IASchoolException):
    """Exception raised when a resource does not exist in the caller's school."""
    def __init__(self, resource: str, id: Any = None):
        message = f"{resource} not found"
        if id is not None:
            message += f" with id: {id}"
        super().__init__(
            status_code=404,
            detail={"error": "Not Found", "message": message}
        )


class SchoolNotFound(NotFoundError):
    def __init__(self):
        super().__init__("School")


class AuthenticationError(IASchoolException):
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(
            status_code=401,
            detail={"error": "Unauthorized", "message": message},
            headers={"WWW-Authenticate": "Bearer"}
        )


class PermissionDenied(IASchoolException):
    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            status_code=403,
            detail={"error": "Forbidden", "message": message}
        )


class AccountLocked(IASchoolException):
    def __init__(self, minutes_remaining: int):
        super().__init__(
            status_code=423,
            detail={
                "error": "Account Locked",
                "message": f"Account locked. Try again in {minutes_remaining} minutes",
                "minutes_remaining": minutes_remaining
            }
        )


class BadRequestError(IASchoolException):
    """Exception raised when a business rule rejects the request."""
    def __init__(self, message: str, **extra):
        detail = {"error": "Bad Request", "message": message}
        detail.update(extra)
        super().__init__(status_code=400, detail=detail)


class ConflictError(IASchoolException):
    """Exception raised when duplicate data is found."""
    def __init__(self, message: str, **extra):
        detail = {"error": "Conflict", "message": message}
        detail.update(extra)
        super().__init__(status_code=409, detail=detail)


class InvalidTransition(IASchoolException):
    """Exception raised when a status change is not in the allowed table."""
    def __init__(self, entity: str, current: str, target: str, allowed: Iterable[str] = ()):
        super().__init__(
            status_code=409,
            detail={
                "error": "Invalid Transition",
                "message": f"{entity} cannot move from {current} to {target}",
                "entity": entity,
                "from": current,
                "to": target,
                "allowed": sorted(allowed)
            }
        )


class ExternalServiceError(IASchoolException):
    """Exception raised when a delegated service (AI, email, storage) fails."""
    def __init__(self, service: str, message: str):
        super().__init__(
            status_code=502,
            detail={"error": "External Service Error", "service": service, "message": message}
        )
