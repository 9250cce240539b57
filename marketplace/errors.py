"""
Domain error taxonomy.

Every error is an HTTPException so services can raise it directly and FastAPI
renders it; ``code`` gives clients a stable machine-readable reason.
"""

from typing import Optional

from fastapi import HTTPException


class DomainError(HTTPException):
    status_code = 400
    code = "domain_error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": message},
        )

    def __str__(self) -> str:
        return self.message


class NotFound(DomainError):
    """Contract, workspace or milestone absent or not visible to the caller"""

    status_code = 404
    code = "not_found"


class InvalidTransition(DomainError):
    """Action not permitted from the aggregate's current state"""

    status_code = 409
    code = "invalid_transition"


class AccessDenied(DomainError):
    """Actor identity does not match the stored party reference"""

    status_code = 403
    code = "access_denied"


class DependencyFailure(DomainError):
    """Storage write failed; safe to retry with the same identity"""

    status_code = 503
    code = "dependency_failure"


class ValidationFailure(DomainError):
    """Malformed phase amounts or missing required contract fields"""

    status_code = 422
    code = "validation_failure"
