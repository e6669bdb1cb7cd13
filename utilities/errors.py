"""
Error taxonomy shared by the catalog, accounts and API layers.

Every failure that may reach a caller is raised as one of the LibraryError
subclasses below; the API layer maps them to GraphQL errors.
"""

from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError


class LibraryError(Exception):
    """Base class for caller-visible failures."""

    code = "INTERNAL_SERVER_ERROR"
    user_input = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LibraryError):
    """A field-level constraint was violated (length, required, range)."""

    code = "BAD_USER_INPUT"
    user_input = True

    def __init__(self, message: str, field_errors: Optional[List[str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or []

    @classmethod
    def from_pydantic(cls, message: str, exc: PydanticValidationError) -> "ValidationError":
        """
        Build a ValidationError carrying one message per failed field.

        Args:
            message: Summary message for the caller
            exc: Pydantic validation failure

        Returns:
            ValidationError with per-field messages
        """
        field_errors = []
        for error in exc.errors():
            ctx_error = (error.get("ctx") or {}).get("error")
            text = str(ctx_error) if ctx_error is not None else error["msg"]
            field = ".".join(str(part) for part in error.get("loc", ()))
            field_errors.append(f"{field}: {text}" if field else text)
        return cls(message, field_errors)


class ConflictError(LibraryError):
    """A unique key already exists."""

    code = "CONFLICT"
    user_input = True


class UnauthorizedError(LibraryError):
    """A mutation was attempted without a current user."""

    code = "UNAUTHORIZED"


class NotFoundError(LibraryError):
    """A referenced entity does not exist and cannot be created implicitly."""

    code = "NOT_FOUND"
    user_input = True


class InternalError(LibraryError):
    """Unexpected failure; detail stays in the logs."""

    code = "INTERNAL_SERVER_ERROR"


class InvalidTokenError(Exception):
    """A bearer token is structurally malformed. Never shown to callers."""
