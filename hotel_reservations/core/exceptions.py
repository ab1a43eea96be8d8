"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code = "internal_error"

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
        code: str | None = None,
    ) -> None:
        if code:
            self.code = code
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Malformed or illogical input."""

    code = "validation_error"

    # Reason codes for stay requests
    INVALID_RANGE = "invalid_range"
    PAST_DATE = "past_date"
    INVALID_GUEST_COUNT = "invalid_guest_count"

    def __init__(
        self,
        detail: str = "Validation failed",
        errors: list[dict[str, Any]] | None = None,
        code: str | None = None,
    ) -> None:
        self.errors = errors
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail, code=code
        )


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "not_found"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        self.resource = resource
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    code = "authentication_failed"

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    code = "forbidden"

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class RoomUnavailable(AppException):
    """An active booking already holds one of the rooms for an overlapping range."""

    code = "room_unavailable"

    def __init__(
        self,
        detail: str = "One or more selected rooms are no longer available for the selected dates",
        room_ids: list[str] | None = None,
    ) -> None:
        self.room_ids = room_ids or []
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class TransitionError(AppException):
    """Illegal status move for a booking or order."""

    code = "invalid_transition"

    def __init__(self, current: str, target: str, entity: str = "booking") -> None:
        self.current = current
        self.target = target
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invalid {entity} transition: {current} → {target}",
        )


class TransientConflict(AppException):
    """Lock or transaction contention; the caller may retry."""

    code = "transient_conflict"

    def __init__(self, detail: str = "The rooms are busy, please retry", retry_after: int = 1) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            headers={"Retry-After": str(retry_after)},
        )


class PersistenceError(AppException):
    """Storage unreachable or failed. Never retried on the write path."""

    code = "persistence_error"

    def __init__(self, detail: str = "Storage failure") -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
