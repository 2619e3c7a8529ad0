"""Exception taxonomy for the booking client."""

from __future__ import annotations

from typing import Any, Optional


class BookingClientError(Exception):
    """Base class for every error raised by this package."""


class ApiError(BookingClientError):
    """The backend could not be reached or answered with an error status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class AuthenticationRequired(ApiError):
    """401 from the backend, or an authenticated call made without a token."""

    def __init__(self, message: str = "Authentication required. Please log in.", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ValidationFailed(BookingClientError):
    """Local form validation failed; nothing was sent to the server."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"Validation failed: {', '.join(errors)}")
        self.errors = errors


class AvailabilityUnknown(BookingClientError):
    """Every availability strategy failed for a room."""

    def __init__(self, room_id: int, failures: list[tuple[str, Exception]]) -> None:
        names = ", ".join(name for name, _ in failures) or "none"
        super().__init__(f"Could not determine availability for room {room_id} (tried: {names})")
        self.room_id = room_id
        self.failures = failures
