from __future__ import annotations

from typing import Optional


class CourtBookingError(Exception):
    """Base class for every error raised by this package."""


class SelectionError(CourtBookingError):
    """A selection change was rejected locally; the cart is left untouched."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ApiError(CourtBookingError):
    """Displayable failure translated from the booking API boundary."""

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "code": self.code,
            "status": self.status,
            "retryable": self.retryable,
        }


class NetworkError(ApiError):
    retryable = True


class SlotUnavailableError(ApiError):
    """A selected slot was taken between fetching the grid and submitting.

    The caller should ask the user to pick again instead of resending the
    same request.
    """

    retryable = True


class AuthenticationError(ApiError):
    pass
