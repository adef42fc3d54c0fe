from __future__ import annotations

from enum import Enum
from typing import Optional


class PrizeNotFoundError(Exception):
    """Raised when an operation targets a prize id that does not exist."""

    def __init__(self, prize_id: str):
        super().__init__(f"Prize {prize_id!r} was not found.")
        self.prize_id = prize_id


class PrizeValidationError(Exception):
    """Raised for structurally invalid prize input."""


class PrizeUnavailableError(Exception):
    """Raised when no prize can be drawn from stock."""


class BackendErrorCategory(str, Enum):
    NETWORK = "network"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    SCRIPT = "script"
    UNKNOWN = "unknown"


def category_for_status(status: Optional[int]) -> BackendErrorCategory:
    if not status:
        return BackendErrorCategory.UNKNOWN
    if status == 401:
        return BackendErrorCategory.UNAUTHORIZED
    if status == 403:
        return BackendErrorCategory.FORBIDDEN
    if status == 404:
        return BackendErrorCategory.NOT_FOUND
    if status == 429:
        return BackendErrorCategory.RATE_LIMIT
    if status >= 500:
        return BackendErrorCategory.SERVER
    return BackendErrorCategory.UNKNOWN


class BackendError(Exception):
    """Raised when the persistence backend fails or does not confirm a change."""

    def __init__(
        self,
        message: str,
        *,
        category: BackendErrorCategory = BackendErrorCategory.UNKNOWN,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        details: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.category = BackendErrorCategory(category)
        self.status = status
        self.status_text = status_text
        self.details = details
        self.original_error = original_error

    @classmethod
    def from_status(
        cls, status: int, status_text: Optional[str] = None
    ) -> "BackendError":
        return cls(
            f"HTTP error (status code: {status})",
            category=category_for_status(status),
            status=status,
            status_text=status_text or "Unknown error",
            details=status_text or None,
        )
