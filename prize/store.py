from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

from .models import Prize

logger = logging.getLogger(__name__)

Listener = Callable[[Tuple[Prize, ...]], None]


class PrizeInventoryStore:
    """Process-wide ordered collection of prizes.

    The collection is only ever replaced as a whole, so a snapshot taken with
    ``all()`` can be put back with ``set()`` to undo a change.
    """

    def __init__(self, prizes: Iterable[Prize] = ()):
        self._prizes: Tuple[Prize, ...] = tuple(prizes)
        self._listeners: List[Listener] = []

    def set(self, prizes: Iterable[Prize]) -> None:
        self._prizes = tuple(prizes)
        for listener in list(self._listeners):
            try:
                listener(self._prizes)
            except Exception:
                logger.exception("Prize store listener failed.")

    def all(self) -> Tuple[Prize, ...]:
        return self._prizes

    def available(self) -> Tuple[Prize, ...]:
        return tuple(prize for prize in self._prizes if prize.stock > 0)

    def get(self, prize_id: str) -> Optional[Prize]:
        for prize in self._prizes:
            if prize.id == prize_id:
                return prize
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new collection after every ``set``."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def reset(self) -> None:
        self._prizes = ()
        self._listeners.clear()


@dataclass(frozen=True)
class AppError:
    title: str
    message: str
    details: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_payload(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
        }


class ErrorStore:
    """Holds the last user-facing application error."""

    def __init__(self) -> None:
        self._current: Optional[AppError] = None

    @property
    def current_error(self) -> Optional[AppError]:
        return self._current

    @property
    def has_error(self) -> bool:
        return self._current is not None

    def set_error(self, title: str, message: str, details: Optional[str] = None) -> AppError:
        self._current = AppError(title=title, message=message, details=details)
        return self._current

    def clear_error(self) -> None:
        self._current = None


prize_store = PrizeInventoryStore()
error_store = ErrorStore()


def reset_stores() -> None:
    prize_store.reset()
    error_store.clear_error()
