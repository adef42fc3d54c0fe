from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import redis
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from gacha_backend.sheets_client import SheetsClient

from .exceptions import BackendError, BackendErrorCategory
from .models import DrawResultEntry, Prize

logger = logging.getLogger(__name__)

STORAGE_KEY = getattr(settings, "PRIZE_STORAGE_KEY", "gacha:prizes")
RESULT_LOG_KEY = getattr(settings, "PRIZE_RESULT_LOG_KEY", "gacha:results")


def redis_client() -> redis.Redis:
    redis_url = getattr(settings, "REDIS_URL", None)
    if not redis_url:
        raise ImproperlyConfigured("REDIS_URL is not configured in settings.")
    return redis.Redis.from_url(redis_url, decode_responses=True)


class PrizeBackend(ABC):
    """Durable storage behind the in-memory prize collection.

    Write methods receive both the single change and the full resulting
    collection; each variant persists whichever it needs. Any failure must be
    raised as ``BackendError`` so the caller can roll back.
    """

    name = "backend"

    @abstractmethod
    def load(self) -> List[Prize]:
        ...

    @abstractmethod
    def add(self, prize: Prize, prizes: Sequence[Prize]) -> None:
        ...

    @abstractmethod
    def update(self, prize: Prize, changes: Dict[str, Any], prizes: Sequence[Prize]) -> None:
        ...

    @abstractmethod
    def delete(self, prize_id: str, prizes: Sequence[Prize]) -> None:
        ...

    @abstractmethod
    def decrement_stock(self, prize_id: str, new_stock: int, prizes: Sequence[Prize]) -> int:
        """Persist a decrement and return the confirmed remaining stock."""

    @abstractmethod
    def record_result(self, entry: DrawResultEntry) -> None:
        ...


class LocalPrizeBackend(PrizeBackend):
    """Write-through storage of the whole collection under one redis key."""

    name = "local"

    def __init__(self, client: Optional[redis.Redis] = None, key: Optional[str] = None):
        self._client = client
        self.key = key or STORAGE_KEY

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis_client()
        return self._client

    def get(self) -> Optional[List[Dict[str, Any]]]:
        """Return the stored payloads, or ``None`` when absent or unreadable."""

        raw = self._call(self.client.get, self.key)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Stored prize data under %s is corrupted: %s", self.key, exc)
            return None
        if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
            logger.warning("Stored prize data under %s is not a list of records.", self.key)
            return None
        return payload

    def set(self, prizes: Sequence[Prize]) -> None:
        data = json.dumps([prize.to_payload() for prize in prizes], ensure_ascii=False)
        self._call(self.client.set, self.key, data)

    def clear(self) -> None:
        self._call(self.client.delete, self.key)

    def load(self) -> List[Prize]:
        stored = self.get()
        if stored is None:
            return []
        return [Prize.from_payload(item) for item in stored]

    def add(self, prize: Prize, prizes: Sequence[Prize]) -> None:
        self.set(prizes)

    def update(self, prize: Prize, changes: Dict[str, Any], prizes: Sequence[Prize]) -> None:
        self.set(prizes)

    def delete(self, prize_id: str, prizes: Sequence[Prize]) -> None:
        self.set(prizes)

    def decrement_stock(self, prize_id: str, new_stock: int, prizes: Sequence[Prize]) -> int:
        self.set(prizes)
        return new_stock

    def record_result(self, entry: DrawResultEntry) -> None:
        self._call(
            self.client.rpush,
            RESULT_LOG_KEY,
            json.dumps(entry.to_payload(), ensure_ascii=False),
        )

    def _call(self, method, *args):
        try:
            return method(*args)
        except redis.RedisError as exc:
            logger.exception("Redis access error on %s: %s", self.key, exc)
            raise BackendError(
                f"Redis access error: {exc}",
                category=BackendErrorCategory.UNKNOWN,
                original_error=exc,
            ) from exc


class RemotePrizeBackend(PrizeBackend):
    """Spreadsheet API storage; each change is sent as one action."""

    name = "sheets"

    def __init__(self, client: SheetsClient):
        self.client = client

    def load(self) -> List[Prize]:
        prizes = []
        for item in self.client.get_prizes():
            if not isinstance(item, dict):
                raise BackendError(
                    f"Malformed prize entry in spreadsheet response: {item!r}",
                    category=BackendErrorCategory.UNKNOWN,
                )
            prizes.append(Prize.from_payload(item))
        return prizes

    def add(self, prize: Prize, prizes: Sequence[Prize]) -> None:
        self.client.add_prize(prize.to_payload())

    def update(self, prize: Prize, changes: Dict[str, Any], prizes: Sequence[Prize]) -> None:
        self.client.update_prize({"id": prize.id, **changes})

    def delete(self, prize_id: str, prizes: Sequence[Prize]) -> None:
        self.client.delete_prize(prize_id)

    def decrement_stock(self, prize_id: str, new_stock: int, prizes: Sequence[Prize]) -> int:
        return self.client.decrement_stock(prize_id)

    def record_result(self, entry: DrawResultEntry) -> None:
        self.client.log_result(entry.to_payload())
