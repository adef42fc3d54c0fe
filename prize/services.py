from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, TypeVar

from .backends import LocalPrizeBackend, PrizeBackend
from .config import DataSourceStore, build_backend, load_config
from .exceptions import PrizeNotFoundError, PrizeUnavailableError
from .models import (
    AddPrizeRequest,
    DrawResultEntry,
    Prize,
    UpdatePrizeRequest,
    new_prize_id,
    normalize_prize,
    now_ms,
)
from .store import PrizeInventoryStore, prize_store

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class DrawResult:
    prize: Prize
    remaining_stock: int


class PrizeService:
    """CRUD and stock changes for the prize inventory.

    Every write is applied to the store first so readers see it immediately,
    then confirmed with the backend. If the backend fails, the store is put
    back to the snapshot taken before the write and the error is re-raised.
    """

    def __init__(self, backend: PrizeBackend, store: Optional[PrizeInventoryStore] = None):
        self.backend = backend
        self.store = store if store is not None else prize_store

    def get_prizes(self) -> Tuple[Prize, ...]:
        return self.store.all()

    def add_prize(self, request: AddPrizeRequest) -> Prize:
        snapshot = self.store.all()
        total_stock = request.total_stock if request.total_stock is not None else request.stock
        total_stock = max(0, total_stock)
        prize = Prize(
            id=self._unique_id(snapshot),
            name=request.name,
            image_url=request.image_url,
            stock=min(max(0, request.stock), total_stock),
            created_at=now_ms(),
            total_stock=total_stock,
            order=request.order if request.order is not None else self._next_order(snapshot),
            description=request.description,
        )
        updated = snapshot + (prize,)
        self._commit("add", snapshot, updated, lambda: self.backend.add(prize, updated))
        logger.info("Added prize %s (%s).", prize.id, prize.name)
        return prize

    def update_prize(self, request: UpdatePrizeRequest) -> Prize:
        snapshot = self.store.all()
        index, target = self._find(snapshot, request.id)

        total_stock = request.total_stock if request.total_stock is not None else target.capacity
        total_stock = max(0, total_stock)
        requested_stock = request.stock if request.stock is not None else target.stock
        order = request.order
        if order is None:
            order = target.order if target.order is not None else index + 1

        prize = replace(
            target,
            name=request.name if request.name is not None else target.name,
            image_url=request.image_url if request.image_url is not None else target.image_url,
            description=(
                request.description if request.description is not None else target.description
            ),
            stock=min(max(0, requested_stock), total_stock),
            total_stock=total_stock,
            order=order,
        )
        updated = snapshot[:index] + (prize,) + snapshot[index + 1:]
        changes = self._changes(request, target, prize)
        self._commit(
            "update", snapshot, updated, lambda: self.backend.update(prize, changes, updated)
        )
        return prize

    def delete_prize(self, prize_id: str) -> None:
        snapshot = self.store.all()
        self._find(snapshot, prize_id)
        updated = tuple(prize for prize in snapshot if prize.id != prize_id)
        self._commit("delete", snapshot, updated, lambda: self.backend.delete(prize_id, updated))
        logger.info("Deleted prize %s.", prize_id)

    def decrement_stock(self, prize_id: str) -> int:
        """Take one unit of stock and return the remaining count (never negative)."""

        snapshot = self.store.all()
        index, target = self._find(snapshot, prize_id)
        new_stock = max(0, target.stock - 1)
        updated = snapshot[:index] + (replace(target, stock=new_stock),) + snapshot[index + 1:]
        confirmed = self._commit(
            "decrement",
            snapshot,
            updated,
            lambda: self.backend.decrement_stock(prize_id, new_stock, updated),
        )

        confirmed = min(max(0, confirmed), target.capacity)
        if confirmed != new_stock:
            logger.info(
                "Backend reported stock %s for prize %s (expected %s); adopting it.",
                confirmed,
                prize_id,
                new_stock,
            )
            self.store.set(
                updated[:index] + (replace(target, stock=confirmed),) + updated[index + 1:]
            )
        return confirmed

    def load_prizes(self) -> Tuple[Prize, ...]:
        """Replace the store with the backend's collection.

        On any read failure the store is emptied and the error propagates.
        """

        try:
            prizes = self.backend.load()
        except Exception:
            logger.exception("Failed to load prizes from %s backend.", self.backend.name)
            self.store.set(())
            raise
        self.store.set(normalize_prize(prize) for prize in prizes)
        return self.store.all()

    def draw_prize(self) -> Optional[Prize]:
        """Pick one in-stock prize uniformly at random, or ``None`` if none remain."""

        candidates = self.store.available()
        if not candidates:
            return None
        index = random.randint(0, len(candidates) - 1)
        return candidates[index]

    def draw(self) -> DrawResult:
        """Draw a prize, take it out of stock and record the result."""

        prize = self.draw_prize()
        if prize is None:
            raise PrizeUnavailableError("No prize with remaining stock is available.")

        remaining = self.decrement_stock(prize.id)
        entry = DrawResultEntry(prize_id=prize.id, prize_name=prize.name, remaining_stock=remaining)
        try:
            self.backend.record_result(entry)
        except Exception as exc:
            # The draw itself is already confirmed; only the log entry is lost.
            logger.warning("Failed to record draw result for %s: %s", prize.id, exc)
        return DrawResult(prize=self.store.get(prize.id) or prize, remaining_stock=remaining)

    def _commit(
        self,
        operation: str,
        snapshot: Tuple[Prize, ...],
        updated: Sequence[Prize],
        confirm: Callable[[], T],
    ) -> T:
        self.store.set(updated)
        try:
            return confirm()
        except Exception:
            logger.warning(
                "Backend %s failed during %s; rolling back prize store.",
                self.backend.name,
                operation,
            )
            self.store.set(snapshot)
            raise

    @staticmethod
    def _find(prizes: Sequence[Prize], prize_id: str) -> Tuple[int, Prize]:
        for index, prize in enumerate(prizes):
            if prize.id == prize_id:
                return index, prize
        raise PrizeNotFoundError(prize_id)

    @staticmethod
    def _next_order(prizes: Sequence[Prize]) -> float:
        if not prizes:
            return 1
        return max((prize.order or 0) for prize in prizes) + 1

    @staticmethod
    def _unique_id(prizes: Sequence[Prize]) -> str:
        existing = {prize.id for prize in prizes}
        prize_id = new_prize_id()
        while prize_id in existing:
            prize_id = new_prize_id()
        return prize_id

    @staticmethod
    def _changes(request: UpdatePrizeRequest, target: Prize, prize: Prize) -> Dict[str, Any]:
        """Fields sent to the backend for a partial update, with clamped stock."""

        changes: Dict[str, Any] = {}
        if request.name is not None:
            changes["name"] = prize.name
        if request.image_url is not None:
            changes["imageUrl"] = prize.image_url
        if request.description is not None:
            changes["description"] = prize.description
        if request.stock is not None or request.total_stock is not None:
            changes["stock"] = prize.stock
            changes["totalStock"] = prize.total_stock
        if request.order is not None or target.order is None:
            changes["order"] = prize.order
        return changes


def build_prize_service(store: Optional[PrizeInventoryStore] = None) -> PrizeService:
    """Create a service wired to the backend selected by configuration."""

    config = load_config(DataSourceStore())
    return PrizeService(build_backend(config, LocalPrizeBackend()), store=store)
