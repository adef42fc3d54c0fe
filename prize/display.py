from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from django.conf import settings

from .derived import (
    PrizeDisplayInfo,
    RarityClassifier,
    SortKey,
    SortOrder,
    calculate_probabilities,
    filter_by_rarity,
    filter_by_stock,
    sort_display_info,
)
from .exceptions import PrizeNotFoundError
from .models import Prize
from .store import PrizeInventoryStore, prize_store


@dataclass(frozen=True)
class PrizeStats:
    total_count: int
    available_count: int
    out_of_stock_count: int
    remaining_stock: int
    total_stock_capacity: int

    def to_payload(self) -> dict:
        return {
            "totalCount": self.total_count,
            "availableCount": self.available_count,
            "outOfStockCount": self.out_of_stock_count,
            "remainingStock": self.remaining_stock,
            "totalStockCapacity": self.total_stock_capacity,
        }


@dataclass(frozen=True)
class DisplayCriteria:
    rarities: FrozenSet[str] = field(default_factory=frozenset)
    include_out_of_stock: bool = True
    sort_by: SortKey = SortKey.ORDER
    sort_order: SortOrder = SortOrder.ASC


class PrizeDisplayService:
    """Read-only view models computed from the current store contents.

    Nothing here is cached: every call recomputes from the store, so results
    always reflect the latest write or rollback.
    """

    def __init__(
        self,
        store: Optional[PrizeInventoryStore] = None,
        classifier: Optional[RarityClassifier] = None,
        low_stock_ratio: Optional[float] = None,
    ):
        self.store = store if store is not None else prize_store
        self.classifier = classifier or RarityClassifier()
        self.low_stock_ratio = (
            low_stock_ratio
            if low_stock_ratio is not None
            else getattr(settings, "PRIZE_LOW_STOCK_RATIO", 0.1)
        )

    def get_display_info(self, prize_id: str) -> PrizeDisplayInfo:
        prizes = self.store.all()
        prize = next((p for p in prizes if p.id == prize_id), None)
        if prize is None:
            raise PrizeNotFoundError(prize_id)
        return self._build(prize, calculate_probabilities(prizes).get(prize_id, 0.0))

    def get_all_display_info(self) -> List[PrizeDisplayInfo]:
        prizes = self.store.all()
        probabilities = calculate_probabilities(prizes)
        return [self._build(prize, probabilities.get(prize.id, 0.0)) for prize in prizes]

    def get_filtered_sorted(self, criteria: Optional[DisplayCriteria] = None) -> List[PrizeDisplayInfo]:
        criteria = criteria or DisplayCriteria()
        items = self.get_all_display_info()
        items = filter_by_rarity(items, criteria.rarities)
        items = filter_by_stock(items, criteria.include_out_of_stock)
        return sort_display_info(items, criteria.sort_by, criteria.sort_order)

    def get_stats(self) -> PrizeStats:
        prizes = self.store.all()
        return PrizeStats(
            total_count=len(prizes),
            available_count=sum(1 for p in prizes if p.stock > 0),
            out_of_stock_count=sum(1 for p in prizes if p.stock == 0),
            remaining_stock=sum(p.stock for p in prizes),
            total_stock_capacity=sum(p.capacity for p in prizes),
        )

    def is_low_stock(self, prize: Prize) -> bool:
        denominator = prize.capacity
        ratio = prize.stock / denominator if denominator > 0 else 1
        return prize.stock > 0 and ratio <= self.low_stock_ratio

    def _build(self, prize: Prize, probability: float) -> PrizeDisplayInfo:
        return PrizeDisplayInfo(
            prize=prize,
            probability=probability,
            rarity=self.classifier.classify(probability),
            is_low_stock=self.is_low_stock(prize),
        )
