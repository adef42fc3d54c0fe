from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from django.conf import settings

from .models import Prize

PROBABILITY_DECIMALS = 2

DEFAULT_RARITY_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (30.0, "common"),
    (15.0, "uncommon"),
    (5.0, "rare"),
    (0.0, "legendary"),
)


def calculate_probabilities(prizes: Iterable[Prize]) -> Dict[str, float]:
    """Map each prize id to its draw probability as a percentage.

    Only prizes with stock contribute to the denominator; out-of-stock prizes
    map to ``0``.
    """

    prizes = list(prizes)
    available_total = sum(prize.stock for prize in prizes if prize.stock > 0)
    if available_total <= 0:
        return {prize.id: 0.0 for prize in prizes}
    return {
        prize.id: (
            round(prize.stock / available_total * 100, PROBABILITY_DECIMALS)
            if prize.stock > 0
            else 0.0
        )
        for prize in prizes
    }


class RarityClassifier:
    """Stateless mapping from a probability to a rarity tier.

    ``thresholds`` is a sequence of ``(min_probability, tier)`` pairs with
    strictly decreasing minimums ending at ``0``; a probability belongs to the
    first tier whose minimum it reaches.
    """

    def __init__(self, thresholds: Optional[Sequence[Tuple[float, str]]] = None):
        if thresholds is None:
            thresholds = getattr(settings, "PRIZE_RARITY_THRESHOLDS", DEFAULT_RARITY_THRESHOLDS)
        table = tuple((float(minimum), str(tier)) for minimum, tier in thresholds)
        if not table:
            raise ValueError("Rarity thresholds must not be empty.")
        minimums = [minimum for minimum, _ in table]
        if any(later >= earlier for earlier, later in zip(minimums, minimums[1:])):
            raise ValueError("Rarity thresholds must be strictly decreasing.")
        if minimums[-1] != 0:
            raise ValueError("The last rarity threshold must be 0.")
        self.thresholds = table

    @property
    def tiers(self) -> Tuple[str, ...]:
        return tuple(tier for _, tier in self.thresholds)

    def classify(self, probability: float) -> str:
        for minimum, tier in self.thresholds:
            if probability >= minimum:
                return tier
        return self.thresholds[-1][1]


@dataclass(frozen=True)
class PrizeDisplayInfo:
    prize: Prize
    probability: float
    rarity: str
    is_low_stock: bool

    def to_payload(self) -> dict:
        return {
            "prize": self.prize.to_payload(),
            "probability": self.probability,
            "rarity": self.rarity,
            "isLowStock": self.is_low_stock,
        }


class SortKey(str, Enum):
    STOCK = "stock"
    PROBABILITY = "probability"
    CREATED = "createdAt"
    NAME = "name"
    ORDER = "order"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def filter_by_rarity(
    items: Iterable[PrizeDisplayInfo], rarities: Optional[Iterable[str]]
) -> List[PrizeDisplayInfo]:
    """Keep items in the given tiers; an empty or missing selection keeps all."""

    selected = set(rarities or ())
    if not selected:
        return list(items)
    return [item for item in items if item.rarity in selected]


def filter_by_stock(
    items: Iterable[PrizeDisplayInfo], include_out_of_stock: bool
) -> List[PrizeDisplayInfo]:
    if include_out_of_stock:
        return list(items)
    return [item for item in items if item.prize.stock > 0]


def _sort_value(item: PrizeDisplayInfo, key: SortKey):
    if key is SortKey.STOCK:
        return item.prize.stock
    if key is SortKey.PROBABILITY:
        return item.probability
    if key is SortKey.CREATED:
        return item.prize.created_at
    if key is SortKey.NAME:
        return item.prize.name.casefold()
    return item.prize.order if item.prize.order is not None else 0


def sort_display_info(
    items: Iterable[PrizeDisplayInfo],
    key: SortKey = SortKey.ORDER,
    order: SortOrder = SortOrder.ASC,
) -> List[PrizeDisplayInfo]:
    """Sort by ``key`` in ``order``; ties fall back to ascending order, then id."""

    key = SortKey(key)
    order = SortOrder(order)
    # Python's sort is stable, so the tie-break pass runs first.
    result = sorted(
        items,
        key=lambda item: (
            item.prize.order if item.prize.order is not None else 0,
            item.prize.id,
        ),
    )
    result.sort(key=lambda item: _sort_value(item, key), reverse=order is SortOrder.DESC)
    return result
