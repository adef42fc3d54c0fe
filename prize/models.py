from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import PrizeValidationError

# Column order of the spreadsheet rows behind the remote backend.
ROW_COLUMNS = (
    "id",
    "name",
    "imageUrl",
    "stock",
    "totalStock",
    "description",
    "order",
    "createdAt",
)


def now_ms() -> int:
    return int(time.time() * 1000)


def new_prize_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Prize:
    """A catalog entry with a finite remaining stock."""

    id: str
    name: str
    image_url: str
    stock: int
    created_at: int
    total_stock: Optional[int] = None
    order: Optional[float] = None
    description: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name} (stock={self.stock})"

    @property
    def capacity(self) -> int:
        return self.total_stock if self.total_stock is not None else self.stock

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "imageUrl": self.image_url,
            "stock": self.stock,
            "totalStock": self.total_stock,
            "order": self.order,
            "createdAt": self.created_at,
        }
        if self.description is not None:
            payload["description"] = self.description
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Prize":
        """Build a record from its JSON form without validating it.

        Stored or remote data is checked by the data initializer after loading,
        so this keeps whatever types it finds.
        """

        return cls(
            id=payload.get("id"),
            name=payload.get("name"),
            image_url=payload.get("imageUrl"),
            stock=payload.get("stock"),
            created_at=payload.get("createdAt"),
            total_stock=payload.get("totalStock"),
            order=payload.get("order"),
            description=payload.get("description"),
        )


def normalize_prize(prize: Prize) -> Prize:
    """Apply the stock and ordering invariants to a loaded or edited record.

    ``stock`` is capped at ``total_stock`` and ``total_stock`` falls back to
    ``stock`` when missing. Negative stock is kept so the integrity check can
    reject it. Records without ``created_at`` get the current
    time, and records without ``order`` sort by their creation time.
    Non-numeric values are left alone for the integrity check to reject.
    """

    if not _is_number(prize.stock):
        return prize

    total_stock = prize.total_stock if _is_number(prize.total_stock) else prize.stock
    stock = min(prize.stock, total_stock)
    created_at = prize.created_at if prize.created_at is not None else now_ms()
    order = prize.order
    if not _is_number(order):
        try:
            order = float(order) if order not in (None, "") else created_at
        except (TypeError, ValueError):
            order = created_at
    return replace(
        prize,
        stock=stock,
        total_stock=total_stock,
        created_at=created_at,
        order=order,
    )


def prize_to_row(prize: Prize) -> List[Any]:
    return [
        prize.id,
        prize.name,
        prize.image_url,
        prize.stock,
        prize.capacity,
        prize.description or "",
        prize.order,
        prize.created_at,
    ]


def prize_from_row(row: List[Any]) -> Prize:
    """Parse one spreadsheet row (header excluded) into a normalized record."""

    if len(row) < len(ROW_COLUMNS):
        raise PrizeValidationError(
            f"Row must have {len(ROW_COLUMNS)} columns, got {len(row)}."
        )
    values = dict(zip(ROW_COLUMNS, row))
    prize_id = str(values["id"]).strip()
    name = str(values["name"]).strip()
    if not prize_id or not name:
        raise PrizeValidationError("Row id and name must not be empty.")
    try:
        stock = max(int(values["stock"]), 0)
        total_stock = max(int(values["totalStock"]), 0) if str(values["totalStock"]).strip() else None
        order = float(values["order"]) if str(values["order"]).strip() else None
        created_at = int(values["createdAt"]) if str(values["createdAt"]).strip() else None
    except (TypeError, ValueError) as exc:
        raise PrizeValidationError(f"Row {prize_id} has a non-numeric field: {exc}") from exc
    description = str(values["description"]).strip() or None
    return normalize_prize(
        Prize(
            id=prize_id,
            name=name,
            image_url=str(values["imageUrl"] or "").strip(),
            stock=stock,
            created_at=created_at,
            total_stock=total_stock,
            order=order,
            description=description,
        )
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PrizeValidationError(f"{key} must be a string.")
    return value


def _optional_int(payload: Mapping[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise PrizeValidationError(f"{key} must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise PrizeValidationError(f"{key} must be an integer.")


def _optional_number(payload: Mapping[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise PrizeValidationError(f"{key} must be a number.")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise PrizeValidationError(f"{key} must be a number.")


@dataclass(frozen=True)
class AddPrizeRequest:
    name: str
    stock: int
    image_url: str = ""
    total_stock: Optional[int] = None
    order: Optional[float] = None
    description: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AddPrizeRequest":
        name = _optional_str(payload, "name")
        if not name or not name.strip():
            raise PrizeValidationError("name must not be empty.")
        stock = _optional_int(payload, "stock")
        if stock is None:
            raise PrizeValidationError("stock is required.")
        return cls(
            name=name.strip(),
            stock=stock,
            image_url=_optional_str(payload, "imageUrl") or "",
            total_stock=_optional_int(payload, "totalStock"),
            order=_optional_number(payload, "order"),
            description=_optional_str(payload, "description"),
        )


@dataclass(frozen=True)
class UpdatePrizeRequest:
    """Partial update; ``None`` means keep the current value."""

    id: str
    name: Optional[str] = None
    image_url: Optional[str] = None
    stock: Optional[int] = None
    total_stock: Optional[int] = None
    order: Optional[float] = None
    description: Optional[str] = None

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, Any], prize_id: Optional[str] = None
    ) -> "UpdatePrizeRequest":
        target = prize_id or _optional_str(payload, "id")
        if not target:
            raise PrizeValidationError("id is required.")
        name = _optional_str(payload, "name")
        if name is not None and not name.strip():
            raise PrizeValidationError("name must not be empty.")
        return cls(
            id=target,
            name=name.strip() if name is not None else None,
            image_url=_optional_str(payload, "imageUrl"),
            stock=_optional_int(payload, "stock"),
            total_stock=_optional_int(payload, "totalStock"),
            order=_optional_number(payload, "order"),
            description=_optional_str(payload, "description"),
        )


@dataclass(frozen=True)
class DrawResultEntry:
    """A single kiosk draw, as recorded in the result log."""

    prize_id: str
    prize_name: str
    remaining_stock: int
    drawn_at: int = field(default_factory=now_ms)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "prizeId": self.prize_id,
            "prizeName": self.prize_name,
            "remainingStock": self.remaining_stock,
            "drawnAt": self.drawn_at,
        }
