import json
from typing import Any, Dict, List, Optional

import redis
import requests

from prize.models import Prize


class InMemoryRedis:
    """The subset of the redis client API used by the prize backends."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, *, fail: bool = False):
        self.data: Dict[str, Any] = dict(data or {})
        self.fail = fail

    def _check(self) -> None:
        if self.fail:
            raise redis.ConnectionError("redis is down")

    def get(self, key: str) -> Optional[str]:
        self._check()
        return self.data.get(key)

    def set(self, key: str, value: str) -> bool:
        self._check()
        self.data[key] = value
        return True

    def delete(self, key: str) -> int:
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    def rpush(self, key: str, value: str) -> int:
        self._check()
        items: List[str] = self.data.setdefault(key, [])
        items.append(value)
        return len(items)


def make_prize(prize_id: str, stock: int, **overrides) -> Prize:
    fields = {
        "id": prize_id,
        "name": f"Prize {prize_id}",
        "image_url": f"/images/{prize_id}.png",
        "stock": stock,
        "created_at": 1_700_000_000_000,
        "total_stock": stock,
        "order": None,
        "description": None,
    }
    fields.update(overrides)
    return Prize(**fields)


def sheets_response(payload: Any, status: int = 200, reason: str = "OK") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response._content = json.dumps(payload).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response
