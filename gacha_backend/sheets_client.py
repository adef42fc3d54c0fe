import logging
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings
from requests import RequestException

from prize.exceptions import BackendError, BackendErrorCategory

logger = logging.getLogger(__name__)


class SheetsClient:
    """
    Client for the spreadsheet-backed prize API.

    The endpoint answers ``GET`` with the whole prize collection and ``POST``
    with one action per write (``add``, ``update``, ``delete``, ``decrement``,
    ``logResult``). Every call is a single round trip and every failure is
    raised as a categorized ``BackendError``:

    - non-2xx status: category derived from the status code.
    - connection failures and timeouts: ``network``.
    - a body carrying an ``error`` field: ``script``.
    - a body missing the fields that confirm the action: ``unknown``.
    """

    def __init__(self, api_url: str, *, timeout: Optional[float] = None):
        self.api_url = api_url
        self.timeout = (
            timeout if timeout is not None else getattr(settings, "PRIZE_REMOTE_TIMEOUT", 30)
        )

    def get_prizes(self) -> List[Dict[str, Any]]:
        data = self._send("GET")
        prizes = data.get("prizes")
        if not isinstance(prizes, list):
            raise BackendError(
                "Prize list missing from spreadsheet response.",
                category=BackendErrorCategory.UNKNOWN,
            )
        return prizes

    def add_prize(self, prize: Dict[str, Any]) -> Dict[str, Any]:
        data = self._send("POST", {"action": "add", "data": prize})
        if not data.get("success") or not data.get("prize"):
            raise self._not_confirmed("add")
        return data["prize"]

    def update_prize(self, changes: Dict[str, Any]) -> None:
        data = self._send("POST", {"action": "update", "data": changes})
        if not data.get("success"):
            raise self._not_confirmed("update")

    def delete_prize(self, prize_id: str) -> None:
        data = self._send("POST", {"action": "delete", "id": prize_id})
        if not data.get("success"):
            raise self._not_confirmed("delete")

    def decrement_stock(self, prize_id: str) -> int:
        data = self._send("POST", {"action": "decrement", "id": prize_id})
        new_stock = data.get("newStock")
        if not data.get("success") or new_stock is None:
            raise self._not_confirmed("decrement")
        try:
            return int(new_stock)
        except (TypeError, ValueError):
            raise BackendError(
                f"Spreadsheet returned a non-numeric stock value: {new_stock!r}",
                category=BackendErrorCategory.UNKNOWN,
            )

    def log_result(self, entry: Dict[str, Any]) -> None:
        data = self._send("POST", {"action": "logResult", "data": entry})
        if not data.get("success"):
            raise self._not_confirmed("logResult")

    def _send(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        action = payload.get("action") if payload else "list"
        try:
            if method == "GET":
                response = requests.get(self.api_url, timeout=self.timeout)
            else:
                response = requests.post(self.api_url, json=payload, timeout=self.timeout)
        except RequestException as exc:
            logger.exception("HTTP error when reaching spreadsheet API (%s): %s", action, exc)
            raise BackendError(
                f"Network error: {exc}",
                category=BackendErrorCategory.NETWORK,
                original_error=exc,
            ) from exc

        if not response.ok:
            logger.error(
                "Spreadsheet API returned status %s for %s.", response.status_code, action
            )
            raise BackendError.from_status(response.status_code, response.reason)

        try:
            data = response.json()
        except ValueError as exc:
            logger.exception("Failed to decode spreadsheet API response JSON: %s", exc)
            raise BackendError(
                f"Invalid response from spreadsheet API ({exc}).",
                category=BackendErrorCategory.UNKNOWN,
                original_error=exc,
            ) from exc

        if not isinstance(data, dict):
            raise BackendError(
                "Unexpected spreadsheet API response shape.",
                category=BackendErrorCategory.UNKNOWN,
            )
        if data.get("error"):
            logger.error("Spreadsheet script error during %s: %s", action, data["error"])
            raise BackendError(
                f"Apps Script error: {data['error']}",
                category=BackendErrorCategory.SCRIPT,
                details=str(data["error"]),
            )
        return data

    @staticmethod
    def _not_confirmed(action: str) -> BackendError:
        logger.error("Spreadsheet API did not confirm %s.", action)
        return BackendError(
            f"Spreadsheet did not confirm the {action} request.",
            category=BackendErrorCategory.UNKNOWN,
        )
