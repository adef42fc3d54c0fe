from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .backends import LocalPrizeBackend
from .config import DataSourceStore, PrizeConfig, build_backend, load_config
from .exceptions import BackendError, BackendErrorCategory
from .models import Prize
from .services import PrizeService
from .store import AppError, ErrorStore, PrizeInventoryStore, error_store, prize_store

logger = logging.getLogger(__name__)

LOAD_ERROR_TITLE = "Data load error"

_CATEGORY_MESSAGES = {
    BackendErrorCategory.NETWORK: (
        "Cannot reach the spreadsheet because of a network or CORS problem. "
        "Check that requests to the spreadsheet API are not being blocked."
    ),
    BackendErrorCategory.UNAUTHORIZED: (
        "Authentication is required. Sign in with your organization account and reload."
    ),
    BackendErrorCategory.FORBIDDEN: (
        "Access was denied by the Apps Script sharing settings. "
        "Redeploy the script so that it is available to the intended users."
    ),
    BackendErrorCategory.NOT_FOUND: (
        "The Apps Script URL or sheet name was not found. "
        "Check that the configured API URL points to the latest deployment."
    ),
    BackendErrorCategory.RATE_LIMIT: (
        "The Apps Script execution quota was reached. Wait a few minutes and try again."
    ),
    BackendErrorCategory.SERVER: (
        "Google is having a temporary problem. Retry later or check the Apps Script logs."
    ),
    BackendErrorCategory.SCRIPT: (
        "The Apps Script raised an exception. Check the script code and its execution logs."
    ),
}
_DEFAULT_REMOTE_MESSAGE = (
    "Could not load data from the spreadsheet. See the details for more information."
)

_CATEGORY_LABELS = {
    BackendErrorCategory.NETWORK: "Network/CORS problem",
    BackendErrorCategory.UNAUTHORIZED: "Authentication error (401)",
    BackendErrorCategory.FORBIDDEN: "Permission denied (403)",
    BackendErrorCategory.NOT_FOUND: "URL or resource not found (404)",
    BackendErrorCategory.RATE_LIMIT: "Execution quota exceeded (429)",
    BackendErrorCategory.SERVER: "Google-side failure (5xx)",
    BackendErrorCategory.SCRIPT: "Apps Script internal error",
    BackendErrorCategory.UNKNOWN: "Unknown",
}


def check_data_integrity(prizes: Iterable[Prize]) -> bool:
    """Return True when every record has the fields the kiosk relies on."""

    for prize in prizes:
        if not isinstance(prize.id, str) or not prize.id:
            return False
        if not isinstance(prize.name, str) or not prize.name:
            return False
        if not isinstance(prize.image_url, str):
            return False
        if not _is_number(prize.stock) or prize.stock < 0:
            return False
        if not _is_number(prize.created_at):
            return False
    return True


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class DataInitializer:
    """Startup load of the prize collection.

    Loads through the prize service, empties everything if the loaded data
    fails the integrity check, and turns load failures into a user-facing
    ``AppError`` instead of raising.
    """

    def __init__(
        self,
        service: PrizeService,
        local_backend: LocalPrizeBackend,
        config: PrizeConfig,
        store: Optional[PrizeInventoryStore] = None,
        errors: Optional[ErrorStore] = None,
    ):
        self.service = service
        self.local_backend = local_backend
        self.config = config
        self.store = store if store is not None else prize_store
        self.errors = errors if errors is not None else error_store

    def initialize(self) -> Optional[AppError]:
        try:
            self.service.load_prizes()
        except Exception as exc:
            logger.error("Failed to initialize prize data: %s", exc)
            self.store.set(())
            message, details = self.build_error_payload(exc)
            return self.errors.set_error(LOAD_ERROR_TITLE, message, details)

        loaded = self.store.all()
        if loaded and not check_data_integrity(loaded):
            logger.error("Data integrity check failed. Initializing with empty data.")
            self.clear_data()
        return None

    def clear_data(self) -> None:
        self.store.set(())
        try:
            self.local_backend.clear()
        except BackendError as exc:
            logger.error("Failed to clear local prize data: %s", exc)

    def build_error_payload(self, error: BaseException) -> Tuple[str, str]:
        if not self.config.is_remote_enabled:
            source = "local storage"
            return (
                f"Could not load data from {source}.",
                "\n".join(
                    [
                        f"Internal message: {error}",
                        f"Data source: {source}",
                        f"Timestamp: {_timestamp()}",
                    ]
                ),
            )
        return self._user_facing_message(error), self._error_details(error)

    @staticmethod
    def _user_facing_message(error: BaseException) -> str:
        if not isinstance(error, BackendError):
            return _DEFAULT_REMOTE_MESSAGE
        return _CATEGORY_MESSAGES.get(error.category, _DEFAULT_REMOTE_MESSAGE)

    def _error_details(self, error: BaseException) -> str:
        lines: List[str] = [f"Internal message: {error}"]
        if isinstance(error, BackendError):
            lines.append(f"Detected cause: {_CATEGORY_LABELS[error.category]}")
            if error.status:
                status_text = f" {error.status_text}" if error.status_text else ""
                lines.append(f"HTTP status: {error.status}{status_text}")
            if error.details:
                lines.append(f"Apps Script details: {error.details}")
        lines.extend(
            [
                "Data source: spreadsheet",
                f"API URL: {self.config.remote_api_url or '(not set)'}",
                f"Timestamp: {_timestamp()}",
                "Checklist:",
                "- Is the latest Apps Script deployment URL configured?",
                "- Are you signed in with the organization account?",
                "- Is script.google.com reachable from this network?",
            ]
        )
        return "\n".join(lines)


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


_initialized = False


def build_initializer() -> DataInitializer:
    local = LocalPrizeBackend()
    config = load_config(DataSourceStore())
    service = PrizeService(build_backend(config, local))
    return DataInitializer(service, local, config)


def initialize_once(force: bool = False) -> Optional[AppError]:
    """Run the startup load the first time it is called in this process."""

    global _initialized
    if _initialized and not force:
        return error_store.current_error
    _initialized = True
    error_store.clear_error()
    return build_initializer().initialize()


def reset_initialization() -> None:
    global _initialized
    _initialized = False
