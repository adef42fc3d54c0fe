from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import redis
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from gacha_backend.sheets_client import SheetsClient

from .backends import LocalPrizeBackend, PrizeBackend, RemotePrizeBackend, redis_client

logger = logging.getLogger(__name__)

DATA_SOURCE_KEY = getattr(settings, "PRIZE_DATA_SOURCE_KEY", "gacha:dataSource")


class DataSource(str, Enum):
    LOCAL = "local"
    SHEETS = "sheets"


class DataSourceStore:
    """Persisted operator choice between local storage and the spreadsheet."""

    def __init__(self, client: Optional[redis.Redis] = None, key: Optional[str] = None):
        self._client = client
        self.key = key or DATA_SOURCE_KEY

    def get(self) -> Optional[DataSource]:
        try:
            client = self._client or redis_client()
            stored = client.get(self.key)
        except (redis.RedisError, ImproperlyConfigured) as exc:
            logger.error("Failed to load data source setting: %s", exc)
            return None
        if stored in (DataSource.LOCAL.value, DataSource.SHEETS.value):
            return DataSource(stored)
        return None

    def set(self, source: DataSource) -> None:
        client = self._client or redis_client()
        client.set(self.key, DataSource(source).value)


@dataclass(frozen=True)
class PrizeConfig:
    remote_enabled: bool
    remote_api_url: str

    @property
    def has_remote_api_url(self) -> bool:
        return self.remote_api_url != ""

    @property
    def is_remote_enabled(self) -> bool:
        return self.remote_enabled and self.has_remote_api_url

    @property
    def data_source(self) -> DataSource:
        return DataSource.SHEETS if self.is_remote_enabled else DataSource.LOCAL


def load_config(source_store: Optional[DataSourceStore] = None) -> PrizeConfig:
    """Resolve the effective configuration from settings and the stored choice."""

    remote_enabled = bool(getattr(settings, "PRIZE_REMOTE_ENABLED", True))
    if source_store is not None:
        selected = source_store.get()
        if selected is not None:
            remote_enabled = selected is DataSource.SHEETS
    return PrizeConfig(
        remote_enabled=remote_enabled,
        remote_api_url=(getattr(settings, "PRIZE_REMOTE_API_URL", "") or "").strip(),
    )


def build_backend(config: PrizeConfig, local: LocalPrizeBackend) -> PrizeBackend:
    if config.is_remote_enabled:
        return RemotePrizeBackend(SheetsClient(config.remote_api_url))
    return local
