import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "prize.apps.PrizeConfig",
]

MIDDLEWARE = [
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "gacha_backend.urls"
WSGI_APPLICATION = "gacha_backend.wsgi.application"

# Prize data lives in redis or the spreadsheet API; no relational database.
DATABASES = {}

USE_TZ = True
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "Asia/Tokyo")

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

PRIZE_REMOTE_ENABLED = _env_bool("PRIZE_REMOTE_ENABLED", True)
PRIZE_REMOTE_API_URL = os.getenv("PRIZE_REMOTE_API_URL", "")
PRIZE_REMOTE_TIMEOUT = float(os.getenv("PRIZE_REMOTE_TIMEOUT", "30"))

PRIZE_STORAGE_KEY = os.getenv("PRIZE_STORAGE_KEY", "gacha:prizes")
PRIZE_DATA_SOURCE_KEY = os.getenv("PRIZE_DATA_SOURCE_KEY", "gacha:dataSource")
PRIZE_RESULT_LOG_KEY = os.getenv("PRIZE_RESULT_LOG_KEY", "gacha:results")

# (minimum probability %, tier), strictly decreasing and ending at 0.
PRIZE_RARITY_THRESHOLDS = [
    (30.0, "common"),
    (15.0, "uncommon"),
    (5.0, "rare"),
    (0.0, "legendary"),
]
PRIZE_LOW_STOCK_RATIO = float(os.getenv("PRIZE_LOW_STOCK_RATIO", "0.1"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "prize": {"handlers": ["console"], "level": os.getenv("PRIZE_LOG_LEVEL", "INFO")},
        "gacha_backend": {"handlers": ["console"], "level": os.getenv("PRIZE_LOG_LEVEL", "INFO")},
    },
}
