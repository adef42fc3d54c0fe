from __future__ import annotations

import json
import logging
from typing import Any, Dict

import redis
from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .config import DataSource, DataSourceStore, load_config
from .derived import SortKey, SortOrder
from .display import DisplayCriteria, PrizeDisplayService
from .exceptions import (
    BackendError,
    PrizeNotFoundError,
    PrizeUnavailableError,
    PrizeValidationError,
)
from .initializer import initialize_once
from .models import AddPrizeRequest, UpdatePrizeRequest
from .services import DrawResult, build_prize_service
from .store import error_store, prize_store

logger = logging.getLogger(__name__)


def _json_error(message: str, status: int = 400) -> JsonResponse:
    return JsonResponse({"success": False, "error": message}, status=status)


def _parse_body(request) -> Dict[str, Any]:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PrizeValidationError(f"Request body is not valid JSON: {exc}")
    if not isinstance(payload, dict):
        raise PrizeValidationError("Request body must be a JSON object.")
    return payload


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _prize_guard(func):
    def _wrapped(request, *args, **kwargs):
        initialize_once()
        try:
            return func(request, *args, **kwargs)
        except PrizeValidationError as exc:
            return _json_error(str(exc), status=400)
        except PrizeNotFoundError as exc:
            return _json_error(str(exc), status=404)
        except PrizeUnavailableError as exc:
            return _json_error(str(exc), status=409)
        except BackendError as exc:
            return JsonResponse(
                {"success": False, "error": str(exc), "category": exc.category.value},
                status=502,
            )
        except (redis.RedisError, ImproperlyConfigured) as exc:
            return _json_error(f"Redis is not configured or unavailable: {exc}", status=503)

    return _wrapped


@require_http_methods(["GET"])
@_prize_guard
def list_prizes(request):
    try:
        criteria = DisplayCriteria(
            rarities=frozenset(request.GET.getlist("rarity")),
            include_out_of_stock=_parse_bool(request.GET.get("include_out_of_stock", "true")),
            sort_by=SortKey(request.GET.get("sort_by", SortKey.ORDER.value)),
            sort_order=SortOrder(request.GET.get("order", SortOrder.ASC.value)),
        )
    except ValueError as exc:
        raise PrizeValidationError(str(exc))

    items = PrizeDisplayService().get_filtered_sorted(criteria)
    return JsonResponse(
        {"success": True, "count": len(items), "prizes": [item.to_payload() for item in items]},
        json_dumps_params={"ensure_ascii": False},
    )


@require_http_methods(["GET"])
@_prize_guard
def prize_stats(request):
    return JsonResponse({"success": True, "stats": PrizeDisplayService().get_stats().to_payload()})


@csrf_exempt
@require_http_methods(["POST"])
@_prize_guard
def get_prize(request):
    result: DrawResult = build_prize_service().draw()
    return JsonResponse(
        {
            "success": True,
            "prize": result.prize.to_payload(),
            "remainingStock": result.remaining_stock,
        },
        json_dumps_params={"ensure_ascii": False},
    )


@csrf_exempt
@require_http_methods(["POST"])
@_prize_guard
def create_prize(request):
    prize = build_prize_service().add_prize(AddPrizeRequest.from_payload(_parse_body(request)))
    return JsonResponse(
        {"success": True, "prize": prize.to_payload()},
        status=201,
        json_dumps_params={"ensure_ascii": False},
    )


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@_prize_guard
def prize_detail(request, prize_id: str):
    service = build_prize_service()
    if request.method == "DELETE":
        service.delete_prize(prize_id)
        return JsonResponse({"success": True})

    prize = service.update_prize(UpdatePrizeRequest.from_payload(_parse_body(request), prize_id))
    return JsonResponse(
        {"success": True, "prize": prize.to_payload()},
        json_dumps_params={"ensure_ascii": False},
    )


@csrf_exempt
@require_http_methods(["POST"])
def reload_prizes(request):
    app_error = initialize_once(force=True)
    if app_error is not None:
        return JsonResponse({"success": False, "error": app_error.to_payload()}, status=502)
    return JsonResponse({"success": True, "count": len(prize_store.all())})


@require_http_methods(["GET"])
def app_status(request):
    current = error_store.current_error
    return JsonResponse(
        {"success": True, "error": current.to_payload() if current else None},
        json_dumps_params={"ensure_ascii": False},
    )


@csrf_exempt
@require_http_methods(["GET", "POST"])
def data_source(request):
    source_store = DataSourceStore()
    if request.method == "POST":
        try:
            payload = _parse_body(request)
            source = DataSource(payload.get("dataSource"))
        except (PrizeValidationError, ValueError) as exc:
            return _json_error(f"dataSource must be 'local' or 'sheets': {exc}")
        try:
            source_store.set(source)
        except (redis.RedisError, ImproperlyConfigured) as exc:
            return _json_error(f"Redis is not configured or unavailable: {exc}", status=503)
        logger.info("Data source switched to %s.", source.value)
        initialize_once(force=True)

    config = load_config(source_store)
    return JsonResponse(
        {
            "success": True,
            "dataSource": config.data_source.value,
            "remoteConfigured": config.has_remote_api_url,
        }
    )
