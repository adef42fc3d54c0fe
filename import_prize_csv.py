#!/usr/bin/env python3
"""
Standalone importer for the gacha prize inventory.

Reads a CSV exported from the prize spreadsheet (columns id, name, imageUrl,
stock, totalStock, description, order, createdAt; the first row is the header)
and replaces the prize collection stored in the local redis backend.
"""

import argparse
import csv
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "gacha_backend.settings")
django.setup()

import redis  # noqa: E402
from django.core.exceptions import ImproperlyConfigured  # noqa: E402

from prize.backends import LocalPrizeBackend  # noqa: E402
from prize.exceptions import BackendError, PrizeValidationError  # noqa: E402
from prize.models import ROW_COLUMNS, Prize, prize_from_row  # noqa: E402

EXPECTED_HEADERS: Sequence[str] = ROW_COLUMNS


def _read_env_redis_url(base_dir: Path) -> Optional[str]:
    env_path = base_dir / ".env"
    if not env_path.exists():
        return None
    try:
        for raw in env_path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.upper().startswith("REDIS_URL="):
                return line.split("=", 1)[1].strip().strip('"').strip("'")
    except OSError:
        return None
    return None


def _validate_headers(header: List[str]) -> None:
    normalized = [f.strip() for f in header]
    if normalized != list(EXPECTED_HEADERS):
        raise ValueError(
            f"CSV header must exactly match {list(EXPECTED_HEADERS)}, got {normalized}"
        )


def read_prizes(reader, *, stderr=None) -> List[Prize]:
    """Parse data rows, skipping invalid or duplicate ones with a message."""

    stderr = stderr or sys.stderr
    prizes: List[Prize] = []
    seen = set()
    for line_no, row in enumerate(reader, start=2):
        if not any(cell.strip() for cell in row):
            continue
        try:
            prize = prize_from_row(row)
        except PrizeValidationError as exc:
            print(f"Skipping line {line_no}: {exc}", file=stderr)
            continue
        if prize.id in seen:
            print(f"Skipping line {line_no}: duplicate id {prize.id}.", file=stderr)
            continue
        seen.add(prize.id)
        prizes.append(prize)
    return prizes


def main(argv: Optional[Sequence[str]] = None) -> int:
    base_dir = Path(__file__).resolve().parent

    parser = argparse.ArgumentParser(
        description="Reload the local prize collection from a CSV file."
    )
    parser.add_argument(
        "--csv-path",
        default="Resources/prizes.csv",
        help="Path to CSV file (default: Resources/prizes.csv)",
    )
    parser.add_argument(
        "--redis-url",
        dest="redis_url",
        help="Redis URL, e.g. redis://localhost:6379/0 (default: settings/.env)",
    )
    parser.add_argument(
        "--encoding",
        default="utf-8-sig",
        help="CSV encoding (default: utf-8-sig)",
    )
    parser.add_argument(
        "--delimiter",
        default=",",
        help="CSV delimiter (default: ,)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse CSV only, do not touch redis.",
    )

    args = parser.parse_args(argv)

    csv_path = Path(args.csv_path).expanduser()
    if not csv_path.exists():
        print(f"CSV file not found: {csv_path}", file=sys.stderr)
        return 2

    try:
        with csv_path.open("r", encoding=args.encoding, newline="") as handle:
            reader = csv.reader(handle, delimiter=args.delimiter)
            header = next(reader, None)
            if not header:
                print("CSV header row is missing.", file=sys.stderr)
                return 2
            _validate_headers(header)
            prizes = read_prizes(reader)
    except UnicodeDecodeError as exc:
        print(
            f"Failed to decode CSV. Consider using --encoding. Details: {exc}",
            file=sys.stderr,
        )
        return 2
    except (OSError, ValueError, csv.Error) as exc:
        print(f"Failed to read CSV: {exc}", file=sys.stderr)
        return 2

    if args.dry_run:
        print(f"Dry-run: parsed {len(prizes)} rows.")
        return 0

    redis_url = args.redis_url or _read_env_redis_url(base_dir)
    client = redis.Redis.from_url(redis_url, decode_responses=True) if redis_url else None
    backend = LocalPrizeBackend(client=client)
    try:
        backend.set(prizes)
    except (BackendError, ImproperlyConfigured) as exc:
        print(f"Failed to import data: {exc}", file=sys.stderr)
        return 3

    print(f"Imported {len(prizes)} prizes into `{backend.key}` from {csv_path}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
