"""Utility helpers for Potenote."""

from __future__ import annotations

import logging
import os
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger("potenote.utils")


def int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%s. Falling back to %s.", name, raw, default)
        return default


def float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid float for %s=%s. Falling back to %s.", name, raw, default)
        return default


def path_from_env(name: str) -> Optional[Path]:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return Path(value).expanduser()


def str_from_env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today_string(now: Optional[datetime] = None) -> str:
    """Return the ISO calendar date (``YYYY-MM-DD``) used for daily rollovers."""
    return (now or utc_now()).date().isoformat()


def yesterday_string(today: str) -> str:
    return (date.fromisoformat(today) - timedelta(days=1)).isoformat()


def is_stale(last_reset_date: Optional[str], today: str) -> bool:
    """True when a daily counter stamped ``last_reset_date`` belongs to an earlier day."""
    return last_reset_date != today


def new_record_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def parse_timestamp(value: object) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


__all__ = [
    "float_from_env",
    "format_timestamp",
    "int_from_env",
    "is_stale",
    "new_record_id",
    "parse_timestamp",
    "path_from_env",
    "str_from_env",
    "today_string",
    "utc_now",
    "yesterday_string",
]
