"""Departure-time helpers shared by the matrix builder, detail calculator and clients."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def localize(value: datetime, tz_name: str) -> datetime:
    """Attach the configured timezone to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(tz_name))
    return value


def ensure_future_departure(
    departure: datetime,
    *,
    now: datetime,
    margin_minutes: float,
    offset_minutes: float = 0.0,
) -> datetime:
    """Return ``departure + offset`` advanced to at least ``now + margin``.

    When the requested time is too early the leg keeps its offset relative to
    the earliest allowed departure, so later legs stay later.
    """
    earliest = now + timedelta(minutes=margin_minutes)
    candidate = departure + timedelta(minutes=offset_minutes)
    if candidate < earliest:
        adjusted = earliest + timedelta(minutes=offset_minutes)
        logger.info(
            f"Departure time {candidate.isoformat()} is not far enough in the future, "
            f"adjusted to {adjusted.isoformat()}"
        )
        return adjusted
    return candidate
