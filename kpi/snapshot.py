"""
kpi/snapshot.py

Snapshot coercion and the calculation clock.

Every calculator enters through :func:`ensure_snapshot`, which rejects an
empty snapshot and validates loosely-typed records before any arithmetic
runs. Period boundaries are derived from a single ``as_of`` instant so a
calculation repeated with the same ``as_of`` is byte-identical.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from kpi.errors import (
    InvalidMetricParameterError,
    InvalidSubscriptionDataError,
    NoDataProvidedError,
    SubscriptionIntervalError,
)
from kpi.models import Subscription
from kpi.results import AnalysisPeriod

SECONDS_PER_DAY = 24 * 60 * 60
# Keeps period starts representable as calendar dates for any valid as_of.
MAX_PERIOD_DAYS = 36_500
# 9999-12-31T23:59:59Z
MAX_TIMESTAMP = 253_402_300_799
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ensure_snapshot(subscriptions: Any) -> list[Subscription]:
    """
    Validate *subscriptions* and return them as :class:`Subscription` models.

    Raises:
        NoDataProvidedError: the snapshot is empty or not a list/tuple.
        SubscriptionIntervalError: a record uses an unsupported billing interval.
        InvalidSubscriptionDataError: a record does not match the schema.
    """
    if not isinstance(subscriptions, Sequence) or isinstance(subscriptions, (str, bytes)):
        raise NoDataProvidedError()
    if len(subscriptions) == 0:
        raise NoDataProvidedError()

    validated: list[Subscription] = []
    for index, record in enumerate(subscriptions):
        if isinstance(record, Subscription):
            validated.append(record)
            continue
        if not isinstance(record, Mapping):
            raise InvalidSubscriptionDataError(
                index, [f"expected an object, got {type(record).__name__}"]
            )
        try:
            validated.append(Subscription.model_validate(dict(record)))
        except ValidationError as exc:
            details = exc.errors()
            errors = [
                f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}"
                for e in details
            ]
            for detail in details:
                if tuple(detail["loc"][-2:]) == ("recurring", "interval"):
                    raise SubscriptionIntervalError(index, detail.get("input"), errors) from exc
            raise InvalidSubscriptionDataError(index, errors) from exc
    return validated


def resolve_timestamp(as_of: datetime | int | float | None) -> int:
    """
    Return *as_of* as whole epoch seconds, defaulting to the current time.

    Raises:
        InvalidMetricParameterError: *as_of* is before the epoch or after year 9999.
    """
    if as_of is None:
        return int(time.time())
    if isinstance(as_of, datetime):
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=timezone.utc)
        timestamp = int(as_of.timestamp())
    else:
        timestamp = int(as_of)
    if not 0 <= timestamp <= MAX_TIMESTAMP:
        raise InvalidMetricParameterError(
            f"as_of must be between 0 and {MAX_TIMESTAMP} epoch seconds, got {timestamp}."
        )
    return timestamp


def isoformat_utc(timestamp: int) -> str:
    """ISO-8601 UTC string with millisecond precision and a ``Z`` suffix."""
    moment = _EPOCH + timedelta(seconds=timestamp)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def require_period_days(name: str, days: int) -> None:
    if not 0 < days <= MAX_PERIOD_DAYS:
        raise InvalidMetricParameterError(
            f"{name} must be between 1 and {MAX_PERIOD_DAYS}, got {days}."
        )


@dataclass(frozen=True)
class PeriodWindow:
    """Epoch-second boundaries of an analysis period ending at ``end``."""

    start: int
    end: int
    days: int

    @classmethod
    def ending_at(cls, end: int, days: int) -> "PeriodWindow":
        return cls(start=end - days * SECONDS_PER_DAY, end=end, days=days)

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp <= self.end

    def to_period(self) -> AnalysisPeriod:
        return AnalysisPeriod(
            start_date=isoformat_utc(self.start),
            end_date=isoformat_utc(self.end),
            days=self.days,
        )
