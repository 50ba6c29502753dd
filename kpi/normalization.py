"""
kpi/normalization.py

Billing-period normalization and the shared rounding rule.

Conversion factors
------------------
day   → amount / interval_count * 30.44   (average days per month)
week  → amount / interval_count * 4.33    (average weeks per month)
month → amount / interval_count
year  → amount / (interval_count * 12)

Every derived metric is rounded with :func:`round_2dp`. Downstream
formulas compose already-rounded intermediates, so the rounding points are
part of the contract and must not move.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from kpi.errors import InvalidMetricParameterError, UnsupportedIntervalError

DAYS_PER_MONTH = 30.44
WEEKS_PER_MONTH = 4.33
MONTHS_PER_YEAR = 12

SUPPORTED_INTERVALS = ("day", "week", "month", "year")


@dataclass(frozen=True)
class BillingPeriodNormalization:
    """Monthly equivalent of one billing amount."""

    original_amount: float
    original_interval: str
    original_interval_count: int
    normalized_monthly_amount: float


def round_2dp(value: float) -> float:
    """
    Round to 2 decimal places, half away from zero on the scaled value.

    Non-finite values are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    scaled = math.floor(abs(value) * 100 + 0.5)
    return math.copysign(scaled, value) / 100


def normalize_billing_period_to_monthly(
    amount: float,
    interval: str,
    interval_count: int = 1,
) -> BillingPeriodNormalization:
    """
    Convert *amount* billed every *interval_count* *interval*s to a monthly amount.

    Raises:
        UnsupportedIntervalError: *interval* is not day, week, month or year.
        InvalidMetricParameterError: *interval_count* is below 1.
    """
    if interval not in SUPPORTED_INTERVALS:
        raise UnsupportedIntervalError(interval)
    if interval_count < 1:
        raise InvalidMetricParameterError(
            f"interval_count must be >= 1, got {interval_count}."
        )

    if interval == "day":
        monthly = (amount / interval_count) * DAYS_PER_MONTH
    elif interval == "week":
        monthly = (amount / interval_count) * WEEKS_PER_MONTH
    elif interval == "month":
        monthly = amount / interval_count
    else:
        monthly = amount / (interval_count * MONTHS_PER_YEAR)

    return BillingPeriodNormalization(
        original_amount=amount,
        original_interval=interval,
        original_interval_count=interval_count,
        normalized_monthly_amount=round_2dp(monthly),
    )
