"""
kpi/ltv.py

Customer Lifetime Value, composed from the ARPU and churn calculators.

Formula
-------
monthly churn   = (churn_rate / 100) × (30 / churn_period_days)
LTV             = ARPU / monthly churn
months to churn = 1 / monthly churn

Zero churn implies an unbounded lifetime; LTV and months-to-churn are then
reported at fixed ceilings, and any larger or non-finite value is clamped
to the same ceilings.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from kpi.arpu import calculate_arpu
from kpi.churn import calculate_churn_rate
from kpi.normalization import round_2dp
from kpi.results import LTVDependencyResults, LTVResult
from kpi.snapshot import ensure_snapshot, require_period_days, resolve_timestamp

logger = logging.getLogger(__name__)

LTV_CEILING = 1_000_000.0
MONTHS_TO_CHURN_CEILING = 10_000.0
_DAYS_PER_CHURN_MONTH = 30


def _cap(value: float, ceiling: float) -> float:
    if not math.isfinite(value) or value > ceiling:
        return ceiling
    return value


def monthly_churn_fraction(churn_rate: float, churn_period_days: int) -> float:
    """Convert a period churn percentage to a monthly fraction."""
    return (churn_rate / 100) * (_DAYS_PER_CHURN_MONTH / churn_period_days)


def calculate_ltv(
    subscriptions: Sequence[Any],
    *,
    include_trial_subscriptions: bool = False,
    churn_period_days: int = 30,
    currency: str | None = None,
    as_of: datetime | int | None = None,
) -> LTVResult:
    """
    Calculate LTV from ARPU and churn rate over the same snapshot.

    Both dependency results are returned in full under
    ``dependency_results`` for traceability.

    Raises:
        NoDataProvidedError: the snapshot is empty.
        InvalidMetricParameterError: *churn_period_days* is not positive.
    """
    snapshot = ensure_snapshot(subscriptions)
    require_period_days("churn_period_days", churn_period_days)
    now = resolve_timestamp(as_of)

    arpu_result = calculate_arpu(
        snapshot,
        include_trial_subscriptions=include_trial_subscriptions,
        currency=currency,
        as_of=now,
    )
    churn_result = calculate_churn_rate(
        snapshot,
        period_days=churn_period_days,
        currency=currency,
        as_of=now,
    )

    monthly_churn = monthly_churn_fraction(churn_result.churn_rate, churn_period_days)
    if monthly_churn == 0:
        logger.debug("LTV capped: no churn in the %d-day period.", churn_period_days)
        ltv = LTV_CEILING
        months_to_churn = MONTHS_TO_CHURN_CEILING
    else:
        ltv = _cap(round_2dp(arpu_result.arpu / monthly_churn), LTV_CEILING)
        months_to_churn = _cap(round_2dp(1 / monthly_churn), MONTHS_TO_CHURN_CEILING)

    logger.debug(
        "LTV computed: %.2f (ARPU=%.2f / monthly churn=%.6f)",
        ltv,
        arpu_result.arpu,
        monthly_churn,
    )
    return LTVResult(
        ltv=ltv,
        arpu=arpu_result.arpu,
        churn_rate=churn_result.churn_rate,
        retention_rate=churn_result.retention_rate,
        months_to_churn=months_to_churn,
        monthly_churn_rate=round_2dp(monthly_churn * 100),
        currency=arpu_result.currency,
        total_customers=arpu_result.unique_customers + churn_result.new_customers_in_period,
        active_subscriptions=arpu_result.active_subscriptions,
        churned_customers=churn_result.churned_customers_count,
        period=churn_result.period,
        calculated_at=arpu_result.calculated_at,
        dependency_results=LTVDependencyResults(arpu=arpu_result, churn_rate=churn_result),
    )
