"""
Subscription metric calculators.

Every calculator is a pure function of a subscription snapshot and its
keyword parameters. :data:`METRIC_CALCULATORS` maps public metric names to
the calculator that produces them.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from kpi.active_subscribers import analyze_active_subscribers
from kpi.arpu import calculate_arpu
from kpi.churn import calculate_churn_rate
from kpi.errors import (
    InvalidMetricParameterError,
    InvalidSubscriptionDataError,
    MetricsError,
    NoDataProvidedError,
    SubscriptionIntervalError,
    UnsupportedIntervalError,
)
from kpi.expansion import calculate_mrr_expansion
from kpi.ltv import calculate_ltv
from kpi.mrr import calculate_mrr
from kpi.normalization import normalize_billing_period_to_monthly, round_2dp

METRIC_CALCULATORS: dict[str, Callable[..., Any]] = {
    "mrr": calculate_mrr,
    "arpu": calculate_arpu,
    "active_subscribers": analyze_active_subscribers,
    "churn_rate": calculate_churn_rate,
    "ltv": calculate_ltv,
    "mrr_expansion": calculate_mrr_expansion,
}


def get_calculator(metric: str) -> Callable[..., Any]:
    """Return the calculator for *metric* or raise InvalidMetricParameterError."""
    try:
        return METRIC_CALCULATORS[metric]
    except KeyError:
        raise InvalidMetricParameterError(
            f"Unknown metric '{metric}'. Available: {sorted(METRIC_CALCULATORS)}."
        ) from None


__all__ = [
    "METRIC_CALCULATORS",
    "InvalidMetricParameterError",
    "InvalidSubscriptionDataError",
    "MetricsError",
    "NoDataProvidedError",
    "SubscriptionIntervalError",
    "UnsupportedIntervalError",
    "analyze_active_subscribers",
    "calculate_arpu",
    "calculate_churn_rate",
    "calculate_ltv",
    "calculate_mrr",
    "calculate_mrr_expansion",
    "get_calculator",
    "normalize_billing_period_to_monthly",
    "round_2dp",
]
