"""
kpi/churn.py

Customer churn rate over a trailing period.

Formulas
--------
traditional   churn = churned customers / customers at start × 100
new_business  churn = churned new customers / new customers × 100
              (used when nobody was a customer at period start)
no_customers  churn = 0
Retention     = 100 − churn

Customer cohorts are built by walking every subscription, so a customer
holding subscriptions on both sides of the period start is counted both
"at start" and "acquired in period".
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from kpi.filters import filter_by_currency, get_billing_interval_description
from kpi.models import Subscription
from kpi.normalization import round_2dp
from kpi.results import ChurnCalculationMethod, ChurnedPlan, ChurnRateResult
from kpi.snapshot import (
    PeriodWindow,
    ensure_snapshot,
    isoformat_utc,
    require_period_days,
    resolve_timestamp,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerCohorts:
    at_start: frozenset[str]
    acquired_in_period: frozenset[str]


@dataclass(frozen=True)
class ChurnedSet:
    customers: frozenset[str]
    subscriptions: tuple[Subscription, ...]


def partition_customers(
    subscriptions: Sequence[Subscription],
    window: PeriodWindow,
) -> CustomerCohorts:
    at_start: set[str] = set()
    acquired: set[str] = set()
    for sub in subscriptions:
        if not sub.customer:
            continue
        if sub.created < window.start:
            at_start.add(sub.customer)
        elif window.contains(sub.created):
            acquired.add(sub.customer)
    return CustomerCohorts(at_start=frozenset(at_start), acquired_in_period=frozenset(acquired))


def identify_churned_customers(
    subscriptions: Sequence[Subscription],
    window: PeriodWindow,
) -> ChurnedSet:
    """Canceled subscriptions whose ``canceled_at`` falls inside *window*."""
    churned = tuple(
        sub
        for sub in subscriptions
        if sub.status == "canceled"
        and sub.canceled_at is not None
        and window.contains(sub.canceled_at)
    )
    customers = frozenset(sub.customer for sub in churned if sub.customer)
    return ChurnedSet(customers=customers, subscriptions=churned)


def churn_percentage(customers_at_start: int, churned_customers: int) -> float:
    if customers_at_start == 0:
        return 0.0
    return round_2dp(churned_customers / customers_at_start * 100)


def group_churned_by_reason(subscriptions: Sequence[Subscription]) -> dict[str, int]:
    breakdown: dict[str, int] = {}
    for sub in subscriptions:
        if sub.cancel_at_period_end is True:
            reason = "scheduled_cancellation"
        elif sub.cancel_at_period_end is False:
            reason = "immediate_cancellation"
        else:
            reason = "unknown"
        breakdown[reason] = breakdown.get(reason, 0) + 1
    return breakdown


def _churned_plan_breakdown(subscriptions: Sequence[Subscription]) -> list[ChurnedPlan]:
    plans: dict[str, ChurnedPlan] = {}
    for sub in subscriptions:
        for item in sub.items:
            price = item.price
            existing = plans.get(price.id)
            if existing is not None:
                plans[price.id] = replace(existing, churned_count=existing.churned_count + 1)
                continue
            interval = (
                get_billing_interval_description(
                    price.recurring.interval, price.recurring.interval_count
                )
                if price.recurring
                else "unknown"
            )
            plans[price.id] = ChurnedPlan(
                plan_id=price.id,
                plan_name=price.nickname or None,
                churned_count=1,
                currency=price.currency,
                interval=interval,
            )
    return sorted(plans.values(), key=lambda plan: plan.churned_count, reverse=True)


def _select_churn_rate(
    cohorts: CustomerCohorts,
    churned: ChurnedSet,
) -> tuple[float, ChurnCalculationMethod, int]:
    churned_new = len(churned.customers & cohorts.acquired_in_period)

    if cohorts.at_start:
        rate = churn_percentage(len(cohorts.at_start), len(churned.customers))
        return rate, "traditional", churned_new
    if cohorts.acquired_in_period:
        rate = round_2dp(churned_new / len(cohorts.acquired_in_period) * 100)
        return rate, "new_business", churned_new
    return 0.0, "no_customers", churned_new


def calculate_churn_rate(
    subscriptions: Sequence[Any],
    *,
    period_days: int = 30,
    currency: str | None = None,
    as_of: datetime | int | None = None,
) -> ChurnRateResult:
    """
    Calculate customer churn over the *period_days* ending at *as_of*.

    Raises:
        NoDataProvidedError: the snapshot is empty.
        InvalidMetricParameterError: *period_days* is not positive.
    """
    snapshot = ensure_snapshot(subscriptions)
    require_period_days("period_days", period_days)
    now = resolve_timestamp(as_of)
    window = PeriodWindow.ending_at(now, period_days)

    in_currency = filter_by_currency(snapshot, currency)
    cohorts = partition_customers(in_currency, window)
    churned = identify_churned_customers(in_currency, window)
    churn_rate, method, churned_new = _select_churn_rate(cohorts, churned)
    retention_rate = round_2dp(100 - churn_rate)

    overlap = cohorts.at_start & cohorts.acquired_in_period
    if overlap:
        logger.debug(
            "%d customer(s) counted both at period start and as acquired in period",
            len(overlap),
        )
    logger.debug(
        "Churn rate computed: %.2f%% method=%s (%d churned, %d at start, %d new)",
        churn_rate,
        method,
        len(churned.customers),
        len(cohorts.at_start),
        len(cohorts.acquired_in_period),
    )
    return ChurnRateResult(
        churn_rate=churn_rate,
        retention_rate=retention_rate,
        churned_customers_count=len(churned.customers),
        total_customers_at_start=len(cohorts.at_start),
        new_customers_in_period=len(cohorts.acquired_in_period),
        churned_new_customers=churned_new,
        churned_subscriptions_count=len(churned.subscriptions),
        reason_breakdown=group_churned_by_reason(churned.subscriptions),
        plan_breakdown=_churned_plan_breakdown(churned.subscriptions),
        period=window.to_period(),
        calculation_method=method,
        currency=currency,
        calculated_at=isoformat_utc(now),
    )
