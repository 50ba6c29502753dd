"""
kpi/active_subscribers.py

Active-subscriber analysis: counts, status mix, growth and plan distribution.

Growth Rate = new / existing × 100, where "new" means an active subscription
created within the growth window. With no existing subscriptions the rate is
``0`` by convention, even though that understates growth from zero.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from kpi.filters import (
    calculate_unique_customer_count,
    filter_active,
    filter_by_currency,
    group_subscriptions_by_status,
)
from kpi.models import Subscription
from kpi.normalization import round_2dp
from kpi.results import ActiveSubscribersResult, GrowthMetrics, PlanCount
from kpi.snapshot import (
    SECONDS_PER_DAY,
    ensure_snapshot,
    isoformat_utc,
    require_period_days,
    resolve_timestamp,
)

logger = logging.getLogger(__name__)


def calculate_subscription_growth_metrics(
    subscriptions: Sequence[Subscription],
    period_days: int,
    now: int,
) -> GrowthMetrics:
    cutoff = now - period_days * SECONDS_PER_DAY
    new_subscriptions = sum(1 for sub in subscriptions if sub.created >= cutoff)
    existing_subscriptions = len(subscriptions) - new_subscriptions

    if existing_subscriptions == 0:
        growth_rate = 0.0
    else:
        growth_rate = round_2dp(new_subscriptions / existing_subscriptions * 100)

    return GrowthMetrics(
        new_subscriptions=new_subscriptions,
        existing_subscriptions=existing_subscriptions,
        growth_rate=growth_rate,
        period_days=period_days,
    )


def _plan_breakdown(subscriptions: Sequence[Subscription]) -> list[PlanCount]:
    counts: dict[str, int] = {}
    details: dict[str, tuple[str | None, str, str]] = {}
    for subscription in subscriptions:
        for item in subscription.items:
            price = item.price
            if price.id not in counts:
                interval = price.recurring.interval if price.recurring else "unknown"
                details[price.id] = (price.nickname or None, price.currency, interval)
                counts[price.id] = 0
            counts[price.id] += 1

    plans = [
        PlanCount(
            plan_id=plan_id,
            plan_name=details[plan_id][0],
            count=count,
            currency=details[plan_id][1],
            interval=details[plan_id][2],
        )
        for plan_id, count in counts.items()
    ]
    # sorted() is stable, so ties keep first-seen order.
    return sorted(plans, key=lambda plan: plan.count, reverse=True)


def analyze_active_subscribers(
    subscriptions: Sequence[Any],
    *,
    include_trial_subscriptions: bool = False,
    currency: str | None = None,
    growth_period_days: int = 30,
    as_of: datetime | int | None = None,
) -> ActiveSubscribersResult:
    """
    Analyse the active subscriber base of a snapshot.

    The status breakdown covers every currency-matching subscription,
    active or not; every other figure covers active subscriptions only.

    Raises:
        NoDataProvidedError: the snapshot is empty.
        InvalidMetricParameterError: *growth_period_days* is not positive.
    """
    snapshot = ensure_snapshot(subscriptions)
    require_period_days("growth_period_days", growth_period_days)
    now = resolve_timestamp(as_of)

    in_currency = filter_by_currency(snapshot, currency)
    status_breakdown = group_subscriptions_by_status(in_currency)
    active = filter_active(in_currency, include_trial_subscriptions)

    growth = calculate_subscription_growth_metrics(active, growth_period_days, now)
    unique_customers = calculate_unique_customer_count(active)

    logger.debug(
        "Active subscribers: %d subscriptions, %d customers, %d new in %d days",
        len(active),
        unique_customers,
        growth.new_subscriptions,
        growth_period_days,
    )
    return ActiveSubscribersResult(
        total_active_subscriptions=len(active),
        unique_active_customers=unique_customers,
        status_breakdown=status_breakdown,
        growth=growth,
        plan_breakdown=_plan_breakdown(active),
        include_trial_subscriptions=include_trial_subscriptions,
        currency=currency,
        calculated_at=isoformat_utc(now),
    )
