"""
kpi/expansion.py

Estimated MRR expansion.

No subscription change history is available, so expansion is inferred from
the current snapshot with fixed heuristics:

* upgrade: an active subscription created inside the period whose
  MRR exceeds 50 is assumed to have replaced a plan worth
  ``max(MRR × 0.6, 20)``.
* quantity_increase: a line item with quantity > 1 is assumed to have
  started at quantity 1.

Expansion Rate = expansion MRR / starting MRR × 100, where starting MRR is
the MRR of every active subscription analysed. The figures are an
estimate, not a ledger-accurate movement.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from kpi.filters import (
    calculate_item_mrr,
    calculate_subscription_mrr,
    filter_active,
    filter_by_currency,
)
from kpi.models import Subscription
from kpi.mrr import DEFAULT_CURRENCY
from kpi.normalization import round_2dp
from kpi.results import ExpansionEvent, MRRExpansionResult, PlanChangeDetails
from kpi.snapshot import (
    PeriodWindow,
    ensure_snapshot,
    isoformat_utc,
    require_period_days,
    resolve_timestamp,
)

logger = logging.getLogger(__name__)

UPGRADE_MRR_THRESHOLD = 50.0
UPGRADE_PRIOR_MRR_FACTOR = 0.6
UPGRADE_PRIOR_MRR_FLOOR = 20.0


def _group_by_customer(
    subscriptions: Sequence[Subscription],
) -> dict[str | None, list[Subscription]]:
    grouped: dict[str | None, list[Subscription]] = {}
    for sub in subscriptions:
        grouped.setdefault(sub.customer, []).append(sub)
    return grouped


def _detect_upgrade(
    subscription: Subscription,
    subscription_mrr: float,
    window: PeriodWindow,
) -> ExpansionEvent | None:
    if not window.contains(subscription.created):
        return None
    if subscription_mrr <= UPGRADE_MRR_THRESHOLD:
        return None

    estimated_old_mrr = max(subscription_mrr * UPGRADE_PRIOR_MRR_FACTOR, UPGRADE_PRIOR_MRR_FLOOR)
    first_item = subscription.items[0] if subscription.items else None
    return ExpansionEvent(
        subscription_id=subscription.id,
        customer_id=subscription.customer,
        old_mrr=estimated_old_mrr,
        new_mrr=subscription_mrr,
        expansion_amount=subscription_mrr - estimated_old_mrr,
        change_type="upgrade",
        plan_details=PlanChangeDetails(
            new_plan=(first_item.price.nickname or first_item.price.id) if first_item else None,
            new_quantity=first_item.quantity if first_item else None,
        ),
        change_date=isoformat_utc(subscription.created),
    )


def _detect_quantity_increases(subscription: Subscription) -> list[ExpansionEvent]:
    events: list[ExpansionEvent] = []
    for item in subscription.items:
        if item.quantity <= 1:
            continue
        base_mrr = calculate_item_mrr(item, 1)
        total_mrr = calculate_item_mrr(item, item.quantity)
        increase = total_mrr - base_mrr
        if increase <= 0:
            continue
        events.append(
            ExpansionEvent(
                subscription_id=subscription.id,
                customer_id=subscription.customer,
                old_mrr=base_mrr,
                new_mrr=total_mrr,
                expansion_amount=increase,
                change_type="quantity_increase",
                plan_details=PlanChangeDetails(
                    new_plan=item.price.nickname or item.price.id,
                    old_quantity=1,
                    new_quantity=item.quantity,
                ),
                change_date=isoformat_utc(subscription.created),
            )
        )
    return events


def _rounded(event: ExpansionEvent) -> ExpansionEvent:
    return replace(
        event,
        old_mrr=round_2dp(event.old_mrr),
        new_mrr=round_2dp(event.new_mrr),
        expansion_amount=round_2dp(event.expansion_amount),
    )


def calculate_mrr_expansion(
    subscriptions: Sequence[Any],
    *,
    period_days: int = 30,
    currency: str | None = None,
    as_of: datetime | int | None = None,
) -> MRRExpansionResult:
    """
    Estimate MRR expansion over the *period_days* ending at *as_of*.

    Raises:
        NoDataProvidedError: the snapshot is empty.
        InvalidMetricParameterError: *period_days* is not positive.
    """
    snapshot = ensure_snapshot(subscriptions)
    require_period_days("period_days", period_days)
    now = resolve_timestamp(as_of)
    window = PeriodWindow.ending_at(now, period_days)

    active = filter_active(filter_by_currency(snapshot, currency))

    events: list[ExpansionEvent] = []
    starting_mrr = 0.0
    for customer_subscriptions in _group_by_customer(active).values():
        for subscription in customer_subscriptions:
            subscription_mrr = calculate_subscription_mrr(subscription)
            starting_mrr += subscription_mrr

            upgrade = _detect_upgrade(subscription, subscription_mrr, window)
            if upgrade is not None:
                events.append(upgrade)
            events.extend(_detect_quantity_increases(subscription))

    expansion_total = sum(event.expansion_amount for event in events)
    total_upgrades = len(events)

    expansion_rate = (
        round_2dp(expansion_total / starting_mrr * 100) if starting_mrr > 0 else 0.0
    )
    average_per_upgrade = (
        round_2dp(expansion_total / total_upgrades) if total_upgrades > 0 else 0.0
    )
    expansion_mrr = round_2dp(expansion_total)

    logger.debug(
        "MRR expansion estimated: %.2f from %d events (starting MRR=%.2f, rate=%.2f%%)",
        expansion_mrr,
        total_upgrades,
        starting_mrr,
        expansion_rate,
    )
    return MRRExpansionResult(
        expansion_mrr=expansion_mrr,
        expansion_rate=expansion_rate,
        total_upgrades=total_upgrades,
        total_downgrades=0,
        net_expansion=expansion_mrr,
        average_expansion_per_upgrade=average_per_upgrade,
        starting_mrr=round_2dp(starting_mrr),
        currency=currency or DEFAULT_CURRENCY,
        period=window.to_period(),
        expansion_breakdown=[_rounded(event) for event in events],
        calculated_at=isoformat_utc(now),
    )
