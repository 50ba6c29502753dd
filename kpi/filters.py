"""
kpi/filters.py

Subscription predicates and per-subscription revenue helpers shared by
every calculator.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from kpi.models import Subscription, SubscriptionItem
from kpi.normalization import normalize_billing_period_to_monthly, round_2dp

_ACTIVE_STATUSES = frozenset({"active", "past_due"})
_TRIAL_STATUS = "trialing"


def is_subscription_active_for_mrr(
    subscription: Subscription,
    include_trials: bool = False,
) -> bool:
    """Active means ``active`` or ``past_due``, plus ``trialing`` when *include_trials*."""
    if subscription.status in _ACTIVE_STATUSES:
        return True
    return include_trials and subscription.status == _TRIAL_STATUS


def matches_currency(subscription: Subscription, currency: str) -> bool:
    """True when at least one line item is priced in *currency* (case-insensitive)."""
    wanted = currency.lower()
    return any(item.price.currency.lower() == wanted for item in subscription.items)


def filter_by_currency(
    subscriptions: Iterable[Subscription],
    currency: str | None,
) -> list[Subscription]:
    if not currency:
        return list(subscriptions)
    return [sub for sub in subscriptions if matches_currency(sub, currency)]


def filter_active(
    subscriptions: Iterable[Subscription],
    include_trials: bool = False,
) -> list[Subscription]:
    return [sub for sub in subscriptions if is_subscription_active_for_mrr(sub, include_trials)]


def calculate_item_mrr(item: SubscriptionItem, quantity: int | None = None) -> float:
    """
    Monthly revenue of one line item, in major currency units.

    One-time prices and prices without an amount contribute ``0``.
    *quantity* overrides the item's own quantity.
    """
    price = item.price
    if not price.unit_amount or price.recurring is None:
        return 0.0

    units = item.quantity if quantity is None else quantity
    amount = (price.unit_amount * units) / 100
    normalization = normalize_billing_period_to_monthly(
        amount,
        price.recurring.interval,
        price.recurring.interval_count,
    )
    return normalization.normalized_monthly_amount


def calculate_subscription_mrr(subscription: Subscription) -> float:
    total = 0.0
    for item in subscription.items:
        total += calculate_item_mrr(item)
    return round_2dp(total)


def calculate_unique_customer_count(subscriptions: Iterable[Subscription]) -> int:
    """Distinct customer ids; records without a customer are not counted."""
    return len({sub.customer for sub in subscriptions if sub.customer})


def get_billing_interval_description(interval: str, interval_count: int = 1) -> str:
    if interval_count == 1:
        return interval
    return f"{interval_count}-{interval}"


def billing_interval_label(subscription: Subscription) -> str:
    """Interval description of the first line item, or ``"unknown"``."""
    if not subscription.items or subscription.items[0].price.recurring is None:
        return "unknown"
    recurring = subscription.items[0].price.recurring
    return get_billing_interval_description(recurring.interval, recurring.interval_count)


def group_subscriptions_by_status(subscriptions: Iterable[Subscription]) -> dict[str, int]:
    breakdown: dict[str, int] = {}
    for sub in subscriptions:
        breakdown[sub.status] = breakdown.get(sub.status, 0) + 1
    return breakdown


def count_active_subscriptions(
    subscriptions: Sequence[Subscription],
    include_trials: bool = False,
) -> int:
    return len(filter_active(subscriptions, include_trials))
