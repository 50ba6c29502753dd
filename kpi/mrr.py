"""
kpi/mrr.py

Monthly Recurring Revenue.

Formula
-------
MRR = Σ monthly-normalised (unit_amount × quantity / 100)
      over every line item of every active subscription

Billing periods are normalised per :mod:`kpi.normalization`. Each
subscription's MRR is rounded before it is added to the total, and the
total is rounded again.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from kpi.filters import (
    billing_interval_label,
    calculate_subscription_mrr,
    filter_active,
    filter_by_currency,
)
from kpi.models import Subscription
from kpi.normalization import round_2dp
from kpi.results import MRRResult, SubscriptionMRR
from kpi.snapshot import ensure_snapshot, isoformat_utc, resolve_timestamp

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "usd"


def select_revenue_subscriptions(
    subscriptions: Sequence[Subscription],
    include_trial_subscriptions: bool,
    currency: str | None,
) -> list[Subscription]:
    """Active subscriptions (optionally with trials) restricted to *currency*."""
    active = filter_active(subscriptions, include_trial_subscriptions)
    return filter_by_currency(active, currency)


def summarize_mrr(
    subscriptions: Sequence[Subscription],
) -> tuple[float, list[SubscriptionMRR]]:
    """
    Return the unrounded sum of per-subscription MRR and the breakdown rows.

    The sum is left unrounded because ARPU divides it before rounding.
    """
    total = 0.0
    breakdown: list[SubscriptionMRR] = []
    for subscription in subscriptions:
        subscription_mrr = calculate_subscription_mrr(subscription)
        total += subscription_mrr
        breakdown.append(
            SubscriptionMRR(
                subscription_id=subscription.id,
                customer_id=subscription.customer,
                customer_mrr=subscription_mrr,
                billing_interval=billing_interval_label(subscription),
            )
        )
    return total, breakdown


def calculate_mrr(
    subscriptions: Sequence[Any],
    *,
    include_trial_subscriptions: bool = False,
    currency: str | None = None,
    as_of: datetime | int | None = None,
) -> MRRResult:
    """
    Calculate MRR over the active subscriptions of a snapshot.

    Parameters
    ----------
    subscriptions:
        Non-empty snapshot of subscription records (dicts or models).
    include_trial_subscriptions:
        Count ``trialing`` subscriptions as active.
    currency:
        Keep only subscriptions with at least one item in this currency.
    as_of:
        Calculation instant; defaults to now.

    Returns
    -------
    MRRResult
        ``total_mrr`` is ``0.0`` when nothing survives the filters.

    Raises
    ------
    NoDataProvidedError
        The snapshot is empty.
    """
    snapshot = ensure_snapshot(subscriptions)
    now = resolve_timestamp(as_of)

    selected = select_revenue_subscriptions(snapshot, include_trial_subscriptions, currency)
    total, breakdown = summarize_mrr(selected)
    total_mrr = round_2dp(total)

    logger.debug(
        "MRR computed from %d of %d subscriptions: %.2f",
        len(selected),
        len(snapshot),
        total_mrr,
    )
    return MRRResult(
        total_mrr=total_mrr,
        currency=currency or DEFAULT_CURRENCY,
        active_subscriptions=len(selected),
        breakdown=breakdown,
        include_trial_subscriptions=include_trial_subscriptions,
        calculated_at=isoformat_utc(now),
    )
