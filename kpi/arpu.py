"""
kpi/arpu.py

Average Revenue Per User.

Formula
-------
ARPU = MRR / unique active customers

Zero customers yields ``0.0`` rather than a division error.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from kpi.filters import calculate_unique_customer_count
from kpi.mrr import DEFAULT_CURRENCY, select_revenue_subscriptions, summarize_mrr
from kpi.normalization import round_2dp
from kpi.results import ARPUResult
from kpi.snapshot import ensure_snapshot, isoformat_utc, resolve_timestamp

logger = logging.getLogger(__name__)


def _arpu(total_mrr: float, customer_count: int) -> float:
    if customer_count == 0:
        return 0.0
    return round_2dp(total_mrr / customer_count)


def calculate_arpu(
    subscriptions: Sequence[Any],
    *,
    include_trial_subscriptions: bool = False,
    currency: str | None = None,
    as_of: datetime | int | None = None,
) -> ARPUResult:
    """
    Calculate ARPU over the same filtered set the MRR calculator uses.

    Raises:
        NoDataProvidedError: the snapshot is empty.
    """
    snapshot = ensure_snapshot(subscriptions)
    now = resolve_timestamp(as_of)

    selected = select_revenue_subscriptions(snapshot, include_trial_subscriptions, currency)
    total, breakdown = summarize_mrr(selected)
    unique_customers = calculate_unique_customer_count(selected)
    arpu = _arpu(total, unique_customers)

    logger.debug(
        "ARPU computed: %.2f (MRR=%.2f / %d customers)",
        arpu,
        total,
        unique_customers,
    )
    return ARPUResult(
        arpu=arpu,
        total_mrr=round_2dp(total),
        unique_customers=unique_customers,
        currency=currency or DEFAULT_CURRENCY,
        active_subscriptions=len(selected),
        breakdown=breakdown,
        include_trial_subscriptions=include_trial_subscriptions,
        calculated_at=isoformat_utc(now),
    )
