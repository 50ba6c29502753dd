"""
tests/conftest.py

Shared fixtures: a fixed clock and a builder for billing-API shaped
subscription records.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

NOW = 1_700_000_000
DAY = 86_400


def build_subscription(
    sub_id: str,
    *,
    status: str = "active",
    customer: str | None = "cus_1",
    created: int = NOW - 200 * DAY,
    canceled_at: int | None = None,
    cancel_at_period_end: bool | None = False,
    unit_amount: int | None = 1000,
    currency: str = "usd",
    interval: str | None = "month",
    interval_count: int = 1,
    quantity: int | None = 1,
    price_id: str = "price_basic",
    nickname: str | None = "Basic",
    items: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Return one subscription dict with a single line item unless *items* is given."""
    if items is None:
        recurring = (
            {"interval": interval, "interval_count": interval_count} if interval else None
        )
        items = [
            {
                "id": f"si_{sub_id}",
                "quantity": quantity,
                "price": {
                    "id": price_id,
                    "nickname": nickname,
                    "unit_amount": unit_amount,
                    "currency": currency,
                    "recurring": recurring,
                },
            }
        ]
    return {
        "id": sub_id,
        "object": "subscription",
        "status": status,
        "customer": customer,
        "created": created,
        "canceled_at": canceled_at,
        "cancel_at_period_end": cancel_at_period_end,
        "items": {"object": "list", "data": items},
    }


@pytest.fixture()
def make_sub() -> Callable[..., dict[str, Any]]:
    return build_subscription
