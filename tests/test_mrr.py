"""
tests/test_mrr.py

Unit tests for the MRR and ARPU calculators and their shared filters.

Pure Python, fixed ``as_of`` clock, no I/O.
"""

from __future__ import annotations

import pytest

from conftest import NOW, build_subscription
from kpi.arpu import calculate_arpu
from kpi.errors import NoDataProvidedError, UnsupportedIntervalError
from kpi.filters import (
    calculate_item_mrr,
    calculate_unique_customer_count,
    get_billing_interval_description,
    is_subscription_active_for_mrr,
)
from kpi.models import Subscription
from kpi.mrr import calculate_mrr


@pytest.fixture()
def mixed_snapshot() -> list[dict]:
    """cus_1 pays 40.00/month; cus_2 is trialing a 50.00/month annual plan."""
    return [
        build_subscription("sub_a", customer="cus_1", unit_amount=2000, quantity=2),
        build_subscription(
            "sub_b",
            status="trialing",
            customer="cus_2",
            unit_amount=60000,
            interval="year",
            price_id="price_annual",
        ),
        build_subscription("sub_c", status="canceled", customer="cus_3", unit_amount=9900),
        build_subscription("sub_d", status="incomplete", customer="cus_4", unit_amount=9900),
    ]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TestFilters:
    @pytest.mark.parametrize(
        ("status", "include_trials", "expected"),
        [
            ("active", False, True),
            ("past_due", False, True),
            ("trialing", False, False),
            ("trialing", True, True),
            ("canceled", True, False),
            ("unpaid", False, False),
            ("paused", True, False),
        ],
    )
    def test_active_for_mrr(self, status, include_trials, expected) -> None:
        sub = Subscription.model_validate(build_subscription("s", status=status))
        assert is_subscription_active_for_mrr(sub, include_trials) is expected

    def test_item_without_amount_contributes_zero(self) -> None:
        sub = Subscription.model_validate(build_subscription("s", unit_amount=None))
        assert calculate_item_mrr(sub.items[0]) == 0.0

    def test_one_time_item_contributes_zero(self) -> None:
        sub = Subscription.model_validate(build_subscription("s", interval=None))
        assert calculate_item_mrr(sub.items[0]) == 0.0

    def test_quantity_override(self) -> None:
        sub = Subscription.model_validate(build_subscription("s", unit_amount=1500, quantity=4))
        assert calculate_item_mrr(sub.items[0]) == 60.0
        assert calculate_item_mrr(sub.items[0], 1) == 15.0

    def test_unique_customers_skip_missing(self) -> None:
        subs = [
            Subscription.model_validate(build_subscription("a", customer="cus_1")),
            Subscription.model_validate(build_subscription("b", customer="cus_1")),
            Subscription.model_validate(build_subscription("c", customer=None)),
        ]
        assert calculate_unique_customer_count(subs) == 1

    @pytest.mark.parametrize(
        ("interval", "count", "expected"),
        [("month", 1, "month"), ("month", 3, "3-month"), ("week", 2, "2-week")],
    )
    def test_interval_description(self, interval, count, expected) -> None:
        assert get_billing_interval_description(interval, count) == expected


# ---------------------------------------------------------------------------
# MRR
# ---------------------------------------------------------------------------


class TestCalculateMRR:
    def test_excludes_trials_by_default(self, mixed_snapshot) -> None:
        result = calculate_mrr(mixed_snapshot, as_of=NOW)
        assert result.total_mrr == 40.0
        assert result.active_subscriptions == 1
        assert [row.subscription_id for row in result.breakdown] == ["sub_a"]

    def test_includes_trials_when_requested(self, mixed_snapshot) -> None:
        result = calculate_mrr(mixed_snapshot, include_trial_subscriptions=True, as_of=NOW)
        assert result.total_mrr == 90.0
        assert result.active_subscriptions == 2
        assert result.include_trial_subscriptions is True

    def test_breakdown_rows(self, mixed_snapshot) -> None:
        result = calculate_mrr(mixed_snapshot, include_trial_subscriptions=True, as_of=NOW)
        annual = result.breakdown[1]
        assert annual.customer_id == "cus_2"
        assert annual.customer_mrr == 50.0
        assert annual.billing_interval == "year"

    def test_multi_count_interval_label(self) -> None:
        result = calculate_mrr(
            [build_subscription("q", unit_amount=3000, interval_count=3)], as_of=NOW
        )
        assert result.total_mrr == 10.0
        assert result.breakdown[0].billing_interval == "3-month"

    def test_currency_filter_is_case_insensitive(self) -> None:
        subs = [
            build_subscription("usd", unit_amount=1000),
            build_subscription("eur", unit_amount=5000, currency="eur"),
        ]
        result = calculate_mrr(subs, currency="USD", as_of=NOW)
        assert result.total_mrr == 10.0
        assert result.currency == "USD"

    def test_currency_defaults_to_usd(self, mixed_snapshot) -> None:
        assert calculate_mrr(mixed_snapshot, as_of=NOW).currency == "usd"

    def test_multiple_items_are_summed(self) -> None:
        items = [
            {"price": {"id": "p1", "unit_amount": 1000, "currency": "usd",
                       "recurring": {"interval": "month"}}, "quantity": 1},
            {"price": {"id": "p2", "unit_amount": 12000, "currency": "usd",
                       "recurring": {"interval": "year"}}, "quantity": 2},
        ]
        result = calculate_mrr([build_subscription("multi", items=items)], as_of=NOW)
        assert result.total_mrr == 30.0

    def test_no_active_subscriptions_yields_zero(self) -> None:
        result = calculate_mrr([build_subscription("c", status="canceled")], as_of=NOW)
        assert result.total_mrr == 0.0
        assert result.active_subscriptions == 0
        assert result.breakdown == []

    def test_calculated_at_follows_as_of(self, mixed_snapshot) -> None:
        assert calculate_mrr(mixed_snapshot, as_of=NOW).calculated_at == "2023-11-14T22:13:20.000Z"

    def test_empty_snapshot_raises(self) -> None:
        with pytest.raises(NoDataProvidedError):
            calculate_mrr([])

    def test_unsupported_interval_propagates(self) -> None:
        subs = [build_subscription("ok"), build_subscription("hourly", interval="hour")]
        with pytest.raises(UnsupportedIntervalError) as exc_info:
            calculate_mrr(subs, as_of=NOW)
        assert exc_info.value.interval == "hour"
        assert exc_info.value.index == 1


# ---------------------------------------------------------------------------
# ARPU
# ---------------------------------------------------------------------------


class TestCalculateARPU:
    def test_divides_by_unique_customers(self, mixed_snapshot) -> None:
        result = calculate_arpu(mixed_snapshot, as_of=NOW)
        assert result.arpu == 40.0
        assert result.unique_customers == 1

    def test_trials_join_the_denominator(self, mixed_snapshot) -> None:
        result = calculate_arpu(mixed_snapshot, include_trial_subscriptions=True, as_of=NOW)
        assert result.total_mrr == 90.0
        assert result.unique_customers == 2
        assert result.arpu == 45.0

    def test_customer_with_many_subscriptions_counts_once(self) -> None:
        subs = [
            build_subscription("a", customer="cus_1", unit_amount=2000),
            build_subscription("b", customer="cus_1", unit_amount=2000),
            build_subscription("c", customer="cus_2", unit_amount=2000),
        ]
        result = calculate_arpu(subs, as_of=NOW)
        assert result.active_subscriptions == 3
        assert result.arpu == 30.0

    def test_rounds_the_quotient(self) -> None:
        subs = [
            build_subscription("a", customer="cus_1", unit_amount=3333),
            build_subscription("b", customer="cus_2", unit_amount=3333),
            build_subscription("c", customer="cus_3", unit_amount=3334),
        ]
        result = calculate_arpu(subs, as_of=NOW)
        assert result.total_mrr == 100.0
        assert result.arpu == 33.33

    def test_currency_filter_excludes_other_currencies(self) -> None:
        subs = [
            build_subscription("usd_1", customer="cus_1", unit_amount=9000),
            build_subscription("eur_1", customer="cus_2", unit_amount=1500, currency="eur"),
            build_subscription("eur_2", customer="cus_3", unit_amount=2500, currency="eur"),
        ]
        result = calculate_arpu(subs, currency="eur", as_of=NOW)
        assert result.currency == "eur"
        assert result.total_mrr == 40.0
        assert result.unique_customers == 2
        assert result.arpu == 20.0
        assert {row.subscription_id for row in result.breakdown} == {"eur_1", "eur_2"}

    def test_zero_customers_yields_zero(self) -> None:
        result = calculate_arpu([build_subscription("a", customer=None)], as_of=NOW)
        assert result.total_mrr == 10.0
        assert result.unique_customers == 0
        assert result.arpu == 0.0

    def test_empty_snapshot_raises(self) -> None:
        with pytest.raises(NoDataProvidedError):
            calculate_arpu([])
