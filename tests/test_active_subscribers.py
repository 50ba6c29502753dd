"""
tests/test_active_subscribers.py

Active-subscriber counts, status mix, growth and plan distribution.
"""

from __future__ import annotations

import pytest

from conftest import DAY, NOW, build_subscription
from kpi.active_subscribers import analyze_active_subscribers
from kpi.errors import InvalidMetricParameterError


@pytest.fixture()
def snapshot() -> list[dict]:
    return [
        build_subscription("new", customer="cus_1", created=NOW - 5 * DAY, price_id="price_pro", nickname="Pro"),
        build_subscription("old", customer="cus_2", created=NOW - 60 * DAY),
        build_subscription("late", status="past_due", customer="cus_2", created=NOW - 90 * DAY),
        build_subscription("gone", status="canceled", customer="cus_3", canceled_at=NOW - DAY),
        build_subscription("trial", status="trialing", customer="cus_4", created=NOW - 2 * DAY),
    ]


class TestAnalyzeActiveSubscribers:
    def test_counts_active_and_past_due(self, snapshot) -> None:
        result = analyze_active_subscribers(snapshot, as_of=NOW)
        assert result.total_active_subscriptions == 3
        assert result.unique_active_customers == 2

    def test_status_breakdown_covers_every_status(self, snapshot) -> None:
        result = analyze_active_subscribers(snapshot, as_of=NOW)
        assert result.status_breakdown == {
            "active": 2,
            "past_due": 1,
            "canceled": 1,
            "trialing": 1,
        }

    def test_growth_metrics(self, snapshot) -> None:
        growth = analyze_active_subscribers(snapshot, as_of=NOW).growth
        assert growth.new_subscriptions == 1
        assert growth.existing_subscriptions == 2
        assert growth.growth_rate == 50.0
        assert growth.period_days == 30

    def test_trials_count_when_included(self, snapshot) -> None:
        result = analyze_active_subscribers(snapshot, include_trial_subscriptions=True, as_of=NOW)
        assert result.total_active_subscriptions == 4
        assert result.growth.new_subscriptions == 2
        assert result.growth.growth_rate == 100.0

    def test_growth_window_is_configurable(self, snapshot) -> None:
        growth = analyze_active_subscribers(snapshot, growth_period_days=75, as_of=NOW).growth
        assert growth.new_subscriptions == 2
        assert growth.existing_subscriptions == 1
        assert growth.growth_rate == 200.0

    def test_growth_rate_zero_without_existing(self) -> None:
        subs = [build_subscription("a", created=NOW - DAY), build_subscription("b", created=NOW - 2 * DAY)]
        growth = analyze_active_subscribers(subs, as_of=NOW).growth
        assert growth.new_subscriptions == 2
        assert growth.existing_subscriptions == 0
        assert growth.growth_rate == 0.0

    def test_plan_breakdown_sorted_by_count(self, snapshot) -> None:
        plans = analyze_active_subscribers(snapshot, as_of=NOW).plan_breakdown
        assert [(plan.plan_id, plan.count) for plan in plans] == [
            ("price_basic", 2),
            ("price_pro", 1),
        ]
        assert plans[1].plan_name == "Pro"
        assert plans[1].interval == "month"

    def test_plan_ties_keep_first_seen_order(self) -> None:
        subs = [
            build_subscription("a", price_id="price_z"),
            build_subscription("b", price_id="price_a"),
        ]
        plans = analyze_active_subscribers(subs, as_of=NOW).plan_breakdown
        assert [plan.plan_id for plan in plans] == ["price_z", "price_a"]

    def test_currency_filter_applies_to_status_breakdown(self, snapshot) -> None:
        snapshot.append(build_subscription("eur", status="unpaid", currency="eur"))
        result = analyze_active_subscribers(snapshot, currency="eur", as_of=NOW)
        assert result.status_breakdown == {"unpaid": 1}
        assert result.total_active_subscriptions == 0
        assert result.currency == "eur"

    def test_non_positive_growth_period_raises(self, snapshot) -> None:
        with pytest.raises(InvalidMetricParameterError):
            analyze_active_subscribers(snapshot, growth_period_days=0, as_of=NOW)
