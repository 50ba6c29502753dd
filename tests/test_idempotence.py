"""
tests/test_idempotence.py

Every registered calculator is a pure function of (snapshot, parameters, as_of).
"""

from __future__ import annotations

import copy
from dataclasses import asdict

import pytest

from conftest import DAY, NOW, build_subscription
from kpi import METRIC_CALCULATORS, get_calculator
from kpi.errors import InvalidMetricParameterError, NoDataProvidedError


@pytest.fixture()
def snapshot() -> list[dict]:
    return [
        build_subscription("a", customer="cus_1", unit_amount=2500, quantity=2),
        build_subscription("b", customer="cus_2", created=NOW - 3 * DAY, unit_amount=9900),
        build_subscription("c", status="trialing", customer="cus_3"),
        build_subscription("d", status="canceled", customer="cus_4", canceled_at=NOW - DAY),
    ]


@pytest.mark.parametrize("metric", sorted(METRIC_CALCULATORS))
class TestCalculatorContract:
    def test_same_inputs_same_output(self, metric, snapshot) -> None:
        calculator = get_calculator(metric)
        assert asdict(calculator(snapshot, as_of=NOW)) == asdict(calculator(snapshot, as_of=NOW))

    def test_input_is_not_mutated(self, metric, snapshot) -> None:
        before = copy.deepcopy(snapshot)
        get_calculator(metric)(snapshot, as_of=NOW)
        assert snapshot == before

    def test_empty_snapshot_raises(self, metric) -> None:
        with pytest.raises(NoDataProvidedError):
            get_calculator(metric)([], as_of=NOW)


def test_registry_names() -> None:
    assert sorted(METRIC_CALCULATORS) == [
        "active_subscribers",
        "arpu",
        "churn_rate",
        "ltv",
        "mrr",
        "mrr_expansion",
    ]


def test_unknown_metric_raises() -> None:
    with pytest.raises(InvalidMetricParameterError):
        get_calculator("nps")
