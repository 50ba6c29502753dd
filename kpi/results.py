"""
kpi/results.py

Structured results returned by the subscription metric calculators.

Every result is a frozen dataclass holding numbers and breakdowns only.
Human-readable explanations are produced outside the calculation layer
(see ``llm_synthesis.explanation``). Use :func:`dataclasses.asdict` to
serialise a result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ChurnCalculationMethod = Literal["traditional", "new_business", "no_customers"]
ExpansionChangeType = Literal["upgrade", "quantity_increase", "plan_change"]


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalysisPeriod:
    """Closed time window ``[start_date, end_date]`` used by period-based metrics."""

    start_date: str
    """ISO-8601 UTC timestamp of the period start."""

    end_date: str
    """ISO-8601 UTC timestamp of the period end."""

    days: int


@dataclass(frozen=True)
class SubscriptionMRR:
    """Monthly recurring revenue contributed by one subscription."""

    subscription_id: str
    customer_id: str | None
    customer_mrr: float
    billing_interval: str
    """Interval label of the first item, e.g. ``"month"`` or ``"3-month"``."""


# ---------------------------------------------------------------------------
# MRR / ARPU
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MRRResult:
    total_mrr: float
    currency: str
    """Requested currency filter, or ``"usd"`` when none was given."""

    active_subscriptions: int
    breakdown: list[SubscriptionMRR]
    include_trial_subscriptions: bool
    calculated_at: str


@dataclass(frozen=True)
class ARPUResult:
    arpu: float
    total_mrr: float
    unique_customers: int
    currency: str
    active_subscriptions: int
    breakdown: list[SubscriptionMRR]
    include_trial_subscriptions: bool
    calculated_at: str


# ---------------------------------------------------------------------------
# Active subscribers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GrowthMetrics:
    new_subscriptions: int
    """Active subscriptions created within the growth period."""

    existing_subscriptions: int
    growth_rate: float
    """``new / existing * 100``; ``0`` when there are no existing subscriptions."""

    period_days: int


@dataclass(frozen=True)
class PlanCount:
    plan_id: str
    plan_name: str | None
    count: int
    currency: str
    interval: str


@dataclass(frozen=True)
class ActiveSubscribersResult:
    total_active_subscriptions: int
    unique_active_customers: int
    status_breakdown: dict[str, int]
    growth: GrowthMetrics
    plan_breakdown: list[PlanCount]
    include_trial_subscriptions: bool
    currency: str | None
    calculated_at: str


# ---------------------------------------------------------------------------
# Churn
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChurnedPlan:
    plan_id: str
    plan_name: str | None
    churned_count: int
    currency: str
    interval: str


@dataclass(frozen=True)
class ChurnRateResult:
    churn_rate: float
    """Customer churn over the period, as a percentage."""

    retention_rate: float
    churned_customers_count: int
    total_customers_at_start: int
    new_customers_in_period: int
    churned_new_customers: int
    churned_subscriptions_count: int
    reason_breakdown: dict[str, int]
    plan_breakdown: list[ChurnedPlan]
    period: AnalysisPeriod
    calculation_method: ChurnCalculationMethod
    """Which formula produced ``churn_rate``; informational only."""

    currency: str | None
    calculated_at: str


# ---------------------------------------------------------------------------
# LTV
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LTVDependencyResults:
    arpu: ARPUResult
    churn_rate: ChurnRateResult


@dataclass(frozen=True)
class LTVResult:
    ltv: float
    arpu: float
    churn_rate: float
    retention_rate: float
    months_to_churn: float
    monthly_churn_rate: float
    """Churn rate normalised to a 30-day month, as a percentage."""

    currency: str
    total_customers: int
    active_subscriptions: int
    churned_customers: int
    period: AnalysisPeriod
    calculated_at: str
    dependency_results: LTVDependencyResults


# ---------------------------------------------------------------------------
# MRR expansion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlanChangeDetails:
    old_plan: str | None = None
    new_plan: str | None = None
    old_quantity: int | None = None
    new_quantity: int | None = None


@dataclass(frozen=True)
class ExpansionEvent:
    subscription_id: str
    customer_id: str | None
    old_mrr: float
    new_mrr: float
    expansion_amount: float
    change_type: ExpansionChangeType
    plan_details: PlanChangeDetails
    change_date: str


@dataclass(frozen=True)
class MRRExpansionResult:
    """
    Estimated MRR expansion.

    Derived from the current snapshot only; no subscription change log is
    consulted, so every figure here is an approximation.
    """

    expansion_mrr: float
    expansion_rate: float
    total_upgrades: int
    total_downgrades: int
    net_expansion: float
    average_expansion_per_upgrade: float
    starting_mrr: float
    currency: str
    period: AnalysisPeriod
    expansion_breakdown: list[ExpansionEvent]
    calculated_at: str
    is_estimate: bool = field(default=True)
