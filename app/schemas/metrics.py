"""
app/schemas/metrics.py

Request and response schemas for the subscription metrics endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kpi.snapshot import MAX_PERIOD_DAYS


class MetricParameters(BaseModel):
    """
    Optional calculator parameters. Omitted values use the calculator defaults.
    """

    model_config = ConfigDict(extra="forbid")

    include_trial_subscriptions: bool | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    period_days: int | None = Field(default=None, ge=1, le=MAX_PERIOD_DAYS)
    growth_period_days: int | None = Field(default=None, ge=1, le=MAX_PERIOD_DAYS)
    churn_period_days: int | None = Field(default=None, ge=1, le=MAX_PERIOD_DAYS)
    as_of: int | datetime | None = None

    def calculator_params(self) -> dict[str, Any]:
        return self.model_dump(
            include=set(MetricParameters.model_fields),
            exclude_none=True,
        )


class FetchMetricRequest(MetricParameters):
    """
    Compute a metric over a snapshot fetched from the billing API.
    """

    limit: int | None = Field(default=None, ge=1)
    explain: bool = True


class SnapshotMetricRequest(MetricParameters):
    """
    Compute a metric over a snapshot supplied in the request body.
    """

    subscriptions: list[dict[str, Any]]
    explain: bool = False


class MetricExplanationResponse(BaseModel):
    summary: str
    key_insights: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    generated_by: str


class MetricResponse(BaseModel):
    """
    API response model for one metric invocation.
    """

    metric: str
    result: dict[str, Any]
    subscriptions_fetched: int = Field(..., ge=0)
    explanation: MetricExplanationResponse | None = None


class MetricErrorResponse(BaseModel):
    error: str
    message: str
    details: list[str] = Field(default_factory=list)
