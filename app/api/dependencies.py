"""
app/api/dependencies.py

Shared FastAPI dependencies for the metrics endpoints.
"""

from __future__ import annotations

from fastapi import HTTPException, Path, status

from app.services.metrics_service import (
    SubscriptionMetricsService,
    get_subscription_metrics_service,
)
from kpi import METRIC_CALCULATORS


def get_metrics_service() -> SubscriptionMetricsService:
    """
    Provide the process-wide metrics service. Overridden in tests.
    """

    return get_subscription_metrics_service()


def get_metric_name(metric: str = Path(..., min_length=1)) -> str:
    """
    Validate the metric path parameter against the calculator registry.
    """

    normalized = metric.strip().lower().replace("-", "_")
    if normalized not in METRIC_CALCULATORS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown metric '{metric}'. Available: {sorted(METRIC_CALCULATORS)}.",
        )
    return normalized
