"""
app/services package marker.
"""

from app.services.metrics_service import (
    MetricRunResult,
    SubscriptionMetricsService,
    get_subscription_metrics_service,
)

__all__ = [
    "MetricRunResult",
    "SubscriptionMetricsService",
    "get_subscription_metrics_service",
]
