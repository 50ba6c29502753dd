"""
app/schemas package marker.
"""

from app.schemas.metrics import (
    FetchMetricRequest,
    MetricErrorResponse,
    MetricExplanationResponse,
    MetricParameters,
    MetricResponse,
    SnapshotMetricRequest,
)

__all__ = [
    "FetchMetricRequest",
    "MetricErrorResponse",
    "MetricExplanationResponse",
    "MetricParameters",
    "MetricResponse",
    "SnapshotMetricRequest",
]
