"""
app/api/routers/metrics_router.py

Subscription metric endpoints.

    POST /metrics/{metric}            fetch the snapshot from the billing API
    POST /metrics/{metric}/calculate  use the snapshot supplied in the body

Calculation errors are client errors (422); snapshot retrieval failures are
upstream errors (502).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_metric_name, get_metrics_service
from app.connectors.base import SubscriptionSourceError
from app.schemas.metrics import (
    FetchMetricRequest,
    MetricErrorResponse,
    MetricResponse,
    SnapshotMetricRequest,
)
from app.services.metrics_service import MetricRunResult, SubscriptionMetricsService
from kpi.errors import (
    InvalidMetricParameterError,
    InvalidSubscriptionDataError,
    MetricsError,
    NoDataProvidedError,
)

logger = logging.getLogger(__name__)

HTTP_422_UNPROCESSABLE = 422

router = APIRouter(prefix="/metrics", tags=["metrics"])

_ERROR_RESPONSES = {
    status.HTTP_404_NOT_FOUND: {"description": "Unknown metric."},
    HTTP_422_UNPROCESSABLE: {"model": MetricErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": MetricErrorResponse},
}


def _error_detail(exc: Exception, details: list[str] | None = None) -> dict:
    return MetricErrorResponse(
        error=type(exc).__name__,
        message=str(exc),
        details=details or [],
    ).model_dump()


def _run_metric(metric: str, call: Callable[[], MetricRunResult]) -> MetricResponse:
    try:
        outcome = call()
    except InvalidSubscriptionDataError as exc:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=_error_detail(exc, exc.errors),
        ) from exc
    except (NoDataProvidedError, InvalidMetricParameterError) as exc:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=_error_detail(exc),
        ) from exc
    except MetricsError as exc:
        logger.warning("Metric calculation failed metric=%s: %s", metric, exc)
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=_error_detail(exc),
        ) from exc
    except SubscriptionSourceError as exc:
        logger.error("Snapshot retrieval failed metric=%s: %s", metric, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_error_detail(exc),
        ) from exc

    return MetricResponse.model_validate(outcome.to_dict())


@router.post(
    "/{metric}",
    response_model=MetricResponse,
    responses=_ERROR_RESPONSES,
)
def compute_metric(
    body: FetchMetricRequest | None = None,
    metric: str = Depends(get_metric_name),
    service: SubscriptionMetricsService = Depends(get_metrics_service),
) -> MetricResponse:
    """
    Fetch subscriptions (all statuses) from the billing API and compute *metric*.
    """
    request = body or FetchMetricRequest()
    return _run_metric(
        metric,
        lambda: service.compute(
            metric,
            request.calculator_params(),
            limit=request.limit,
            explain=request.explain,
        ),
    )


@router.post(
    "/{metric}/calculate",
    response_model=MetricResponse,
    responses=_ERROR_RESPONSES,
)
def calculate_metric(
    body: SnapshotMetricRequest,
    metric: str = Depends(get_metric_name),
    service: SubscriptionMetricsService = Depends(get_metrics_service),
) -> MetricResponse:
    """
    Compute *metric* over the subscription snapshot in the request body.
    """
    return _run_metric(
        metric,
        lambda: service.compute_from_snapshot(
            metric,
            body.subscriptions,
            body.calculator_params(),
            explain=body.explain,
        ),
    )
