"""
app/main.py

FastAPI application factory for the subscription metrics API.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from pydantic import BaseModel

from app.api.dependencies import get_metrics_service
from app.config import get_llm_settings
from app.services.metrics_service import SubscriptionMetricsService

APP_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    metrics: list[str]
    source_configured: bool
    source: str | None = None


def _validate_env() -> None:
    """
    Fail fast on configuration that cannot be served.

    The billing API key is optional: without it only the snapshot
    endpoints work, which is reported by ``/health``.
    """

    errors: list[str] = []
    try:
        get_llm_settings()
    except RuntimeError as exc:
        errors.append(str(exc))

    if errors:
        raise RuntimeError(
            "Startup validation failed, invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Subscription Metrics API",
        version=APP_VERSION,
    )

    from app.api.routers import metrics_router

    application.include_router(metrics_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck(
        service: SubscriptionMetricsService = Depends(get_metrics_service),
    ) -> HealthResponse:
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(tz=timezone.utc).isoformat(),
            version=APP_VERSION,
            metrics=service.available_metrics(),
            source_configured=service.source_name is not None,
            source=service.source_name,
        )

    logging.getLogger(__name__).info("Subscription metrics API initialised")
    return application


app = create_app()
