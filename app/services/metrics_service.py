"""
app/services/metrics_service.py

Fetch-calculate-explain orchestration for subscription metrics.

Flow
----
1. Pull a snapshot from the configured :class:`SubscriptionSource`
   (skipped when the caller supplies the snapshot).
2. Run the named calculator from :data:`kpi.METRIC_CALCULATORS`.
3. Optionally attach a human-readable explanation. Explanation failures
   never fail the calculation.
"""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Any, Mapping, Sequence

from app.config import get_external_http_settings, get_llm_settings, get_stripe_settings
from app.connectors.base import SubscriptionSource, SubscriptionSourceError
from app.connectors.stripe_connector import StripeSubscriptionSource
from app.logging_utils import log_event
from kpi import METRIC_CALCULATORS, get_calculator
from kpi.errors import InvalidMetricParameterError
from llm_synthesis.explanation import MetricExplainer, build_explainer
from llm_synthesis.schema import MetricExplanation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricRunResult:
    """
    Outcome of one metric invocation.
    """

    metric: str
    result: dict[str, Any]
    subscriptions_fetched: int
    explanation: MetricExplanation | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "result": self.result,
            "subscriptions_fetched": self.subscriptions_fetched,
            "explanation": self.explanation.model_dump() if self.explanation else None,
        }


def _calculator_kwargs(metric: str, calculator: Any, params: Mapping[str, Any]) -> dict[str, Any]:
    accepted = {
        name
        for name, parameter in inspect.signature(calculator).parameters.items()
        if parameter.kind is inspect.Parameter.KEYWORD_ONLY
    }
    unknown = sorted(set(params) - accepted)
    if unknown:
        raise InvalidMetricParameterError(
            f"Unsupported parameter(s) for metric '{metric}': {unknown}. "
            f"Accepted: {sorted(accepted)}."
        )
    return dict(params)


class SubscriptionMetricsService:
    """
    Computes subscription metrics over a fetched or supplied snapshot.
    """

    def __init__(
        self,
        source: SubscriptionSource | None,
        explainer: MetricExplainer | None = None,
    ) -> None:
        self._source = source
        self._explainer = explainer

    @property
    def source_name(self) -> str | None:
        return self._source.source if self._source is not None else None

    @staticmethod
    def available_metrics() -> list[str]:
        return sorted(METRIC_CALCULATORS)

    def compute(
        self,
        metric: str,
        params: Mapping[str, Any] | None = None,
        *,
        limit: int | None = None,
        explain: bool = True,
    ) -> MetricRunResult:
        """
        Fetch a snapshot from the source, then calculate *metric*.

        Raises:
            InvalidMetricParameterError: unknown metric or parameter.
            SubscriptionSourceError: no source configured or the fetch failed.
            MetricsError: any calculation error from the ``kpi`` package.
        """

        calculator = get_calculator(metric)
        kwargs = _calculator_kwargs(metric, calculator, params or {})
        if self._source is None:
            raise SubscriptionSourceError("No subscription source is configured.")

        subscriptions = self._source.fetch_subscriptions(limit=limit)
        return self._run(metric, calculator, subscriptions, kwargs, explain=explain)

    def compute_from_snapshot(
        self,
        metric: str,
        subscriptions: Sequence[Any],
        params: Mapping[str, Any] | None = None,
        *,
        explain: bool = True,
    ) -> MetricRunResult:
        """
        Calculate *metric* over a caller-supplied snapshot.
        """

        calculator = get_calculator(metric)
        kwargs = _calculator_kwargs(metric, calculator, params or {})
        return self._run(metric, calculator, subscriptions, kwargs, explain=explain)

    def _run(
        self,
        metric: str,
        calculator: Any,
        subscriptions: Sequence[Any],
        kwargs: dict[str, Any],
        *,
        explain: bool,
    ) -> MetricRunResult:
        started = time.perf_counter()
        result = asdict(calculator(subscriptions, **kwargs))
        elapsed_ms = (time.perf_counter() - started) * 1000

        explanation = None
        if explain and self._explainer is not None:
            explanation = self._explainer.explain(metric, result)

        log_event(
            logger,
            logging.INFO,
            "metric_computed",
            metric=metric,
            subscriptions=len(subscriptions),
            elapsed_ms=round(elapsed_ms, 2),
            explained=explanation is not None,
            explanation_source=explanation.generated_by if explanation else None,
        )
        return MetricRunResult(
            metric=metric,
            result=result,
            subscriptions_fetched=len(subscriptions),
            explanation=explanation,
        )


@lru_cache(maxsize=1)
def get_subscription_metrics_service() -> SubscriptionMetricsService:
    """
    Build and cache the service from environment settings.
    """

    stripe_settings = get_stripe_settings()
    source = None
    if stripe_settings.configured:
        source = StripeSubscriptionSource(
            settings=stripe_settings,
            http_settings=get_external_http_settings(),
        )
    else:
        logger.warning("STRIPE_SECRET_KEY not set; only snapshot-based calculation is available.")
    return SubscriptionMetricsService(source, explainer=build_explainer(get_llm_settings()))
