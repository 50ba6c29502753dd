"""Metric explanation generation with a deterministic fallback.

The explainer never raises for model problems: any adapter or validation
failure is logged and replaced by a summary assembled from the result's own
figures.
"""

import logging
from typing import Any, Callable, Dict, Optional

from llm_synthesis.adapter import BaseLLMAdapter, MockLLMAdapter, OpenAILLMAdapter
from llm_synthesis.prompt_builder import MetricExplanationPromptBuilder
from llm_synthesis.retry import generate_with_retry
from llm_synthesis.schema import MetricExplanation

logger = logging.getLogger(__name__)


def _money(value: Any) -> str:
    return f"${value}"


def _mrr_text(r: Dict[str, Any]) -> str:
    return (
        f"MRR calculation completed. Total Monthly Recurring Revenue is "
        f"{_money(r['total_mrr'])} {str(r['currency']).upper()} across "
        f"{r['active_subscriptions']} active subscriptions."
    )


def _arpu_text(r: Dict[str, Any]) -> str:
    return (
        f"ARPU calculation completed. Average Revenue Per User is {_money(r['arpu'])} "
        f"{str(r['currency']).upper()}, calculated from {_money(r['total_mrr'])} total MRR "
        f"across {r['unique_customers']} unique customers "
        f"({r['active_subscriptions']} active subscriptions)."
    )


def _active_subscribers_text(r: Dict[str, Any]) -> str:
    growth = r["growth"]
    return (
        f"Active subscriber analysis completed. There are "
        f"{r['total_active_subscriptions']} active subscriptions held by "
        f"{r['unique_active_customers']} unique customers. "
        f"{growth['new_subscriptions']} subscriptions were created in the last "
        f"{growth['period_days']} days (growth rate {growth['growth_rate']}%)."
    )


def _churn_text(r: Dict[str, Any]) -> str:
    return (
        f"Churn rate analysis completed. Customer churn rate is {r['churn_rate']}% over "
        f"{r['period']['days']} days, with {r['churned_customers_count']} customers "
        f"churning out of {r['total_customers_at_start']} total customers at period "
        f"start. Retention rate: {r['retention_rate']}%."
    )


def _ltv_text(r: Dict[str, Any]) -> str:
    return (
        f"Customer Lifetime Value calculation completed. LTV is {_money(r['ltv'])}, "
        f"calculated using ARPU of {_money(r['arpu'])} and a churn rate of "
        f"{r['churn_rate']}%. This indicates that the average customer has a lifetime "
        f"value of {_money(r['ltv'])} over {r['months_to_churn']} months."
    )


def _expansion_text(r: Dict[str, Any]) -> str:
    return (
        f"MRR expansion estimate completed. Estimated expansion MRR is "
        f"{_money(r['expansion_mrr'])} {str(r['currency']).upper()} "
        f"({r['expansion_rate']}% of {_money(r['starting_mrr'])} starting MRR) from "
        f"{r['total_upgrades']} expansion events over {r['period']['days']} days. "
        f"This figure is an estimate inferred from the current snapshot."
    )


_FALLBACK_TEMPLATES: Dict[str, Callable[[Dict[str, Any]], str]] = {
    "mrr": _mrr_text,
    "arpu": _arpu_text,
    "active_subscribers": _active_subscribers_text,
    "churn_rate": _churn_text,
    "ltv": _ltv_text,
    "mrr_expansion": _expansion_text,
}


def fallback_explanation(metric: str, result: Dict[str, Any]) -> MetricExplanation:
    """Build a plain summary of *result* without calling a model."""
    template = _FALLBACK_TEMPLATES.get(metric)
    try:
        summary = template(result) if template else None
    except KeyError:
        summary = None
    return MetricExplanation(
        summary=summary or f"{metric} calculation completed successfully.",
        generated_by="fallback",
    )


class MetricExplainer:
    """Turns a serialised metric result into a MetricExplanation."""

    def __init__(
        self,
        adapter: Optional[BaseLLMAdapter],
        max_retries: int = 2,
        prompt_builder: Optional[MetricExplanationPromptBuilder] = None,
    ) -> None:
        self._adapter = adapter
        self._max_retries = max_retries
        self._prompt_builder = prompt_builder or MetricExplanationPromptBuilder()

    def explain(self, metric: str, result: Dict[str, Any]) -> MetricExplanation:
        if self._adapter is None:
            return fallback_explanation(metric, result)

        prompt = self._prompt_builder.build_prompt(metric, result)
        try:
            return generate_with_retry(self._adapter, prompt, max_retries=self._max_retries)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Failed to generate explanation for metric=%s: %s. Using default explanation.",
                metric,
                exc,
            )
            return fallback_explanation(metric, result)


def build_explainer(settings: Any) -> MetricExplainer:
    """Create an explainer from ``app.config.LLMSettings``-shaped settings."""
    if settings.adapter == "none":
        adapter: Optional[BaseLLMAdapter] = None
    elif settings.adapter == "mock":
        adapter = MockLLMAdapter()
    elif not settings.api_key:
        logger.info("No LLM API key configured; explanations will use fallback text.")
        adapter = None
    else:
        adapter = OpenAILLMAdapter(
            model=settings.model,
            max_tokens=settings.max_tokens,
            api_key=settings.api_key,
            base_url=settings.base_url,
        )
    return MetricExplainer(adapter, max_retries=settings.max_retries)
