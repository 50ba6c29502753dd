"""Structured prompt builder for metric explanations."""

import json
from typing import Any, Dict

from llm_synthesis.schema import MetricExplanation


def _model_output_schema() -> Dict[str, Any]:
    schema = MetricExplanation.model_json_schema()
    schema["properties"].pop("generated_by", None)
    return schema


_SCHEMA_JSON = json.dumps(_model_output_schema(), indent=2)

_EXAMPLE_OUTPUT = json.dumps(
    {
        "summary": "Monthly churn is 4.5% over the last 30 days, with 9 of 200 customers lost.",
        "key_insights": [
            "Most cancellations were scheduled at period end rather than immediate",
            "The annual Pro plan accounts for half of the churned subscriptions",
        ],
        "recommended_actions": [
            "Review the renewal experience for annual Pro customers",
            "Reach out to customers with cancellations scheduled at period end",
        ],
    },
    indent=2,
)

_SYSTEM_INSTRUCTIONS = """\
You are a subscription revenue analyst explaining a computed SaaS metric.

STRICT RULES:
- Do NOT compute, calculate, or derive any new numbers.
- Quote only figures that appear in the provided result.
- Mention when a figure is an estimate if the result says so.
- Return strictly valid JSON matching the schema defined below.
- Do NOT include any text outside the JSON object.
- Do NOT wrap the JSON in markdown code fences.
"""

_FOCUS_BY_METRIC: Dict[str, str] = {
    "mrr": "Revenue composition across subscriptions and billing intervals.",
    "arpu": "Revenue per customer and how many customers carry the total.",
    "active_subscribers": "Subscriber base health, recent growth and plan mix.",
    "churn_rate": "Retention health, churn reasons and plans losing customers.",
    "ltv": "Customer lifetime value, expected lifetime and the churn driving it.",
    "mrr_expansion": "Upgrade and seat expansion signals in the current snapshot.",
}


class MetricExplanationPromptBuilder:
    """Builds a deterministic prompt asking for a MetricExplanation JSON object."""

    def build_prompt(self, metric: str, result: Dict[str, Any]) -> str:
        focus = _FOCUS_BY_METRIC.get(metric, "The most decision-relevant figures.")
        body = json.dumps(self._trim(result), indent=2, sort_keys=True, default=str)
        return (
            f"{_SYSTEM_INSTRUCTIONS}\n"
            f"# METRIC\n\n{metric}\n\n"
            f"# FOCUS\n\n{focus}\n\n"
            f"# PROVIDED RESULT\n\n```json\n{body}\n```\n\n"
            f"# OUTPUT SCHEMA\n\n"
            f"Your response MUST conform to this JSON schema:\n\n"
            f"```json\n{_SCHEMA_JSON}\n```\n\n"
            f"# EXAMPLE OUTPUT\n\n```json\n{_EXAMPLE_OUTPUT}\n```\n\n"
            f"# TASK\n\n"
            f"Explain the provided result for a business audience in a single JSON "
            f"object matching the schema above. Do not compute. Use only provided data."
        )

    @staticmethod
    def _trim(result: Dict[str, Any], max_rows: int = 10) -> Dict[str, Any]:
        """Cap long breakdown lists so the prompt stays bounded."""
        trimmed: Dict[str, Any] = {}
        for key, value in result.items():
            if isinstance(value, list) and len(value) > max_rows:
                trimmed[key] = value[:max_rows] + [f"... {len(value) - max_rows} more rows"]
            elif isinstance(value, dict):
                trimmed[key] = MetricExplanationPromptBuilder._trim(value, max_rows)
            else:
                trimmed[key] = value
        return trimmed
