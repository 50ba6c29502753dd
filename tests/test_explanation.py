"""
tests/test_explanation.py

LLM explanation layer: validation, retry and deterministic fallback.

Uses MockLLMAdapter only; no network calls.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from types import SimpleNamespace

import pytest

from conftest import NOW, build_subscription
from kpi.churn import calculate_churn_rate
from kpi.ltv import calculate_ltv
from llm_synthesis.adapter import BaseLLMAdapter, MockLLMAdapter
from llm_synthesis.explanation import MetricExplainer, build_explainer, fallback_explanation
from llm_synthesis.prompt_builder import MetricExplanationPromptBuilder
from llm_synthesis.retry import LLMRetryExhaustedError, generate_with_retry
from llm_synthesis.validator import LLMOutputValidationError, validate_llm_output

VALID = json.dumps(
    {
        "summary": "Churn is 40% over 30 days.",
        "key_insights": ["Two of five customers left"],
        "recommended_actions": ["Interview churned customers"],
    }
)


class RaisingAdapter(BaseLLMAdapter):
    def generate(self, prompt: str) -> str:
        raise RuntimeError("upstream timeout")


class SequenceAdapter(BaseLLMAdapter):
    def __init__(self, responses: list[str]) -> None:
        self._responses = list(responses)
        self.calls = 0

    def generate(self, prompt: str) -> str:
        self.calls += 1
        return self._responses.pop(0)


@pytest.fixture()
def churn_result() -> dict:
    subs = [
        build_subscription("a", customer="cus_1"),
        build_subscription("b", status="canceled", customer="cus_2", canceled_at=NOW - 100),
    ]
    return asdict(calculate_churn_rate(subs, as_of=NOW))


class TestValidator:
    def test_valid_json(self) -> None:
        explanation = validate_llm_output(VALID)
        assert explanation.summary == "Churn is 40% over 30 days."
        assert explanation.generated_by == "llm"

    def test_strips_markdown_fences(self) -> None:
        assert validate_llm_output(f"```json\n{VALID}\n```").key_insights == [
            "Two of five customers left"
        ]

    def test_extra_keys_are_dropped(self) -> None:
        payload = json.loads(VALID) | {"generated_by": "fallback", "priority": "high"}
        assert validate_llm_output(json.dumps(payload)).generated_by == "llm"

    def test_invalid_json_stage(self) -> None:
        with pytest.raises(LLMOutputValidationError) as exc_info:
            validate_llm_output("not json")
        assert exc_info.value.stage == "json_parse"

    @pytest.mark.parametrize("raw", ["[1, 2]", json.dumps({"summary": ""})])
    def test_schema_stage(self, raw) -> None:
        with pytest.raises(LLMOutputValidationError) as exc_info:
            validate_llm_output(raw)
        assert exc_info.value.stage == "schema"
        assert exc_info.value.raw_response == raw


class TestRetry:
    def test_recovers_after_malformed_output(self) -> None:
        adapter = SequenceAdapter(["oops", VALID])
        assert generate_with_retry(adapter, "prompt", max_retries=2).summary
        assert adapter.calls == 2

    def test_exhaustion_raises_with_history(self) -> None:
        adapter = SequenceAdapter(["a", "b", "c"])
        with pytest.raises(LLMRetryExhaustedError) as exc_info:
            generate_with_retry(adapter, "prompt", max_retries=2)
        assert exc_info.value.attempts == 3
        assert len(exc_info.value.history) == 3


class TestPromptBuilder:
    def test_prompt_contains_metric_and_result(self, churn_result) -> None:
        prompt = MetricExplanationPromptBuilder().build_prompt("churn_rate", churn_result)
        assert "churn_rate" in prompt
        assert '"churn_rate": 50.0' in prompt
        assert "Do NOT compute" in prompt
        assert "generated_by" not in prompt

    def test_long_lists_are_trimmed(self) -> None:
        result = {"breakdown": list(range(25))}
        prompt = MetricExplanationPromptBuilder().build_prompt("mrr", result)
        assert "15 more rows" in prompt


class TestMetricExplainer:
    def test_uses_model_output(self, churn_result) -> None:
        adapter = MockLLMAdapter(VALID)
        explanation = MetricExplainer(adapter).explain("churn_rate", churn_result)
        assert explanation.generated_by == "llm"
        assert len(adapter.prompts) == 1

    def test_adapter_error_falls_back(self, churn_result) -> None:
        explanation = MetricExplainer(RaisingAdapter()).explain("churn_rate", churn_result)
        assert explanation.generated_by == "fallback"
        assert "50.0%" in explanation.summary

    def test_malformed_output_falls_back_after_retries(self, churn_result) -> None:
        adapter = MockLLMAdapter("garbage")
        explanation = MetricExplainer(adapter, max_retries=1).explain("churn_rate", churn_result)
        assert explanation.generated_by == "fallback"
        assert len(adapter.prompts) == 2

    def test_without_adapter_uses_fallback(self, churn_result) -> None:
        assert MetricExplainer(None).explain("churn_rate", churn_result).generated_by == "fallback"


class TestFallbackExplanation:
    def test_churn_text(self, churn_result) -> None:
        summary = fallback_explanation("churn_rate", churn_result).summary
        assert summary.startswith("Churn rate analysis completed.")
        assert "over 30 days" in summary
        assert "Retention rate: 50.0%." in summary

    def test_ltv_text(self) -> None:
        result = asdict(calculate_ltv([build_subscription("a")], as_of=NOW))
        summary = fallback_explanation("ltv", result).summary
        assert "LTV is $1000000.0" in summary

    def test_unknown_metric_or_shape_uses_generic_text(self) -> None:
        assert fallback_explanation("mrr", {}).summary == "mrr calculation completed successfully."
        assert fallback_explanation("nps", {}).summary == "nps calculation completed successfully."


class TestBuildExplainer:
    @pytest.mark.parametrize(
        ("adapter", "api_key", "expected"),
        [("none", "k", "fallback"), ("openai", None, "fallback"), ("mock", None, "llm")],
    )
    def test_adapter_selection(self, churn_result, adapter, api_key, expected) -> None:
        settings = SimpleNamespace(
            adapter=adapter,
            api_key=api_key,
            model="gpt-4o-mini",
            max_tokens=256,
            base_url=None,
            max_retries=0,
        )
        explanation = build_explainer(settings).explain("churn_rate", churn_result)
        assert explanation.generated_by == expected
