"""Structured output schema for metric explanations."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class MetricExplanation(BaseModel):
    """Only allowed output contract for the explanation layer."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )

    summary: str = Field(min_length=1)
    key_insights: List[str] = Field(default_factory=list, max_length=8)
    recommended_actions: List[str] = Field(default_factory=list, max_length=8)
    generated_by: str = Field(default="llm", pattern="^(llm|fallback)$")
