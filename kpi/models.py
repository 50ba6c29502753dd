"""
kpi/models.py

Subscription record models (input boundary schema).

Records arrive in the billing API's shape and are validated here before any
calculator sees them. Permissive where the billing data is legitimately
sparse (missing ``unit_amount``, ``recurring`` or ``customer``), strict where
a bad value would corrupt a metric (unknown billing interval).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SubscriptionStatus = Literal[
    "active",
    "past_due",
    "unpaid",
    "canceled",
    "incomplete",
    "incomplete_expired",
    "trialing",
    "paused",
]

BillingInterval = Literal["day", "week", "month", "year"]


class Recurring(BaseModel):
    """Recurring billing descriptor of a price."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    interval: BillingInterval
    interval_count: int = Field(default=1, ge=1)


class Price(BaseModel):
    """Price attached to a subscription item. Amounts are in minor units."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    nickname: str | None = None
    unit_amount: int | None = None
    currency: str
    recurring: Recurring | None = None


class SubscriptionItem(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str | None = None
    price: Price
    quantity: int = Field(default=1, ge=0)

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_missing_quantity(cls, value: Any) -> Any:
        # Metered prices report quantity as null.
        return 1 if value is None else value


class Subscription(BaseModel):
    """
    One subscription record from the billing system.

    ``items`` accepts either a plain list or the billing API's list envelope
    (``{"object": "list", "data": [...]}``).
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    status: SubscriptionStatus
    customer: str | None = None
    created: int
    canceled_at: int | None = None
    cancel_at_period_end: bool | None = None
    items: tuple[SubscriptionItem, ...] = ()
    current_period_start: int | None = None
    current_period_end: int | None = None
    trial_start: int | None = None
    trial_end: int | None = None

    @field_validator("items", mode="before")
    @classmethod
    def _unwrap_list_envelope(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, dict):
            return value.get("data") or ()
        return value

    @field_validator("customer", mode="before")
    @classmethod
    def _customer_id(cls, value: Any) -> Any:
        # An expanded customer object still identifies the customer by id.
        if isinstance(value, dict):
            return value.get("id")
        return value
