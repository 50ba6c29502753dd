"""
kpi/errors.py

Exceptions raised by the subscription metric calculators.

Division-by-zero situations are not errors: every calculator resolves them
to ``0`` (or to a capped ceiling for LTV) and returns a complete result.
"""

from __future__ import annotations


class MetricsError(Exception):
    """Base exception for metric calculation failures."""


class NoDataProvidedError(MetricsError):
    """Raised when the subscription snapshot is empty or not a sequence."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No subscription data provided. A non-empty list of subscriptions is required."
        )


class UnsupportedIntervalError(MetricsError, ValueError):
    """Raised when a recurring price uses an interval outside day/week/month/year."""

    def __init__(self, interval: object) -> None:
        self.interval = interval
        super().__init__(f"Unsupported billing interval: {interval}")


class InvalidSubscriptionDataError(MetricsError):
    """
    Raised when a subscription record fails schema validation.

    Attributes:
        index: Position of the offending record in the snapshot.
        errors: Human-readable validation messages.
    """

    def __init__(self, index: int, errors: list[str]) -> None:
        self.index = index
        self.errors = errors
        super().__init__(
            f"Subscription at index {index} failed validation: " + "; ".join(errors)
        )


class SubscriptionIntervalError(UnsupportedIntervalError, InvalidSubscriptionDataError):
    """
    Raised when a snapshot record uses an unsupported billing interval.

    Catchable both as :class:`UnsupportedIntervalError` and as
    :class:`InvalidSubscriptionDataError`.
    """

    def __init__(self, index: int, interval: object, errors: list[str]) -> None:
        self.interval = interval
        self.index = index
        self.errors = errors
        MetricsError.__init__(
            self,
            f"Subscription at index {index} uses unsupported billing interval: {interval}",
        )


class InvalidMetricParameterError(MetricsError, ValueError):
    """Raised when a calculation parameter is out of range or unknown."""
