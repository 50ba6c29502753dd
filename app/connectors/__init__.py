"""
app/connectors package marker.
"""

from app.connectors.base import BaseHTTPSource, SubscriptionSource, SubscriptionSourceError
from app.connectors.stripe_connector import StaticSubscriptionSource, StripeSubscriptionSource

__all__ = [
    "BaseHTTPSource",
    "StaticSubscriptionSource",
    "StripeSubscriptionSource",
    "SubscriptionSource",
    "SubscriptionSourceError",
]
