"""
app/connectors/stripe_connector.py

Subscription snapshot sources: the billing API and static snapshots.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import requests

from app.config import ExternalHTTPSettings, StripeSettings
from app.connectors.base import BaseHTTPSource, SubscriptionSourceError
from app.logging_utils import log_event

logger = logging.getLogger(__name__)


class StripeSubscriptionSource(BaseHTTPSource):
    """
    Pages through ``GET /subscriptions`` with ``status=all``.

    Canceled subscriptions are included so churn can be measured.
    """

    def __init__(
        self,
        *,
        settings: StripeSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="stripe", http_settings=http_settings, session=session)
        self._settings = settings

    def fetch_subscriptions(self, *, limit: int | None = None) -> list[dict[str, Any]]:
        if not self._settings.api_key:
            raise SubscriptionSourceError(
                "STRIPE_SECRET_KEY is not configured; cannot fetch subscriptions."
            )

        wanted = limit if limit is not None else self._settings.default_fetch_limit
        headers = {"Authorization": f"Bearer {self._settings.api_key}"}
        url = f"{self._settings.base_url}/subscriptions"

        subscriptions: list[dict[str, Any]] = []
        starting_after: str | None = None
        pages = 0
        while len(subscriptions) < wanted:
            params: dict[str, Any] = {
                "status": "all",
                "limit": min(self._settings.page_size, wanted - len(subscriptions)),
            }
            if starting_after:
                params["starting_after"] = starting_after

            payload = self._request_json(method="GET", url=url, params=params, headers=headers)
            if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
                raise SubscriptionSourceError(f"{self.source}: unexpected list response shape.")

            page = payload["data"]
            pages += 1
            subscriptions.extend(page)
            if not payload.get("has_more") or not page:
                break
            starting_after = page[-1].get("id")

        log_event(
            logger,
            logging.INFO,
            "subscriptions_fetched",
            source=self.source,
            count=len(subscriptions),
            pages=pages,
            limit=wanted,
        )
        return subscriptions[:wanted]


class StaticSubscriptionSource:
    """
    Serves a fixed in-memory snapshot.
    """

    def __init__(self, subscriptions: list[dict[str, Any]], *, source: str = "static") -> None:
        self.source = source
        self._subscriptions = list(subscriptions)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "StaticSubscriptionSource":
        """
        Load a snapshot from a JSON file holding a list or a ``{"data": [...]}`` envelope.
        """

        file_path = Path(path)
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SubscriptionSourceError(f"Could not read snapshot file {file_path}: {exc}") from exc

        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list):
            raise SubscriptionSourceError(
                f"Snapshot file {file_path} must contain a list of subscriptions."
            )
        return cls(payload, source=f"file:{file_path.name}")

    def fetch_subscriptions(self, *, limit: int | None = None) -> list[dict[str, Any]]:
        if limit is None:
            return list(self._subscriptions)
        return self._subscriptions[:limit]
