"""
Compute one subscription metric from the command line and print JSON.

Examples:
    python -m scripts.run_metrics churn_rate --snapshot subs.json --period-days 30
    python -m scripts.run_metrics ltv --limit 500 --explain
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime

from app.config import get_llm_settings
from app.connectors.base import SubscriptionSourceError
from app.connectors.stripe_connector import StaticSubscriptionSource
from app.services.metrics_service import (
    SubscriptionMetricsService,
    get_subscription_metrics_service,
)
from kpi import METRIC_CALCULATORS
from kpi.errors import MetricsError
from llm_synthesis.explanation import build_explainer


def _parse_as_of(value: str) -> int | datetime:
    if value.isdigit():
        return int(value)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute a subscription metric.")
    parser.add_argument("metric", choices=sorted(METRIC_CALCULATORS))
    parser.add_argument(
        "--snapshot",
        help="JSON file with a list of subscriptions (or a {'data': [...]} envelope). "
        "Defaults to fetching from the billing API.",
    )
    parser.add_argument("--limit", type=int, default=None, help="Maximum subscriptions to fetch.")
    parser.add_argument("--currency", default=None)
    parser.add_argument("--include-trials", action="store_true", dest="include_trial_subscriptions")
    parser.add_argument("--period-days", type=int, default=None)
    parser.add_argument("--growth-period-days", type=int, default=None)
    parser.add_argument("--churn-period-days", type=int, default=None)
    parser.add_argument("--as-of", type=_parse_as_of, default=None, help="Epoch seconds or ISO-8601.")
    parser.add_argument("--explain", action="store_true")
    return parser


def _metric_params(args: argparse.Namespace) -> dict:
    params = {
        "currency": args.currency,
        "period_days": args.period_days,
        "growth_period_days": args.growth_period_days,
        "churn_period_days": args.churn_period_days,
        "as_of": args.as_of,
    }
    if args.include_trial_subscriptions:
        params["include_trial_subscriptions"] = True
    return {key: value for key, value in params.items() if value is not None}


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s [%(name)s] %(message)s")
    args = build_parser().parse_args(argv)

    try:
        if args.snapshot:
            source = StaticSubscriptionSource.from_json_file(args.snapshot)
            service = SubscriptionMetricsService(source, build_explainer(get_llm_settings()))
        else:
            service = get_subscription_metrics_service()
        outcome = service.compute(
            args.metric,
            _metric_params(args),
            limit=args.limit,
            explain=args.explain,
        )
    except (MetricsError, SubscriptionSourceError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(outcome.to_dict(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
