"""
tests/test_scripts.py

Command-line entry points: metric runner and container health probe.
"""

from __future__ import annotations

import io
import json
from urllib.error import URLError

import pytest

from conftest import NOW, build_subscription
from scripts import healthcheck, run_metrics


@pytest.fixture()
def snapshot_file(tmp_path):
    path = tmp_path / "subs.json"
    path.write_text(
        json.dumps([build_subscription("a", unit_amount=2500, quantity=2)]),
        encoding="utf-8",
    )
    return path


class TestRunMetrics:
    def test_prints_result_json(self, snapshot_file, capsys) -> None:
        exit_code = run_metrics.main(["mrr", "--snapshot", str(snapshot_file), "--as-of", str(NOW)])
        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["result"]["total_mrr"] == 50.0
        assert output["subscriptions_fetched"] == 1

    def test_iso_as_of(self, snapshot_file, capsys) -> None:
        run_metrics.main(
            ["churn_rate", "--snapshot", str(snapshot_file), "--as-of", "2023-11-14T22:13:20Z"]
        )
        output = json.loads(capsys.readouterr().out)
        assert output["result"]["calculated_at"] == "2023-11-14T22:13:20.000Z"

    def test_calculation_error_exits_non_zero(self, tmp_path, capsys) -> None:
        path = tmp_path / "empty.json"
        path.write_text("[]", encoding="utf-8")
        assert run_metrics.main(["arpu", "--snapshot", str(path)]) == 1
        assert "No subscription data" in capsys.readouterr().err

    def test_unknown_metric_is_rejected_by_argparse(self) -> None:
        with pytest.raises(SystemExit):
            run_metrics.main(["nps"])


class _FakeHTTPResponse(io.BytesIO):
    def __init__(self, status: int, body: dict) -> None:
        super().__init__(json.dumps(body).encode("utf-8"))
        self.status = status


class TestHealthcheck:
    def test_healthy(self, monkeypatch) -> None:
        monkeypatch.setattr(healthcheck, "urlopen", lambda url, timeout: _FakeHTTPResponse(200, {"status": "ok"}))
        assert healthcheck.main() == 0

    def test_unhealthy_payload(self, monkeypatch) -> None:
        monkeypatch.setattr(healthcheck, "urlopen", lambda url, timeout: _FakeHTTPResponse(200, {"status": "degraded"}))
        assert healthcheck.main() == 1

    def test_unreachable(self, monkeypatch) -> None:
        def _refuse(url, timeout):
            raise URLError("connection refused")

        monkeypatch.setattr(healthcheck, "urlopen", _refuse)
        assert healthcheck.main() == 1
