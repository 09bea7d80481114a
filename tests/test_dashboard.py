"""Tests for the Flask stats endpoints."""

from datetime import datetime, timezone

import pytest

from udplog.dashboard import create_dashboard_app
from udplog.error_tracker import ErrorTracker
from udplog.file_manager import FileManager
from udplog.formatter import (
    DEFAULT_FILE_NAME_FORMAT,
    compile_file_name_template,
    compile_template,
)
from udplog.metrics import Metrics
from udplog.parser import parse_line


@pytest.fixture
def metrics():
    m = Metrics()
    m.record_event("dev1", "I")
    m.record_event("dev1", "I")
    m.record_event("dev2", "E")
    m.record_parse_error("invalid_level")
    return m


@pytest.fixture
def error_tracker():
    tracker = ErrorTracker(max_size=100)
    tracker.add("dev 1 1 1 x|m", "10.0.0.7:4242", "invalid_level", "invalid level: b'x'")
    return tracker


@pytest.fixture
def client(metrics, error_tracker):
    app = create_dashboard_app(metrics, error_tracker)
    app.config["TESTING"] = True
    return app.test_client()


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"


class TestStatsEndpoint:
    def test_stats_returns_metrics(self, client):
        resp = client.get("/stats")
        assert resp.status_code == 200
        data = resp.get_json()

        assert data["records_received"] == 3
        assert data["level_distribution"] == {"I": 2, "E": 1}
        assert data["parse_errors"] == {"invalid_level": 1}
        assert data["devices_seen"] == 2
        assert data["open_files"] == 0

    def test_stats_includes_recent_errors(self, client):
        data = client.get("/stats").get_json()
        assert len(data["recent_errors"]) == 1
        assert data["recent_errors"][0]["kind"] == "invalid_level"

    def test_stats_with_file_manager(self, tmp_path, metrics, error_tracker):
        fm = FileManager(
            str(tmp_path),
            compile_template("{{ msg }}", "file"),
            compile_file_name_template(DEFAULT_FILE_NAME_FORMAT),
        )
        ts = datetime(2022, 1, 2, tzinfo=timezone.utc)
        fm.write_line(parse_line(b"dev1 1 1 1 2|m", "h:1", ts))
        app = create_dashboard_app(metrics, error_tracker, fm)
        try:
            data = app.test_client().get("/stats").get_json()
        finally:
            fm.close()

        assert data["open_files"] == 1
        assert data["file_open_errors"] == 0
        assert data["file_write_errors"] == 0
        assert data["file_render_errors"] == 0


class TestUnknownRoute:
    def test_404(self, client):
        assert client.get("/").status_code == 404
