"""
Tests for logging setup and the Prometheus exporter lifecycle.
"""

import json
import logging

import pytest
import structlog
from unfurlkit.config import MonitoringConfig
from unfurlkit.observability import MetricsManager, configure_logging, record_auxiliary
from unfurlkit.observability import metrics as metrics_module
from unfurlkit.observability.logging import drop_duplicate_url

from tests.helpers import metric_delta


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.unit
class TestLogging:
    def test_drop_duplicate_url(self):
        event = {"event": "x", "url": "https://a.example/", "scrape_url": "https://a.example/"}

        assert "scrape_url" not in drop_duplicate_url(None, "info", event)

    def test_keeps_distinct_scrape_url(self):
        event = {"event": "x", "url": "https://a.example/oembed", "scrape_url": "https://a.example/"}

        assert drop_duplicate_url(None, "info", event)["scrape_url"] == "https://a.example/"

    def test_file_output_is_json(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "unfurlkit.log"
        configure_logging(MonitoringConfig(log_level="INFO", log_file=str(log_file)))

        structlog.get_logger("unfurlkit.test").info("Snippet produced", type="html")
        for handler in logging.getLogger().handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        produced = [r for r in records if r["event"] == "Snippet produced"]
        assert produced[0]["type"] == "html"
        assert produced[0]["level"] == "info"
        assert produced[0]["logger"] == "unfurlkit.test"

    def test_level_filters(self, tmp_path, restore_logging):
        log_file = tmp_path / "unfurlkit.log"
        configure_logging(MonitoringConfig(log_level="ERROR", log_file=str(log_file)))

        structlog.get_logger("unfurlkit.test").warning("quiet")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "quiet" not in log_file.read_text()


@pytest.mark.unit
class TestMetricsManager:
    def test_without_port_is_inert(self, monkeypatch):
        calls = []
        monkeypatch.setattr(metrics_module, "start_http_server", calls.append)

        MetricsManager(MonitoringConfig()).start()

        assert calls == []

    def test_starts_once(self, monkeypatch):
        calls = []
        monkeypatch.setattr(metrics_module, "start_http_server", calls.append)
        manager = MetricsManager(MonitoringConfig(prometheus_port=9109))

        manager.start()
        manager.start()

        assert calls == [9109]

    def test_record_auxiliary(self):
        child = metrics_module.METRICS["auxiliary_requests_total"].labels(kind="favicon", outcome="miss")

        with metric_delta(child):
            record_auxiliary("favicon", "miss")
