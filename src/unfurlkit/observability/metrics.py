"""
Prometheus collectors shared by the pipeline and the transport.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

import structlog
from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Gauge as _OrigGauge
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import start_http_server

if TYPE_CHECKING:
    from unfurlkit.config.config import MonitoringConfig

logger = structlog.get_logger(__name__)

# Importing this module more than once (module reloads in the test suite)
# must reuse the collectors already held by the default registry.


def _duplicate_safe_factory(metric_cls):
    """Wrap a collector class so re-registering a name hands back the live collector."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        # Counters register under their "_total"-less name as well.
        for candidate in (name, name[: -len("_total")] if name.endswith("_total") else None):
            if candidate is None:
                continue
            existing = _PROM_REGISTRY._names_to_collectors.get(candidate)
            if existing is not None:
                return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Gauge = _duplicate_safe_factory(_OrigGauge)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        # Pipeline
        "snippets_total": Counter(
            "unfurlkit_snippets_total",
            "Total number of snippets produced, by snippet type",
            ["type"],
        ),
        "plugin_failures_total": Counter(
            "unfurlkit_plugin_failures_total",
            "Enrichment branches that failed and fell back to the baseline snippet",
            ["plugin"],
        ),
        "auxiliary_requests_total": Counter(
            "unfurlkit_auxiliary_requests_total",
            "Auxiliary fetches (oEmbed, favicon, linked-data contexts) by outcome",
            ["kind", "outcome"],
        ),
        "scrape_duration_seconds": Histogram(
            "unfurlkit_scrape_duration_seconds",
            "Time taken to turn a fetched page into a snippet",
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
        ),
        # Transport
        "crawler_fetch_latency_seconds": Histogram(
            "unfurlkit_crawler_fetch_latency_seconds",
            "Time taken to receive response headers, including retries",
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
        ),
        "crawler_responses_total": Counter(
            "unfurlkit_crawler_responses_total",
            "Final responses handed to the pipeline, by status class",
            ["status_class"],
        ),
        "crawler_in_flight_requests": Gauge(
            "unfurlkit_crawler_in_flight_requests",
            "Fetches awaiting response headers",
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def record_auxiliary(kind: str, outcome: str) -> None:
    """Count one auxiliary fetch. ``outcome`` is ``success``, ``miss`` or ``error``."""
    METRICS["auxiliary_requests_total"].labels(kind=kind, outcome=outcome).inc()


class MetricsManager:
    """Owns the Prometheus exporter lifecycle."""

    def __init__(self, config: MonitoringConfig) -> None:
        self.config = config
        self._started = False

    def start(self) -> None:
        """Expose /metrics on the configured port; idempotent, and inert without a port."""
        if self._started or not self.config.prometheus_port:
            return
        logger.info("Prometheus exporter listening", port=self.config.prometheus_port)
        start_http_server(self.config.prometheus_port)
        self._started = True

