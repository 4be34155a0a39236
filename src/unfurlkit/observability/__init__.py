"""Logging and metrics for unfurlkit."""

from .logging import configure_logging
from .metrics import METRICS, MetricsManager, record_auxiliary

__all__ = ["configure_logging", "METRICS", "MetricsManager", "record_auxiliary"]
