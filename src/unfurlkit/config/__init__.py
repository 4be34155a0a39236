"""Configuration models and the lazily loaded global ``settings``."""

from .config import Config, CrawlerConfig, ExtractionSettings, LazyConfig, MonitoringConfig, settings

__all__ = ["Config", "CrawlerConfig", "ExtractionSettings", "LazyConfig", "MonitoringConfig", "settings"]
