"""
Configuration management for unfurlkit using Pydantic.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, ClassVar, Optional, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Logging ---
log = logging.getLogger(__name__)

# --- Sections ---


class CrawlerConfig(BaseModel):
    """HTTP transport configuration."""

    timeout: float = Field(default=30.0, gt=0, description="Time allowed to receive response headers, in seconds.")
    max_retries: int = Field(default=3, ge=0, description="Maximum retry attempts for failed requests.")
    user_agent: str = Field(
        default="unfurlkit/0.1 (+https://github.com/unfurlkit/unfurlkit)",
        description="User-Agent string for HTTP requests.",
    )
    chunk_size: int = Field(default=16 * 1024, gt=0, description="Size of body chunks read from the network.")
    max_redirects: int = Field(default=10, ge=0, description="Maximum redirects followed per request.")


class ExtractionSettings(BaseModel):
    """Configuration for the extraction plugins and the fusion engine."""

    preferred_icon_size: int = Field(default=32, gt=0, description="Icon edge length, in pixels, to aim for.")
    fallback_on_favicon: bool = Field(
        default=True, description="Probe /favicon.ico when a page declares no icons."
    )
    tee_buffer_chunks: int = Field(
        default=64, ge=1, description="Chunks a forked branch may run ahead of its sibling."
    )
    oembed_max_bytes: int = Field(default=1024 * 1024, gt=0, description="Largest oEmbed document read.")
    max_remote_contexts: int = Field(
        default=4, ge=0, description="Remote linked-data contexts fetched per document."
    )
    exiftool_path: str = Field(default="exiftool", description="exiftool executable.")
    exiftool_timeout: float = Field(default=10.0, gt=0, description="Seconds allowed for one exiftool run.")
    exif_max_bytes: int = Field(
        default=8 * 1024 * 1024, gt=0, description="Bytes piped to exiftool before the input is closed."
    )
    concurrent_html: bool = Field(
        default=True,
        description="Tokenize HTML on a forked branch and keep the rest of the chain running.",
    )


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="WARNING", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(
        default=None,
        description="JSON log file; console logs go to stderr when unset.",
    )
    prometheus_port: int | None = Field(
        default=None,
        description="Port of the Prometheus exporter; disabled when unset.",
    )

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()

    @field_validator("log_file", mode="before")
    @classmethod
    def ensure_log_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        Path(v).parent.mkdir(parents=True, exist_ok=True)
        return str(v)


# --- Root model ---


class Config(BaseSettings):
    project_name: str = "unfurlkit"
    version: str = "0.1.0"
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="UNFURL_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        """Build a config from a YAML file; environment variables still apply on top."""
        log.debug("Reading unfurlkit configuration from %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"No configuration file at {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not data:
            log.warning("Configuration file %s is empty, using defaults", path)
            data = {}
        return cls.model_validate(data)


CONFIG_FILE_NAMES = ("unfurlkit.yaml", "unfurlkit.yml")


def find_config_file() -> Path | None:
    """First ``unfurlkit.yaml``/``unfurlkit.yml`` in the working directory."""
    for name in CONFIG_FILE_NAMES:
        candidate = Path.cwd() / name
        if candidate.exists():
            return candidate
    return None


# --- Global settings proxy ---


class LazyConfig:
    """
    Stand-in for ``Config`` that loads it on first attribute access, so a
    broken configuration file is reported when settings are used rather than
    when unfurlkit is imported.
    """

    _config: ClassVar[Optional[Config]] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        cls = self.__class__
        if cls._config is None:
            with cls._lock:
                if cls._config is None:
                    cls._config = self._load()
        return getattr(cls._config, name)

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded configuration; the next access reloads it."""
        with cls._lock:
            cls._config = None

    def _load(self) -> Config:
        path = find_config_file()
        if path is None:
            log.debug("No unfurlkit configuration file found, using defaults")
        else:
            try:
                log.info("Loading unfurlkit configuration from %s", path)
                return Config.from_yaml(path)
            except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
                log.error("Invalid configuration in %s, using defaults instead: %s", path, e)

        try:
            return Config()
        except ValidationError as e:
            log.critical("Default configuration is invalid: %s", e)
            raise RuntimeError(f"Default configuration is invalid: {e}") from e


settings: "Config" = cast("Config", LazyConfig())
