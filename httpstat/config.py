"""
Runtime configuration for httpstat.

Every setting can be overridden with an HTTPSTAT_-prefixed environment variable
(e.g. HTTPSTAT_METRICS_ENABLED=false) or a .env file.
"""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HTTPSTAT_", env_file=".env", extra="ignore")

    # Record Prometheus metrics from measure() / observe_result()
    metrics_enabled: bool = True
    # Tracing network backends resolve host names themselves so DNS time is
    # reported separately from TCP connect time
    resolve_dns: bool = True
    # observe_result() warns when a request's Total exceeds this
    slow_request_threshold_ms: int = 2000
    log_level: str = "WARNING"


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Set the httpstat package logger level (defaults to settings.log_level)."""
    logging.getLogger("httpstat").setLevel((level or settings.log_level).upper())
