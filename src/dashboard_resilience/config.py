"""
Configuration model for the dashboard resilience core.

Every setting is optional. Defaults reproduce the thresholds observed in
production (escalate at the 2nd retry, stop offering retry after 3, auto
remove on the 5th failure); they are product decisions and can be changed
per deployment through a YAML file or ``RESILIENCE_*`` environment
variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ConfigurationError
from .models import LogLevel

logger = logging.getLogger("dashboard-resilience")

ENV_PREFIX = "RESILIENCE_"

# env var suffix -> (section, field)
_ENV_FIELDS: dict[str, tuple[str, str]] = {
    "MAX_ENTRIES": ("logging", "max_entries"),
    "CONSOLE_OUTPUT": ("logging", "console_output"),
    "MONITORING_ENABLED": ("logging", "monitoring_enabled"),
    "MONITORING_DSN": ("logging", "monitoring_dsn"),
    "MONITORING_ENVIRONMENT": ("logging", "monitoring_environment"),
    "MONITORING_RELEASE": ("logging", "monitoring_release"),
    "MONITORING_SAMPLE_RATE": ("logging", "monitoring_sample_rate"),
    "MONITORING_LEVEL": ("logging", "monitoring_level"),
    "WIDGET_MAX_RETRIES": ("widgets", "max_retries"),
    "RETRY_DELAY_MS": ("widgets", "retry_delay_ms"),
    "ESCALATION_THRESHOLD": ("widgets", "escalation_threshold"),
    "AUTO_REMOVE_AFTER_FAILURES": ("widgets", "auto_remove_after_failures"),
    "MAX_RETRIES": ("recovery", "max_retries"),
    "INITIAL_DELAY": ("recovery", "initial_delay"),
    "EXPONENTIAL_BACKOFF": ("recovery", "exponential_backoff"),
    "FALLBACK_LOG_CAPACITY": ("recovery", "fallback_log_capacity"),
    "WEBHOOK_URL": ("recovery", "webhook_url"),
    "WEBHOOK_TIMEOUT": ("recovery", "webhook_timeout"),
}


class LoggingConfig(BaseModel):
    """Structured logger settings."""

    max_entries: int = Field(
        default=1000,
        ge=1,
        description="Maximum log entries kept before oldest-first eviction"
    )
    console_output: bool = Field(
        default=False,
        description="Mirror every structured entry to the stdlib logger"
    )
    monitoring_enabled: bool = Field(
        default=False,
        description="Forward logged faults to Sentry"
    )
    monitoring_dsn: str | None = Field(
        default=None,
        description="Sentry DSN; monitoring stays off without one"
    )
    monitoring_environment: str = Field(
        default="development",
        description="Environment name reported with every event"
    )
    monitoring_release: str | None = Field(
        default=None,
        description="Release version reported with every event"
    )
    monitoring_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Fraction of events sent to the monitor"
    )
    monitoring_level: LogLevel = Field(
        default=LogLevel.ERROR,
        description="Lowest log level forwarded to the monitor"
    )


class WidgetRecoveryConfig(BaseModel):
    """Per-widget failure policy."""

    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retry is offered while retry_count is below this value"
    )
    retry_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Suggested delay before a UI-initiated retry"
    )
    escalation_threshold: int = Field(
        default=2,
        ge=1,
        description="retry_count at which a widget's severity becomes HIGH"
    )
    auto_remove_after_failures: int = Field(
        default=5,
        ge=1,
        description="Failure number on which the auto-remove callback fires"
    )


class RecoveryConfig(BaseModel):
    """Recovery orchestrator settings."""

    max_retries: int = Field(
        default=3,
        ge=0,
        description="Default restoration attempts for scheduled retries"
    )
    initial_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds to wait before the first restoration attempt"
    )
    exponential_backoff: bool = Field(
        default=True,
        description="Double the delay after every failed attempt"
    )
    fallback_log_capacity: int = Field(
        default=5000,
        ge=1,
        description="Entries kept by the in-memory fallback logger"
    )
    webhook_url: str | None = Field(
        default=None,
        description="Endpoint for webhook developer notifications"
    )
    webhook_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Seconds before a webhook notification times out"
    )


class ResilienceConfig(BaseModel):
    """Top-level configuration for all three collaborators."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    widgets: WidgetRecoveryConfig = Field(default_factory=WidgetRecoveryConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)

    @model_validator(mode="after")
    def check_widget_thresholds(self) -> "ResilienceConfig":
        widgets = self.widgets
        if widgets.escalation_threshold > widgets.auto_remove_after_failures:
            logger.warning(
                f"escalation_threshold ({widgets.escalation_threshold}) is above "
                f"auto_remove_after_failures ({widgets.auto_remove_after_failures}); "
                "widgets will be removed before they ever reach HIGH severity"
            )
        return self


def _env_overrides(environ: dict[str, str]) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {}
    for suffix, (section, field_name) in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is None or value == "":
            continue
        overrides.setdefault(section, {})[field_name] = value
    return overrides


def load_config(
    path: Path | str | None = None,
    environ: dict[str, str] | None = None,
    use_dotenv: bool = True,
) -> ResilienceConfig:
    """Load configuration from an optional YAML file plus the environment.

    Environment variables win over the file. A missing file is not an
    error; the defaults are used instead.

    Args:
        path: Optional YAML file with ``logging``/``widgets``/``recovery`` sections
        environ: Environment mapping (defaults to ``os.environ``)
        use_dotenv: Load a ``.env`` file into the process environment first

    Returns:
        Validated ResilienceConfig

    Raises:
        ConfigurationError: If the file is malformed or a value is invalid
    """
    if use_dotenv and environ is None:
        load_dotenv()
    environ = dict(os.environ if environ is None else environ)

    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            try:
                with open(config_path, encoding="utf-8") as fh:
                    loaded = yaml.safe_load(fh)
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"Failed to read configuration file {config_path}: {e}",
                    details={"path": str(config_path)},
                ) from e
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ConfigurationError(
                    f"Configuration file {config_path} must contain a mapping",
                    details={"path": str(config_path)},
                )
            data = loaded
            logger.debug(f"Loaded resilience configuration from {config_path}")
        else:
            logger.info(f"No configuration file at {config_path}, using defaults")

    for section, values in _env_overrides(environ).items():
        merged = dict(data.get(section) or {})
        merged.update(values)
        data[section] = merged

    try:
        return ResilienceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid resilience configuration: {e}",
            details={"errors": e.errors(include_url=False)},
        ) from e


__all__ = [
    "ENV_PREFIX",
    "LoggingConfig",
    "WidgetRecoveryConfig",
    "RecoveryConfig",
    "ResilienceConfig",
    "load_config",
]
