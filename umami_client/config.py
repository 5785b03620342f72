"""Client configuration via pydantic and pydantic-settings."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from umami_client.models import MetricType, TimeUnit
from umami_client.periods import DEFAULT_PERIOD, classify_period

DEFAULT_TIMEOUT_MS = 5000
MAX_TIMEOUT_MS = 300_000
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:102.0) Gecko/20100101 Firefox/102.0"
)
DEFAULT_TIMEZONE = "America/Toronto"
VERIFY_INTERVAL_S = 60 * 60


def _check_period(value: str) -> str:
    classify_period(value)
    return value


def _clamp_timeout(value: object) -> int:
    try:
        timeout = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT_MS
    if not 1 <= timeout <= MAX_TIMEOUT_MS:
        return DEFAULT_TIMEOUT_MS
    return timeout


class ClientConfig(BaseModel):
    """Explicit defaults consumed by the transport and the resource methods.

    Never read from the environment; build one from :class:`Settings`
    when environment-driven behaviour is wanted.
    """

    model_config = ConfigDict(frozen=True)

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    user_agent: str = DEFAULT_USER_AGENT
    time_period: str = DEFAULT_PERIOD
    time_unit: TimeUnit = TimeUnit.HOUR
    timezone: str = DEFAULT_TIMEZONE
    metric_type: MetricType = MetricType.URL
    legacy_time_params: bool = False
    verify_interval_s: float = VERIFY_INTERVAL_S

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def _timeout_in_range(cls, value: object) -> int:
        return _clamp_timeout(value)

    @field_validator("time_period")
    @classmethod
    def _known_period(cls, value: str) -> str:
        return _check_period(value)

    @field_validator("user_agent")
    @classmethod
    def _non_empty_user_agent(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("user_agent must not be empty")
        return value

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000


class Settings(BaseSettings):
    """Environment-backed settings for the command line entry point."""

    model_config = SettingsConfigDict(
        env_prefix="UMAMI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    server: str = ""
    username: str = ""
    password: str = ""

    # Request defaults
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    user_agent: str = DEFAULT_USER_AGENT
    time_period: str = DEFAULT_PERIOD
    time_unit: TimeUnit = TimeUnit.HOUR
    timezone: str = DEFAULT_TIMEZONE
    metric_type: MetricType = MetricType.URL
    legacy_time_params: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def _timeout_in_range(cls, value: object) -> int:
        return _clamp_timeout(value)

    @field_validator("time_period")
    @classmethod
    def _known_period(cls, value: str) -> str:
        return _check_period(value)

    def client_config(self) -> ClientConfig:
        return ClientConfig(
            timeout_ms=self.timeout_ms,
            user_agent=self.user_agent,
            time_period=self.time_period,
            time_unit=self.time_unit,
            timezone=self.timezone,
            metric_type=self.metric_type,
            legacy_time_params=self.legacy_time_params,
        )
