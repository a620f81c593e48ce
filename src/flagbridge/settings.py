"""
Provider configuration.

``ProviderSettings`` reads from ``FLAGBRIDGE_*`` environment variables and
``.env`` files. Nested options use ``__``, e.g.
``FLAGBRIDGE_REMOTE__CACHE_TTL_SECONDS=30``.

Manifesto:
    Configuration mistakes are fatal at construction, never at evaluation.

    - **Validated once:** Local and remote options are mutually exclusive
    - **Environment-driven:** Works from env vars alone in deployment
    - **Explicit in tests:** Every field can be passed as a keyword

Examples:
    >>> settings = ProviderSettings(deployment_key="server-abc", remote=RemoteEvaluationOptions())
    >>> settings.evaluation_mode
    <EvaluationMode.REMOTE: 'remote'>

Tags:
    settings, configuration, pydantic, environment, flagbridge
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EvaluationMode(str, Enum):
    """Where variants are computed."""

    LOCAL = "local"     # Flag configs polled, evaluated in process
    REMOTE = "remote"   # Every evaluation asks the assignment service


class LocalEvaluationOptions(BaseModel):
    """Options for a locally evaluating assignment client."""

    flag_config_poll_interval_seconds: float = Field(default=30.0, gt=0)


class RemoteEvaluationOptions(BaseModel):
    """Options for a remotely evaluating assignment client."""

    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    cache_enabled: bool = True
    cache_ttl_seconds: int = Field(default=60, gt=0)
    cache_max_size: int = Field(default=10_000, gt=0)


class ProviderSettings(BaseSettings):
    """
    Settings for :class:`flagbridge.provider.ExperimentProvider`.

    Fields
    ──────
    deployment_key : Assignment service deployment key (required, non-empty)
    local          : Local evaluation options (exclusive with ``remote``)
    remote         : Remote evaluation options (exclusive with ``local``)
    extra_aliases  : Extra attribute spellings → canonical key names
    log_level      : Structlog log level
    log_format     : ``json`` or ``console``
    """

    model_config = SettingsConfigDict(
        env_prefix="FLAGBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    deployment_key: str = ""

    # ── Evaluation mode ──────────────────────────────────────────
    local: LocalEvaluationOptions | None = None
    remote: RemoteEvaluationOptions | None = None

    # ── Normalization ────────────────────────────────────────────
    extra_aliases: dict[str, str] = Field(default_factory=dict)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @model_validator(mode="after")
    def _validate_mode(self) -> ProviderSettings:
        if self.local is not None and self.remote is not None:
            raise ValueError(
                "local and remote evaluation options are mutually exclusive"
            )
        return self

    @property
    def evaluation_mode(self) -> EvaluationMode:
        return EvaluationMode.REMOTE if self.remote is not None else EvaluationMode.LOCAL

    @property
    def evaluation_options(self) -> LocalEvaluationOptions | RemoteEvaluationOptions:
        """Options for the active mode; local defaults when neither is set."""
        if self.remote is not None:
            return self.remote
        return self.local if self.local is not None else LocalEvaluationOptions()

    @property
    def json_logs(self) -> bool:
        return self.log_format.lower() == "json"


__all__ = [
    "EvaluationMode",
    "LocalEvaluationOptions",
    "RemoteEvaluationOptions",
    "ProviderSettings",
]
