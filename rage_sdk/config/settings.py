"""
Resolved configuration for the enrichment core.

``RageConfig`` is validated once, frozen, and handed to every component
that needs it. Invalid values fail at construction with
``ConfigurationError``.
"""

import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

from ..reliability.circuit_breaker import CircuitBreakerConfig
from ..reliability.error_handler import ErrorHandlerConfig
from ..reliability.errors import ConfigurationError
from ..reliability.retry import RetryPolicy
from ..reliability.timeout import TimeoutConfig
from .constants import (
    DEFAULT_ENVIRONMENT,
    ENV_VARS,
    ENVIRONMENT_DEFAULTS,
    ENVIRONMENT_VARS,
    PROFILE_VAR,
    PROFILES,
)

logger = logging.getLogger(__name__)

JWT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")
PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,20}$")


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Keep the first and last four characters of a secret."""
    if not value:
        return value
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}***{value[-4:]}"


class RageConfig(BaseModel):
    """Immutable configuration snapshot."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(False, description="Master switch for enrichment")
    environment: str = Field(DEFAULT_ENVIRONMENT, description="Deployment environment")

    # Retrieval service
    endpoint: Optional[str] = Field(None, description="Retrieval endpoint URL")
    api_key: Optional[str] = Field(None, description="Bearer token (JWT)")
    num_results: int = Field(5, ge=1, le=20)
    user_agent: str = "rage-sdk/0.1"

    # Relevance
    rerank: bool = True
    min_relevance_score: float = Field(0.7, ge=0.0, le=1.0)

    # Timeouts
    timeout_ms: int = Field(5000, ge=1000, le=30000)
    min_timeout_ms: int = Field(100, ge=1)
    max_timeout_ms: int = Field(30000, ge=1)

    # Retry
    retry_attempts: int = Field(2, ge=0, le=5)
    retry_delay_ms: int = Field(1000, ge=100, le=10000)
    retry_max_delay_ms: int = Field(10000, ge=100, le=60000)

    # Circuit breaker
    circuit_failure_threshold: int = Field(5, ge=1)
    circuit_reset_timeout_ms: int = Field(60000, ge=1000)
    circuit_minimum_requests: int = Field(10, ge=1)

    # Formatting and token budget
    max_tokens: int = Field(3000, ge=100)
    token_buffer: int = Field(200, ge=0)
    optimization_strategy: str = Field("document_selection", pattern="^(document_selection|text_truncation)$")
    format_style: str = Field("standard", pattern="^(standard|detailed|compact)$")

    # Operational
    cache_ttl: int = Field(300, ge=0, le=3600, description="Context cache TTL in seconds")
    log_level: str = Field("info", pattern="^(error|warn|warning|info|debug|verbose)$")
    debug: bool = False
    correlation_id_prefix: str = "rage"
    enable_caching: bool = True
    enable_metrics: bool = True
    enable_audit_log: bool = False
    enable_fallback: bool = True

    @field_validator("endpoint")
    @classmethod
    def _validate_endpoint(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("endpoint must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def _validate_api_key(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not JWT_PATTERN.match(value):
            raise ValueError("api_key must be a JWT (three base64url segments)")
        return value

    @field_validator("correlation_id_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        if not PREFIX_PATTERN.match(value):
            raise ValueError("correlation_id_prefix must be 1-20 alphanumeric, '_' or '-' characters")
        return value

    @model_validator(mode="after")
    def _validate_consistency(self) -> "RageConfig":
        if self.enabled:
            missing = [name for name in ("endpoint", "api_key") if not getattr(self, name)]
            if missing:
                raise ValueError(f"missing required settings while enabled: {', '.join(missing)}")
        if self.min_timeout_ms > self.max_timeout_ms:
            raise ValueError("min_timeout_ms must not exceed max_timeout_ms")
        if not self.min_timeout_ms <= self.timeout_ms <= self.max_timeout_ms:
            raise ValueError("timeout_ms must lie within [min_timeout_ms, max_timeout_ms]")
        if self.token_buffer >= self.max_tokens:
            raise ValueError("token_buffer must be smaller than max_tokens")
        return self

    @model_validator(mode="wrap")
    @classmethod
    def _raise_configuration_error(
        cls,
        data: Any,
        handler: ValidatorFunctionWrapHandler,
    ) -> "RageConfig":
        try:
            return handler(data)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ConfigurationError(
                f"Invalid configuration: {'; '.join(errors)}",
                errors=errors,
            ) from e

    @classmethod
    def build(cls, **values: Any) -> "RageConfig":
        """Construct and validate, raising ``ConfigurationError`` on failure."""
        return cls(**values)

    @classmethod
    def from_env(
        cls,
        environment: Optional[str] = None,
        profile: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "RageConfig":
        """
        Resolve configuration from environment variables.

        Precedence, lowest first: field defaults, environment defaults,
        profile, environment variables, keyword overrides.

        Args:
            environment: development, test or production; read from
                ``RAGE_ENV``/``ENVIRONMENT`` when omitted
            profile: Optional named profile (performance, security)
            env: Mapping to read instead of ``os.environ``
            **overrides: Explicit field values

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: On unknown environment/profile or invalid values
        """
        env = os.environ if env is None else env
        environment = environment or next(
            (env[name] for name in ENVIRONMENT_VARS if env.get(name)), DEFAULT_ENVIRONMENT
        )
        profile = profile or env.get(PROFILE_VAR) or None

        if environment not in ENVIRONMENT_DEFAULTS:
            raise ConfigurationError(f"Unknown environment: {environment}")
        if profile is not None and profile not in PROFILES:
            raise ConfigurationError(f"Unknown configuration profile: {profile}")

        values: Dict[str, Any] = {"environment": environment}
        values.update(ENVIRONMENT_DEFAULTS[environment])
        if profile:
            values.update(PROFILES[profile])
        values.update(read_env(env))
        values.update(overrides)

        config = cls.build(**values)
        logger.debug(
            "Configuration resolved",
            extra={"environment": environment, "profile": profile, "enabled": config.enabled}
        )
        return config

    def error_handler_config(self) -> ErrorHandlerConfig:
        """Resilience settings in seconds."""
        return ErrorHandlerConfig(
            timeout=TimeoutConfig(
                default_timeout=self.timeout_ms / 1000,
                min_timeout=self.min_timeout_ms / 1000,
                max_timeout=self.max_timeout_ms / 1000,
            ),
            retry=RetryPolicy(
                max_attempts=self.retry_attempts,
                base_delay=self.retry_delay_ms / 1000,
                max_delay=max(self.retry_max_delay_ms, self.retry_delay_ms) / 1000,
            ),
            circuit_breaker=CircuitBreakerConfig(
                failure_threshold=self.circuit_failure_threshold,
                reset_timeout=self.circuit_reset_timeout_ms / 1000,
                minimum_requests=self.circuit_minimum_requests,
            ),
            fallback_enabled=self.enable_fallback,
        )

    @property
    def token_target(self) -> int:
        return self.max_tokens - self.token_buffer

    def masked(self) -> Dict[str, Any]:
        """Configuration as a dict with the api key masked."""
        data = self.model_dump()
        data["api_key"] = mask_secret(self.api_key)
        return data

    def summary(self) -> Dict[str, Any]:
        return {
            "status": "enabled" if self.enabled else "disabled",
            "environment": self.environment,
            "features": {
                "caching": self.enable_caching,
                "metrics": self.enable_metrics,
                "audit_log": self.enable_audit_log,
                "fallback": self.enable_fallback,
                "rerank": self.rerank,
                "debug": self.debug,
            },
            "performance": {
                "timeout_ms": self.timeout_ms,
                "retry_attempts": self.retry_attempts,
                "num_results": self.num_results,
                "cache_ttl": self.cache_ttl,
                "max_tokens": self.max_tokens,
            },
            "api": {
                "endpoint_configured": bool(self.endpoint),
                "api_key_configured": bool(self.api_key),
            },
        }


def read_env(env: Mapping[str, str]) -> Dict[str, str]:
    """Collect raw field values from environment variables."""
    values = {}
    for field_name, names in ENV_VARS.items():
        for name in names:
            raw = env.get(name)
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()
                break
    return values


def get_recommendations(config: RageConfig) -> List[Dict[str, str]]:
    """Advisory notes about a configuration; never blocking."""
    recommendations = []
    if config.timeout_ms > 10000:
        recommendations.append({
            "category": "performance",
            "message": "Timeout above 10s can stall message handling",
            "suggestion": "Lower RAGE_TIMEOUT_MS to 5000 or less",
        })
    if config.num_results > 10:
        recommendations.append({
            "category": "performance",
            "message": "Retrieving more than 10 results inflates context size",
            "suggestion": "Lower RAGE_NUM_RESULTS",
        })
    if config.environment == "production" and config.debug:
        recommendations.append({
            "category": "security",
            "message": "Debug mode is on in production",
            "suggestion": "Set RAGE_DEBUG=false",
        })
    if config.environment == "production" and not config.enable_audit_log:
        recommendations.append({
            "category": "security",
            "message": "Audit logging is off in production",
            "suggestion": "Set RAGE_ENABLE_AUDIT_LOG=true",
        })
    if config.min_relevance_score < 0.5:
        recommendations.append({
            "category": "quality",
            "message": "Relevance threshold below 0.5 admits weak matches",
            "suggestion": "Raise RAGE_MIN_RELEVANCE_SCORE",
        })
    if config.enabled and config.cache_ttl == 0:
        recommendations.append({
            "category": "performance",
            "message": "Caching is effectively disabled",
            "suggestion": "Set RAGE_CACHE_TTL above 0",
        })
    return recommendations
