"""
Configuration constants for the enrichment core.

Environment variable names, per-environment defaults and named profiles.
"""

ENV_PREFIX = "RAGE_"

# Field -> environment variables, first match wins
ENV_VARS = {
    "enabled": ("RAGE_ENABLED",),
    "endpoint": ("RAGE_ENDPOINT", "VECTORIZE_API_URL"),
    "api_key": ("RAGE_API_KEY", "VECTORIZE_JWT_TOKEN"),
    "num_results": ("RAGE_NUM_RESULTS",),
    "rerank": ("RAGE_RERANK",),
    "min_relevance_score": ("RAGE_MIN_RELEVANCE_SCORE",),
    "timeout_ms": ("RAGE_TIMEOUT_MS",),
    "min_timeout_ms": ("RAGE_MIN_TIMEOUT_MS",),
    "max_timeout_ms": ("RAGE_MAX_TIMEOUT_MS",),
    "retry_attempts": ("RAGE_RETRY_ATTEMPTS",),
    "retry_delay_ms": ("RAGE_RETRY_DELAY_MS",),
    "retry_max_delay_ms": ("RAGE_RETRY_MAX_DELAY_MS",),
    "circuit_failure_threshold": ("RAGE_CIRCUIT_FAILURE_THRESHOLD",),
    "circuit_reset_timeout_ms": ("RAGE_CIRCUIT_RESET_TIMEOUT_MS",),
    "circuit_minimum_requests": ("RAGE_CIRCUIT_MINIMUM_REQUESTS",),
    "max_tokens": ("RAGE_MAX_TOKENS",),
    "token_buffer": ("RAGE_TOKEN_BUFFER",),
    "optimization_strategy": ("RAGE_OPTIMIZATION_STRATEGY",),
    "format_style": ("RAGE_FORMAT_STYLE",),
    "cache_ttl": ("RAGE_CACHE_TTL",),
    "log_level": ("RAGE_LOG_LEVEL",),
    "debug": ("RAGE_DEBUG",),
    "correlation_id_prefix": ("RAGE_CORRELATION_ID_PREFIX",),
    "user_agent": ("RAGE_USER_AGENT",),
    "enable_caching": ("RAGE_ENABLE_CACHING",),
    "enable_metrics": ("RAGE_ENABLE_METRICS", "RAGE_METRICS_ENABLED"),
    "enable_audit_log": ("RAGE_ENABLE_AUDIT_LOG",),
    "enable_fallback": ("RAGE_ENABLE_FALLBACK",),
}

ENVIRONMENT_VARS = ("RAGE_ENV", "ENVIRONMENT")
PROFILE_VAR = "RAGE_CONFIG_PROFILE"
DEFAULT_ENVIRONMENT = "production"

ENVIRONMENT_DEFAULTS = {
    "development": {
        "debug": True,
        "log_level": "debug",
        "enable_audit_log": True,
    },
    "test": {
        "enabled": False,
        "log_level": "error",
        "timeout_ms": 1000,
        "enable_caching": False,
        "enable_metrics": False,
    },
    "production": {
        "debug": False,
        "enable_audit_log": True,
        "enable_metrics": True,
    },
}

PROFILES = {
    "performance": {
        "timeout_ms": 3000,
        "retry_attempts": 1,
        "num_results": 3,
        "cache_ttl": 600,
        "enable_metrics": False,
    },
    "security": {
        "debug": False,
        "log_level": "warn",
        "enable_audit_log": True,
        "enable_metrics": True,
    },
}

HEALTH_CHECK_QUERY = "health check test query"
