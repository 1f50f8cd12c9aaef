"""Unit tests for configuration resolution and validation."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from rage_sdk.config.settings import RageConfig, get_recommendations, mask_secret, read_env
from rage_sdk.reliability.errors import ConfigurationError
from tests.conftest import TEST_ENDPOINT, TEST_JWT


@pytest.fixture
def enabled_env():
    return {
        "RAGE_ENABLED": "true",
        "RAGE_ENDPOINT": TEST_ENDPOINT + "/",
        "RAGE_API_KEY": TEST_JWT,
    }


class TestRageConfigValidation:

    def test_defaults(self):
        config = RageConfig()
        assert config.enabled is False
        assert config.num_results == 5
        assert config.timeout_ms == 5000
        assert config.min_relevance_score == 0.7
        assert config.token_target == 2800

    def test_enabled_requires_endpoint_and_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RageConfig.build(enabled=True)
        assert "endpoint" in str(exc_info.value)
        assert "api_key" in str(exc_info.value)

    def test_endpoint_trailing_slash_stripped(self):
        assert RageConfig.build(endpoint=TEST_ENDPOINT + "/").endpoint == TEST_ENDPOINT

    @pytest.mark.parametrize("field,value", [
        ("endpoint", "ftp://retrieval.example.com"),
        ("endpoint", "not a url"),
        ("api_key", "plain-secret"),
        ("correlation_id_prefix", "bad prefix!"),
        ("correlation_id_prefix", "x" * 21),
        ("timeout_ms", 500),
        ("timeout_ms", 60000),
        ("num_results", 0),
        ("num_results", 21),
        ("retry_attempts", 6),
        ("min_relevance_score", 1.5),
        ("format_style", "fancy"),
        ("optimization_strategy", "summarize"),
        ("log_level", "loud"),
        ("cache_ttl", 7200),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ConfigurationError) as exc_info:
            RageConfig.build(**{field: value})
        assert any(field in error for error in exc_info.value.errors)

    def test_token_buffer_must_be_below_max_tokens(self):
        with pytest.raises(ConfigurationError):
            RageConfig.build(max_tokens=500, token_buffer=500)

    def test_unknown_field_rejected(self):
        with pytest.raises(ConfigurationError):
            RageConfig.build(colour="blue")

    def test_configuration_error_is_not_retryable(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RageConfig.build(num_results=0)
        assert exc_info.value.retryable is False

    def test_constructor_raises_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RageConfig(num_results=0)
        assert isinstance(exc_info.value.__cause__, PydanticValidationError)
        assert exc_info.value.errors == ["num_results: Input should be greater than or equal to 1"]

    @pytest.mark.parametrize("values", [
        {"timeout_ms": 5000, "max_timeout_ms": 2000},
        {"timeout_ms": 1000, "min_timeout_ms": 2000},
    ])
    def test_timeout_must_lie_within_bounds(self, values):
        with pytest.raises(ConfigurationError) as exc_info:
            RageConfig(**values)
        assert "timeout_ms must lie within" in str(exc_info.value)

    def test_timeout_at_upper_bound_accepted(self):
        timeout = RageConfig(timeout_ms=2000, max_timeout_ms=2000).error_handler_config().timeout
        assert timeout.default_timeout == 2.0
        assert timeout.max_timeout == 2.0

    def test_config_is_frozen(self):
        config = RageConfig()
        with pytest.raises(PydanticValidationError):
            config.enabled = True


class TestFromEnv:

    def test_reads_environment_variables(self, enabled_env):
        config = RageConfig.from_env(env={**enabled_env, "RAGE_NUM_RESULTS": "7"})

        assert config.enabled is True
        assert config.endpoint == TEST_ENDPOINT
        assert config.num_results == 7
        assert config.environment == "production"
        assert config.enable_audit_log is True

    def test_legacy_variable_names(self):
        config = RageConfig.from_env(env={
            "RAGE_ENABLED": "1",
            "VECTORIZE_API_URL": TEST_ENDPOINT,
            "VECTORIZE_JWT_TOKEN": TEST_JWT,
        })
        assert config.enabled is True
        assert config.api_key == TEST_JWT

    def test_primary_name_wins_over_alias(self, enabled_env):
        env = {**enabled_env, "VECTORIZE_API_URL": "https://other.example.com"}
        assert RageConfig.from_env(env=env).endpoint == TEST_ENDPOINT

    def test_blank_values_ignored(self):
        assert RageConfig.from_env(env={"RAGE_NUM_RESULTS": "  "}).num_results == 5

    def test_test_environment_defaults(self):
        config = RageConfig.from_env(env={"RAGE_ENV": "test"})
        assert config.environment == "test"
        assert config.enabled is False
        assert config.timeout_ms == 1000
        assert config.enable_metrics is False

    def test_development_environment_defaults(self):
        config = RageConfig.from_env("development", env={})
        assert config.debug is True
        assert config.log_level == "debug"

    def test_profile_then_env_then_overrides(self, enabled_env):
        config = RageConfig.from_env(profile="performance", env=enabled_env)
        assert config.timeout_ms == 3000
        assert config.retry_attempts == 1

        config = RageConfig.from_env(
            profile="performance", env={**enabled_env, "RAGE_TIMEOUT_MS": "4000"}
        )
        assert config.timeout_ms == 4000

        config = RageConfig.from_env(
            profile="performance",
            env={**enabled_env, "RAGE_TIMEOUT_MS": "4000"},
            timeout_ms=2000,
        )
        assert config.timeout_ms == 2000

    def test_profile_from_environment_variable(self):
        config = RageConfig.from_env(env={"RAGE_CONFIG_PROFILE": "security"})
        assert config.log_level == "warn"

    def test_unknown_environment_and_profile(self):
        with pytest.raises(ConfigurationError):
            RageConfig.from_env("staging", env={})
        with pytest.raises(ConfigurationError):
            RageConfig.from_env(profile="turbo", env={})

    def test_unparseable_value(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RageConfig.from_env(env={"RAGE_NUM_RESULTS": "lots"})
        assert any("num_results" in error for error in exc_info.value.errors)

    def test_enabled_without_credentials_fails(self):
        with pytest.raises(ConfigurationError):
            RageConfig.from_env(env={"RAGE_ENABLED": "true"})

    def test_read_env_first_match(self):
        values = read_env({"RAGE_ENABLE_METRICS": "false", "RAGE_METRICS_ENABLED": "true"})
        assert values == {"enable_metrics": "false"}


class TestDerivedSettings:

    def test_error_handler_config_uses_seconds(self, rage_config):
        handler_config = rage_config.error_handler_config()

        assert handler_config.timeout.default_timeout == 5.0
        assert handler_config.timeout.min_timeout == 0.1
        assert handler_config.timeout.max_timeout == 30.0
        assert handler_config.retry.max_attempts == 2
        assert handler_config.retry.base_delay == 1.0
        assert handler_config.circuit_breaker.reset_timeout == 60.0
        assert handler_config.fallback_enabled is True

    def test_retry_max_delay_never_below_base(self):
        config = RageConfig(retry_delay_ms=5000, retry_max_delay_ms=1000)
        assert config.error_handler_config().retry.max_delay == 5.0

    def test_masked_hides_api_key(self, rage_config):
        masked = rage_config.masked()
        assert masked["api_key"] == "eyJh***bHVl"
        assert TEST_JWT not in str(masked)

    @pytest.mark.parametrize("value,expected", [
        (None, None),
        ("", ""),
        ("short", "***"),
        ("abcdefghijkl", "abcd***ijkl"),
    ])
    def test_mask_secret(self, value, expected):
        assert mask_secret(value) == expected

    def test_summary(self, rage_config):
        summary = rage_config.summary()
        assert summary["status"] == "enabled"
        assert summary["api"] == {"endpoint_configured": True, "api_key_configured": True}
        assert summary["features"]["caching"] is False


class TestRecommendations:

    def test_clean_configuration(self, rage_config):
        config = rage_config.model_copy(update={"enable_audit_log": True})
        assert get_recommendations(config) == []

    def test_flags_risky_settings(self):
        config = RageConfig(
            timeout_ms=15000,
            num_results=15,
            debug=True,
            min_relevance_score=0.3,
        )
        categories = [r["category"] for r in get_recommendations(config)]

        assert categories.count("performance") == 2
        assert categories.count("security") == 2
        assert "quality" in categories

    def test_recommendations_are_advisory(self):
        recommendation = get_recommendations(RageConfig())[0]
        assert set(recommendation) == {"category", "message", "suggestion"}
