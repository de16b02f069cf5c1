"""Tests for LifelineConfig validation and the error hierarchy.

Covers:
- LifelineConfig defaults and __post_init__ validation
- LifelineConfig.from_env
- Secret masking in __repr__
- LifelineError construction, codes, context and cause chaining
"""

from __future__ import annotations

import pytest

from lifeline.config import LifelineConfig
from lifeline.errors import (
    ErrorCode,
    LifelineArchiveNotFoundError,
    LifelineAuthError,
    LifelineError,
    LifelineInvalidTransitionError,
    LifelineNetworkError,
    LifelineStorageError,
)

# ---------------------------------------------------------------------------
# Config defaults & validation
# ---------------------------------------------------------------------------

class TestConfigDefaults:
    def test_bare_config_is_valid(self):
        config = LifelineConfig()
        assert config.rate_limit_rps == 3.0
        assert config.max_in_flight == 3
        assert config.similarity_threshold == 0.95
        assert config.base_url == "https://api.notion.com/v1"

    def test_embeddings_need_key_and_durable_index(self):
        assert LifelineConfig().embeddings_enabled is False
        assert LifelineConfig(openai_api_key="sk-abc").embeddings_enabled is False
        assert LifelineConfig(vector_db_path="/var/vdb").embeddings_enabled is False
        assert LifelineConfig(openai_api_key="sk-abc", vector_db_path="/var/vdb").embeddings_enabled is True


class TestConfigValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"retry_max_attempts": 0},
            {"retry_base_delay": -1.0},
            {"retry_max_delay": -0.5},
            {"rate_limit_rps": 0},
            {"max_in_flight": 0},
            {"timeout_seconds": 0},
            {"embedding_max_concurrent": 0},
            {"embedding_retry_attempts": 0},
            {"chunk_max_tokens": 0},
            {"chunk_max_tokens": 10, "chunk_overlap_tokens": 10},
            {"chunk_overlap_tokens": -1},
            {"similarity_threshold": 1.5},
            {"summary_top_n": -1},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            LifelineConfig(**overrides)

    def test_insecure_http_rejected_for_remote_host(self):
        with pytest.raises(ValueError, match="insecure HTTP"):
            LifelineConfig(base_url="http://api.example.com/v1")

    def test_http_allowed_for_localhost(self):
        config = LifelineConfig(base_url="http://localhost:8080/v1")
        assert config.base_url.startswith("http://localhost")


class TestConfigFromEnv:
    def test_reads_typed_values(self):
        env = {
            "LIFELINE_RATE_LIMIT_RPS": "1.5",
            "LIFELINE_MAX_IN_FLIGHT": "2",
            "OPENAI_API_KEY": "sk-test-key",
            "LIFELINE_PRIMARY_BUCKET": "snapshots",
            "LIFELINE_SIMILARITY_THRESHOLD": "0.9",
        }
        config = LifelineConfig.from_env(env)
        assert config.rate_limit_rps == 1.5
        assert config.max_in_flight == 2
        assert config.openai_api_key == "sk-test-key"
        assert config.primary_bucket == "snapshots"
        assert config.similarity_threshold == 0.9

    def test_empty_values_ignored(self):
        config = LifelineConfig.from_env({"LIFELINE_PRIMARY_REGION": ""})
        assert config.primary_region == "us-east-1"

    def test_overrides_win(self):
        config = LifelineConfig.from_env({"LIFELINE_MAX_IN_FLIGHT": "2"}, max_in_flight=7)
        assert config.max_in_flight == 7

    def test_invalid_env_value_rejected(self):
        with pytest.raises(ValueError):
            LifelineConfig.from_env({"LIFELINE_RATE_LIMIT_RPS": "0"})


class TestConfigRepr:
    def test_secrets_masked(self):
        config = LifelineConfig(
            openai_api_key="sk-very-secret-1234",
            primary_secret_access_key="aws-secret-abcd",
        )
        text = repr(config)
        assert "sk-very-secret" not in text
        assert "aws-secret" not in text
        assert "...1234" in text
        assert "...abcd" in text

    def test_short_secret_fully_masked(self):
        text = repr(LifelineConfig(openai_api_key="short"))
        assert "short" not in text
        assert "openai_api_key='****'" in text


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:
    def test_base_error_fields(self):
        err = LifelineError(code="X", message="boom", context={"a": 1})
        assert err.code == "X"
        assert err.message == "boom"
        assert err.context == {"a": 1}
        assert str(err) == "boom"

    def test_context_defaults_to_empty(self):
        assert LifelineStorageError("x").context == {}

    @pytest.mark.parametrize(
        ("exc_type", "code"),
        [
            (LifelineAuthError, ErrorCode.AUTH_ERROR),
            (LifelineNetworkError, ErrorCode.NETWORK_ERROR),
            (LifelineArchiveNotFoundError, ErrorCode.ARCHIVE_NOT_FOUND),
            (LifelineStorageError, ErrorCode.STORAGE_ERROR),
            (LifelineInvalidTransitionError, ErrorCode.INVALID_TRANSITION),
        ],
    )
    def test_subclass_codes(self, exc_type, code):
        err = exc_type("msg")
        assert isinstance(err, LifelineError)
        assert err.code == code
        assert err.code == code.value

    def test_cause_is_chained(self):
        root = OSError("disk full")
        err = LifelineStorageError("write failed", cause=root)
        assert err.cause is root
        assert err.__cause__ is root

    def test_repr_includes_context(self):
        err = LifelineStorageError("write failed", context={"path": "a/b"})
        text = repr(err)
        assert "LifelineStorageError" in text
        assert "'path': 'a/b'" in text
