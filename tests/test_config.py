"""Tests for engine configuration loading."""

import os
from unittest.mock import patch

import pytest

from xfiles import XFilesConfig
from xfiles.exceptions import ConfigError
from xfiles.remote.x import DEFAULT_API_BASE


class TestDefaults:
    def test_defaults(self):
        config = XFilesConfig()

        assert config.db_path == ":memory:"
        assert config.max_payload_size is None
        assert config.rate_limit_calls == 300
        assert config.rate_limit_window == 900.0
        assert config.retry.max_rate_limit_retries == 5
        assert config.retry.max_network_retries == 2
        assert config.x_api_base == DEFAULT_API_BASE

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_payload_size": 0},
            {"cache_max_entries": 0},
            {"rate_limit_calls": 0},
            {"rate_limit_window": 0.0},
            {"author": ""},
        ],
    )
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ConfigError):
            XFilesConfig(**kwargs).validate()


class TestFromEnv:
    """Configuration from XFILES_* environment variables."""

    def test_reads_environment(self):
        env = {
            "XFILES_DB_PATH": "/tmp/xfiles.db",
            "XFILES_AUTHOR": "agent",
            "XFILES_MAX_PAYLOAD_SIZE": "100",
            "XFILES_CACHE_SIZE": "16",
            "XFILES_RATE_LIMIT_CALLS": "50",
            "XFILES_RATE_LIMIT_WINDOW": "60",
            "XFILES_MAX_RETRIES": "1",
            "XFILES_X_BEARER_TOKEN": "secret",
        }
        with patch.dict(os.environ, env, clear=True):
            config = XFilesConfig.from_env()

        assert config.db_path == "/tmp/xfiles.db"
        assert config.author == "agent"
        assert config.max_payload_size == 100
        assert config.cache_max_entries == 16
        assert config.rate_limit_calls == 50
        assert config.rate_limit_window == 60.0
        assert config.retry.max_rate_limit_retries == 1
        assert config.x_bearer_token == "secret"

    def test_empty_environment_uses_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = XFilesConfig.from_env()

        assert config == XFilesConfig()

    def test_invalid_integer(self):
        with patch.dict(os.environ, {"XFILES_CACHE_SIZE": "many"}, clear=True):
            with pytest.raises(ConfigError) as exc_info:
                XFilesConfig.from_env()

        assert exc_info.value.field == "XFILES_CACHE_SIZE"


class TestFromYaml:
    """Configuration from the xfiles section of a settings file."""

    def test_reads_section(self, tmp_path):
        settings = tmp_path / "settings.yaml"
        settings.write_text(
            "xfiles:\n"
            "  author: myagent\n"
            "  cache_max_entries: 512\n"
            "  retry:\n"
            "    max_rate_limit_retries: 3\n"
            "other:\n"
            "  ignored: true\n"
        )

        config = XFilesConfig.from_yaml(settings)

        assert config.author == "myagent"
        assert config.cache_max_entries == 512
        assert config.retry.max_rate_limit_retries == 3
        assert config.retry.max_network_retries == 2

    def test_missing_section_uses_defaults(self, tmp_path):
        settings = tmp_path / "settings.yaml"
        settings.write_text("other: 1\n")

        assert XFilesConfig.from_yaml(settings) == XFilesConfig()

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigError):
            XFilesConfig.from_dict({"colour": "blue"})

    def test_unknown_retry_key_rejected(self):
        with pytest.raises(ConfigError):
            XFilesConfig.from_dict({"retry": {"forever": True}})

    def test_db_path_expands_home(self):
        config = XFilesConfig.from_dict({"db_path": "~/index.db"})

        assert not str(config.db_path).startswith("~")
