"""
Tests for the configuration module.

This test module validates:
- Model defaults and validators
- YAML file loading
- Environment variable parsing and nesting
- Command-line argument parsing
- Layered precedence: defaults < YAML < env < CLI
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest
from pydantic import ValidationError

from paket_bootstrapper.config import (
    NUGET_V2_FEED_URL,
    AppConfig,
    BootstrapperConfig,
    FeedConfig,
    LoggingConfig,
    _deep_merge,
    _load_env_config,
    _load_yaml_config,
    _parse_cli_args,
    _parse_env_value,
    load_config,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test in an empty directory without bootstrapper env vars."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("PAKET_BOOTSTRAPPER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a configuration file."""
    config_path = tmp_path / "bootstrapper.yml"
    config_path.write_text(
        """
logging:
  level: info
feed:
  urls:
    - https://nuget.example.org/api/v2/
  timeout_seconds: 10
bootstrapper:
  target_dir: tools
  prerelease: true
"""
    )
    return config_path


# =============================================================================
# Model Tests
# =============================================================================


class TestModels:
    """Tests for configuration model defaults and validation."""

    def test_app_config_defaults(self) -> None:
        """Test AppConfig defaults."""
        config = AppConfig()

        assert config.logging.level == "warning"
        assert config.logging.json_format is True
        assert config.feed.urls == [NUGET_V2_FEED_URL]
        assert config.feed.timeout_seconds == 30.0
        assert config.feed.proxy is None
        assert config.bootstrapper.app_package_name == "Paket"
        assert config.bootstrapper.bootstrapper_package_name == "Paket.Bootstrapper"
        assert config.bootstrapper.payload_dir == "Tools"
        assert config.bootstrapper.target_dir == ".paket"
        assert config.bootstrapper.version is None
        assert config.bootstrapper.self_update is False

    @pytest.mark.parametrize(
        ("level", "expected"),
        [("DEBUG", "debug"), ("info", "info"), ("warn", "warning"), ("Error", "error")],
    )
    def test_log_level_normalized(self, level: str, expected: str) -> None:
        """Test log levels are lower-cased and warn is mapped to warning."""
        assert LoggingConfig(level=level).level == expected

    def test_log_level_invalid(self) -> None:
        """Test an unknown log level is rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(level="verbose")

    def test_feed_url_string_accepted(self) -> None:
        """Test a single URL string becomes a list without trailing slash."""
        assert FeedConfig(urls="https://a.example/api/v2/").urls == [
            "https://a.example/api/v2"
        ]

    def test_feed_urls_required(self) -> None:
        """Test an empty feed list is rejected."""
        with pytest.raises(ValidationError):
            FeedConfig(urls=[])

    def test_timeout_must_be_positive(self) -> None:
        """Test a zero timeout is rejected."""
        with pytest.raises(ValidationError):
            FeedConfig(timeout_seconds=0)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(" 5.0.1 ", "5.0.1"), ("", None), ("   ", None), (None, None)],
    )
    def test_version_kept_as_text(self, value: object, expected: str | None) -> None:
        """Test versions become stripped strings and blanks become None."""
        assert BootstrapperConfig(version=value).version == expected

    @pytest.mark.parametrize("value", [5, 5.1, True])
    def test_numeric_version_rejected(self, value: object) -> None:
        """Test a version that YAML turned into a number is not guessed at."""
        with pytest.raises(ValidationError, match="quote it"):
            BootstrapperConfig(version=value)


# =============================================================================
# YAML Loading Tests
# =============================================================================


class TestYamlLoading:
    """Tests for YAML configuration loading."""

    def test_load_yaml_config_success(self, temp_config_file: Path) -> None:
        """Test loading a valid YAML file."""
        data = _load_yaml_config(temp_config_file)

        assert data["logging"]["level"] == "info"
        assert data["bootstrapper"]["prerelease"] is True

    def test_load_yaml_config_file_not_found(self, tmp_path: Path) -> None:
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            _load_yaml_config(tmp_path / "missing.yml")

    def test_load_yaml_config_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file loads as an empty dict."""
        empty = tmp_path / "empty.yml"
        empty.write_text("")

        assert _load_yaml_config(empty) == {}

    def test_load_config_with_yaml_file(self, temp_config_file: Path) -> None:
        """Test load_config applies the YAML file."""
        config = load_config(config_path=temp_config_file, cli_args=[])

        assert config.logging.level == "info"
        assert config.feed.urls == ["https://nuget.example.org/api/v2"]
        assert config.feed.timeout_seconds == 10
        assert config.bootstrapper.target_dir == "tools"
        assert config.bootstrapper.prerelease is True

    def test_default_config_file_in_working_directory(self, tmp_path: Path) -> None:
        """Test ./paket-bootstrapper.yml is picked up when present."""
        (tmp_path / "paket-bootstrapper.yml").write_text(
            "bootstrapper:\n  version: 5.0.1\n"
        )

        config = load_config(cli_args=[])

        assert config.bootstrapper.version == "5.0.1"

    def test_unquoted_numeric_version_rejected(self, tmp_path: Path) -> None:
        """Test an unquoted 5.10 fails instead of fetching 5.1."""
        (tmp_path / "paket-bootstrapper.yml").write_text(
            "bootstrapper:\n  version: 5.10\n"
        )

        with pytest.raises(ValidationError):
            load_config(cli_args=[])

    def test_quoted_version_kept(self, tmp_path: Path) -> None:
        """Test a quoted version keeps its trailing zero."""
        (tmp_path / "paket-bootstrapper.yml").write_text(
            'bootstrapper:\n  version: "5.10"\n'
        )

        assert load_config(cli_args=[]).bootstrapper.version == "5.10"


# =============================================================================
# Environment Variable Tests
# =============================================================================


class TestEnvLoading:
    """Tests for environment variable configuration loading."""

    @pytest.mark.parametrize("value", ["true", "YES", "on"])
    def test_parse_env_value_true(self, value: str) -> None:
        """Test truthy strings."""
        assert _parse_env_value(value) is True

    @pytest.mark.parametrize("value", ["false", "No", "OFF"])
    def test_parse_env_value_false(self, value: str) -> None:
        """Test falsy strings."""
        assert _parse_env_value(value) is False

    def test_parse_env_value_integer(self) -> None:
        """Test integer strings."""
        assert _parse_env_value("42") == 42

    def test_parse_env_value_list(self) -> None:
        """Test comma-separated lists."""
        assert _parse_env_value("https://a/api/v2, https://b/api/v2") == [
            "https://a/api/v2",
            "https://b/api/v2",
        ]

    def test_parse_env_value_version_stays_string(self) -> None:
        """Test a dotted version is not converted."""
        assert _parse_env_value("5.0.1") == "5.0.1"

    def test_load_env_config_nested(self) -> None:
        """Test double underscores nest keys."""
        env_vars = {
            "PAKET_BOOTSTRAPPER_FEED__PROXY": "http://proxy:3128",
            "PAKET_BOOTSTRAPPER_BOOTSTRAPPER__PRERELEASE": "true",
        }

        with mock.patch.dict(os.environ, env_vars, clear=False):
            result = _load_env_config()

        assert result == {
            "feed": {"proxy": "http://proxy:3128"},
            "bootstrapper": {"prerelease": True},
        }

    def test_load_env_config_version_stays_text(self) -> None:
        """Test a version variable is never converted to a number."""
        env_vars = {"PAKET_BOOTSTRAPPER_BOOTSTRAPPER__VERSION": "05"}

        with mock.patch.dict(os.environ, env_vars, clear=False):
            config = load_config(cli_args=[])

        assert config.bootstrapper.version == "05"

    def test_load_env_config_ignores_other_prefixes(self) -> None:
        """Test unrelated variables are ignored."""
        with mock.patch.dict(os.environ, {"OTHER_FEED__PROXY": "x"}, clear=False):
            assert _load_env_config() == {}


# =============================================================================
# CLI Argument Tests
# =============================================================================


class TestCliArgs:
    """Tests for command-line argument parsing."""

    def test_parse_cli_args_empty(self) -> None:
        """Test no arguments give no overrides."""
        assert _parse_cli_args([]) == {}

    def test_parse_cli_args_config_path(self) -> None:
        """Test --config is passed through separately."""
        assert _parse_cli_args(["--config", "x.yml"]) == {"_config_path": "x.yml"}

    def test_parse_cli_args_debug(self) -> None:
        """Test --debug selects plain debug logging."""
        result = _parse_cli_args(["--debug"])

        assert result["logging"] == {"level": "debug", "json_format": False}

    def test_parse_cli_args_bootstrapper_options(self) -> None:
        """Test version, --prerelease, --self and --target-dir."""
        result = _parse_cli_args(
            ["5.0.1", "--prerelease", "--self", "--target-dir", "tools"]
        )

        assert result["bootstrapper"] == {
            "version": "5.0.1",
            "prerelease": True,
            "self_update": True,
            "target_dir": "tools",
        }

    def test_parse_cli_args_invalid_log_level(self) -> None:
        """Test argparse rejects an unknown log level."""
        with pytest.raises(SystemExit):
            _parse_cli_args(["--log-level", "loud"])


# =============================================================================
# Precedence Tests
# =============================================================================


class TestPrecedence:
    """Tests for layered configuration precedence."""

    def test_env_overrides_yaml(self, temp_config_file: Path) -> None:
        """Test environment variables override the YAML file."""
        env_vars = {"PAKET_BOOTSTRAPPER_BOOTSTRAPPER__TARGET_DIR": "from-env"}

        with mock.patch.dict(os.environ, env_vars, clear=False):
            config = load_config(config_path=temp_config_file, cli_args=[])

        assert config.bootstrapper.target_dir == "from-env"
        assert config.bootstrapper.prerelease is True

    def test_cli_overrides_env(self, temp_config_file: Path) -> None:
        """Test CLI arguments override environment variables."""
        env_vars = {"PAKET_BOOTSTRAPPER_LOGGING__LEVEL": "error"}

        with mock.patch.dict(os.environ, env_vars, clear=False):
            config = load_config(
                config_path=temp_config_file, cli_args=["--log-level", "debug"]
            )

        assert config.logging.level == "debug"

    def test_cli_config_path(self, temp_config_file: Path) -> None:
        """Test --config selects the YAML file."""
        config = load_config(cli_args=["--config", str(temp_config_file)])

        assert config.bootstrapper.target_dir == "tools"

    def test_env_feed_list(self) -> None:
        """Test several feeds can be given in one variable."""
        env_vars = {
            "PAKET_BOOTSTRAPPER_FEED__URLS": "https://a/api/v2,https://b/api/v2/"
        }

        with mock.patch.dict(os.environ, env_vars, clear=False):
            config = load_config(cli_args=[])

        assert config.feed.urls == ["https://a/api/v2", "https://b/api/v2"]


# =============================================================================
# Helper Tests
# =============================================================================


class TestDeepMerge:
    """Tests for _deep_merge."""

    def test_nested(self) -> None:
        """Test nested dicts are merged key by key."""
        base = {"feed": {"urls": ["a"], "proxy": None}}
        override = {"feed": {"proxy": "p"}}

        assert _deep_merge(base, override) == {"feed": {"urls": ["a"], "proxy": "p"}}

    def test_does_not_modify_original(self) -> None:
        """Test the base dict is left untouched."""
        base = {"a": 1}
        _deep_merge(base, {"a": 2})

        assert base == {"a": 1}
