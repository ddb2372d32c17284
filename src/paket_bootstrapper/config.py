"""
Configuration management for the Paket bootstrapper.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (--config path or ./paket-bootstrapper.yml)
3. Environment variables (PAKET_BOOTSTRAPPER_* prefix, __ for nesting)
4. Command-line arguments (highest precedence)
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path("paket-bootstrapper.yml")
DEFAULT_ENV_PREFIX = "PAKET_BOOTSTRAPPER_"

NUGET_V2_FEED_URL = "https://www.nuget.org/api/v2"

# Environment keys whose values are always kept as text
TEXT_ENV_KEYS = frozenset({"version"})

# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level.
        json_format: Emit JSON log records instead of plain text.
        log_to_stream: Whether to log to stderr at all.
    """

    level: str = Field(
        default="warning",
        description="Log level: debug, info, warn, error",
    )
    json_format: bool = Field(
        default=True,
        description="Emit JSON log records",
    )
    log_to_stream: bool = Field(
        default=True,
        description="Whether to log to stderr",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"debug", "info", "warn", "warning", "error", "critical"}
        v_lower = v.lower()
        if v_lower not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        if v_lower == "warn":
            return "warning"
        return v_lower


# =============================================================================
# Feed Configuration
# =============================================================================


class FeedConfig(BaseModel):
    """Package feed configuration.

    Attributes:
        urls: NuGet v2 feed base URLs, tried in order.
        timeout_seconds: HTTP timeout for every request.
        proxy: Optional proxy URL used for every request.
        user_agent: User-Agent header sent to the feed.
    """

    urls: list[str] = Field(
        default_factory=lambda: [NUGET_V2_FEED_URL],
        description="NuGet v2 feed base URLs, tried in order",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout in seconds",
    )
    proxy: str | None = Field(
        default=None,
        description="Proxy URL for feed requests",
    )
    user_agent: str = Field(
        default="paket-bootstrapper",
        description="User-Agent header sent to the feed",
    )

    @field_validator("urls", mode="before")
    @classmethod
    def validate_urls(cls, v: Any) -> Any:
        """Accept a single URL and require at least one."""
        if isinstance(v, str):
            v = [v]
        if not v:
            raise ValueError("At least one feed URL is required")
        return [url.rstrip("/") for url in v]


# =============================================================================
# Bootstrapper Configuration
# =============================================================================


class BootstrapperConfig(BaseModel):
    """What to fetch and where to put it.

    Attributes:
        app_package_name: NuGet package holding the managed application.
        bootstrapper_package_name: NuGet package holding the bootstrapper.
        app_payload: File name of the application inside the payload directory.
        bootstrapper_payload: File name of the bootstrapper inside the payload
            directory.
        payload_dir: Directory inside the package that holds the executables.
        target_dir: Directory the application executable is written to.
        work_dir: Parent directory for scratch workspaces.
        prerelease: Consider pre-release versions when resolving the latest.
        version: Explicit version to fetch instead of the latest.
        self_update: Update the bootstrapper itself instead of the application.
    """

    app_package_name: str = Field(default="Paket")
    bootstrapper_package_name: str = Field(default="Paket.Bootstrapper")
    app_payload: str = Field(default="Paket.exe")
    bootstrapper_payload: str = Field(default="Paket.Bootstrapper.exe")
    payload_dir: str = Field(default="Tools")
    target_dir: str = Field(
        default=".paket",
        description="Directory the application executable is written to",
    )
    work_dir: str | None = Field(
        default=None,
        description="Parent directory for scratch workspaces (defaults to target_dir)",
    )
    prerelease: bool = Field(default=False)
    version: str | None = Field(default=None)
    self_update: bool = Field(default=False)

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str | None:
        """Require text so 5.10 is never read as the number 5.1."""
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError(
                f"Version must be text, got {v!r}; quote it in YAML (e.g. \"5.10\")"
            )
        v = v.strip()
        return v or None


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Main application configuration model.

    Attributes:
        logging: Logging configuration.
        feed: Package feed configuration.
        bootstrapper: Fetch target configuration.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    bootstrapper: BootstrapperConfig = Field(default_factory=BootstrapperConfig)


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: The base dictionary.
        override: The dictionary with values to override.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to appropriate Python type.

    Version-like values such as "5.0.1" stay strings.
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]

    return value


def _load_env_config(prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
    """
    Load configuration from environment variables.

    Nested keys use a double underscore, e.g.
    ``PAKET_BOOTSTRAPPER_FEED__URLS=https://a/api/v2,https://b/api/v2``.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        parts = key[len(prefix) :].lower().split("__")

        current = result
        for part in parts[:-1]:
            current = current.setdefault(part, {})

        leaf = parts[-1]
        current[leaf] = value if leaf in TEXT_ENV_KEYS else _parse_env_value(value)

    return result


def _parse_cli_args(args: list[str] | None = None) -> dict[str, Any]:
    """
    Parse command-line arguments into a configuration dictionary.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Dictionary with parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="paket-bootstrapper",
        description="Download Paket from a NuGet feed or update the bootstrapper itself",
    )

    parser.add_argument(
        "version",
        nargs="?",
        help="Version to download (default: latest)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--prerelease",
        action="store_true",
        help="Consider pre-release versions",
    )
    parser.add_argument(
        "--self",
        dest="self_update",
        action="store_true",
        help="Update the bootstrapper itself",
    )
    parser.add_argument(
        "--target-dir",
        type=str,
        help="Directory the Paket executable is written to",
    )

    parsed = parser.parse_args(args)

    result: dict[str, Any] = {}
    bootstrapper: dict[str, Any] = {}

    if parsed.config:
        result["_config_path"] = parsed.config

    if parsed.log_level:
        result["logging"] = {"level": parsed.log_level}

    if parsed.debug:
        result["logging"] = {"level": "debug", "json_format": False}

    if parsed.version:
        bootstrapper["version"] = parsed.version
    if parsed.prerelease:
        bootstrapper["prerelease"] = True
    if parsed.self_update:
        bootstrapper["self_update"] = True
    if parsed.target_dir:
        bootstrapper["target_dir"] = parsed.target_dir

    if bootstrapper:
        result["bootstrapper"] = bootstrapper

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_args: list[str] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Args:
        config_path: Path to YAML configuration file. If None, uses the CLI
            --config argument or ./paket-bootstrapper.yml when present.
        env_prefix: Prefix for environment variables.
        cli_args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Fully configured AppConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.
    """
    config_dict: dict[str, Any] = {}

    cli_config = _parse_cli_args(cli_args)
    cli_config_path = cli_config.pop("_config_path", None)

    if config_path is None:
        if cli_config_path is not None:
            config_path = Path(cli_config_path)
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
    elif isinstance(config_path, str):
        config_path = Path(config_path)

    if config_path is not None:
        config_dict = _deep_merge(config_dict, _load_yaml_config(config_path))

    config_dict = _deep_merge(config_dict, _load_env_config(env_prefix))
    config_dict = _deep_merge(config_dict, cli_config)

    return AppConfig(**config_dict)
