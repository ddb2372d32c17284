"""
Console entry point for the Paket bootstrapper.

Usage:
    paket-bootstrapper [version] [--prerelease] [--self] [--target-dir DIR]
                       [--config FILE] [--log-level LEVEL] [--debug]
"""

from __future__ import annotations

import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from paket_bootstrapper import __version__
from paket_bootstrapper.config import AppConfig, load_config
from paket_bootstrapper.errors import BootstrapperError
from paket_bootstrapper.logging import get_logger, setup_logging
from paket_bootstrapper.updates.backends import DownloadStrategy
from paket_bootstrapper.updates.fallback import FallbackChain
from paket_bootstrapper.updates.http import FeedClient
from paket_bootstrapper.updates.nuget_backend import Fetcher, NugetDownloadStrategy

logger = get_logger(__name__)


def current_executable() -> Path:
    """Path of the running bootstrapper (the frozen binary when bundled)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()
    return Path(sys.argv[0]).resolve()


def build_client(config: AppConfig) -> FeedClient:
    """Create the HTTP fetch capability from the feed configuration."""
    proxy = config.feed.proxy
    return FeedClient(
        timeout=config.feed.timeout_seconds,
        user_agent=config.feed.user_agent,
        default_proxy_for=(lambda url: proxy) if proxy else None,
    )


def build_strategy(
    config: AppConfig, fetcher: Fetcher, executable_path: Path
) -> DownloadStrategy:
    """One NuGet strategy per configured feed, tried in order."""
    settings = config.bootstrapper
    folder = Path(settings.work_dir or settings.target_dir)
    strategies = [
        NugetDownloadStrategy(
            fetcher,
            folder,
            executable_path=executable_path,
            local_version=__version__,
            feed_url=feed_url,
            app_package_name=settings.app_package_name,
            bootstrapper_package_name=settings.bootstrapper_package_name,
            app_payload=settings.app_payload,
            bootstrapper_payload=settings.bootstrapper_payload,
            payload_dir=settings.payload_dir,
        )
        for feed_url in config.feed.urls
    ]
    return FallbackChain(strategies)


def run(config: AppConfig, strategy: DownloadStrategy) -> None:
    """Perform the configured self-update or application download."""
    settings = config.bootstrapper
    version = settings.version or strategy.get_latest_version(
        ignore_prerelease=not settings.prerelease
    )

    if settings.self_update:
        logger.info("Self update requested", extra={"version": version or "latest"})
        strategy.self_update(version)
        return

    target = Path(settings.target_dir) / settings.app_payload
    logger.info(
        "Download requested",
        extra={"version": version or "latest", "target": str(target)},
    )
    strategy.download_version(version, target)


def main(argv: list[str] | None = None) -> int:
    """
    Run the bootstrapper.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = load_config(cli_args=argv)
    except (FileNotFoundError, yaml.YAMLError, ValidationError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging)

    try:
        strategy = build_strategy(config, build_client(config), current_executable())
        run(config, strategy)
    except BootstrapperError as e:
        logger.error(
            "Bootstrapper failed",
            extra={"error_code": e.error_code, "details": e.details},
        )
        print(e.message, file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
