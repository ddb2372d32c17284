"""
Ordered fallback across download strategies.

FallbackChain tries each strategy in turn and returns the first success.
A RollbackFailedError stops the chain at once because the running executable
may already be gone from its path.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TypeVar

from paket_bootstrapper.errors import (
    BootstrapperError,
    InvalidArgumentError,
    RollbackFailedError,
)
from paket_bootstrapper.logging import get_logger
from paket_bootstrapper.updates.backends import DownloadStrategy

logger = get_logger(__name__)

T = TypeVar("T")


class FallbackChain(DownloadStrategy):
    """
    A DownloadStrategy that delegates to several strategies in order.

    Attributes:
        strategies: The strategies, first tried first.
    """

    def __init__(self, strategies: Sequence[DownloadStrategy]) -> None:
        if not strategies:
            raise InvalidArgumentError("A fallback chain needs at least one strategy")
        self.strategies = list(strategies)

    @property
    def name(self) -> str:
        return " -> ".join(strategy.name for strategy in self.strategies)

    def get_latest_version(self, ignore_prerelease: bool) -> str:
        return self._first_success(
            "get_latest_version",
            lambda strategy: strategy.get_latest_version(ignore_prerelease),
        )

    def download_version(self, version: str, target: Path) -> None:
        self._first_success(
            "download_version",
            lambda strategy: strategy.download_version(version, target),
        )

    def self_update(self, latest_version: str) -> None:
        self._first_success(
            "self_update",
            lambda strategy: strategy.self_update(latest_version),
        )

    def _first_success(
        self, operation: str, call: Callable[[DownloadStrategy], T]
    ) -> T:
        last_error: BootstrapperError | None = None

        for index, strategy in enumerate(self.strategies):
            try:
                return call(strategy)
            except RollbackFailedError:
                raise
            except BootstrapperError as e:
                last_error = e
                remaining = len(self.strategies) - index - 1
                logger.warning(
                    f"{strategy.name} failed: {e.message}",
                    extra={
                        "operation": operation,
                        "strategy": strategy.name,
                        "error_code": e.error_code,
                        "remaining": remaining,
                    },
                )

        assert last_error is not None
        raise last_error
