"""
Pytest configuration and shared fixtures for the Paket bootstrapper tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fakes import FakeFetcher, write_nupkg

from paket_bootstrapper.logging import ROOT_LOGGER_NAME


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    """An empty FakeFetcher."""
    return FakeFetcher()


@pytest.fixture
def nupkg_factory(tmp_path: Path) -> Callable[[str, dict[str, bytes]], Path]:
    """Create package archives under tmp_path."""

    def factory(name: str, files: dict[str, bytes]) -> Path:
        return write_nupkg(tmp_path / name, files)

    return factory


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo logging configuration done by a test."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
