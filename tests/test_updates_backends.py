"""
Tests for the download strategy abstraction.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from paket_bootstrapper.updates.backends import DownloadStrategy, PreparedPackage


class TestPreparedPackage:
    """Tests for PreparedPackage model."""

    def test_create(self, tmp_path: Path) -> None:
        """Test creating a prepared package."""
        package = PreparedPackage(
            package_name="Paket",
            url="https://www.nuget.org/api/v2/package/Paket",
            workspace=tmp_path,
            package_file=tmp_path / "paket.latest.nupkg",
            payload=tmp_path / "Tools" / "Paket.exe",
        )

        assert package.version == ""
        assert package.payload.name == "Paket.exe"

    def test_paths_coerced(self) -> None:
        """Test string paths become Path objects."""
        package = PreparedPackage(
            package_name="Paket",
            version="5.0.1",
            url="https://feed/package/Paket/5.0.1",
            workspace="/tmp/paket-x",
            package_file="/tmp/paket-x/paket.5.0.1.nupkg",
            payload="/tmp/paket-x/Tools/Paket.exe",
        )

        assert package.workspace == Path("/tmp/paket-x")

    def test_required_fields(self) -> None:
        """Test missing fields are rejected."""
        with pytest.raises(ValidationError):
            PreparedPackage(package_name="Paket")  # type: ignore[call-arg]


class TestDownloadStrategy:
    """Tests for the DownloadStrategy base class."""

    def test_cannot_instantiate(self) -> None:
        """Test the abstract base cannot be instantiated."""
        with pytest.raises(TypeError):
            DownloadStrategy()  # type: ignore[abstract]

    def test_partial_implementation_rejected(self) -> None:
        """Test every operation must be implemented."""

        class OnlyName(DownloadStrategy):
            @property
            def name(self) -> str:
                return "partial"

        with pytest.raises(TypeError):
            OnlyName()  # type: ignore[abstract]
