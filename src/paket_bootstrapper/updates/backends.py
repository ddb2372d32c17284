"""
Download strategy abstraction for the Paket bootstrapper.

This module defines the DownloadStrategy abstract base class and the
PreparedPackage model describing an unpacked package whose payload is ready
to be put in place.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, Field


class PreparedPackage(BaseModel):
    """
    A downloaded and unpacked package.

    Attributes:
        package_name: NuGet package id.
        version: Requested version, or "" for the latest.
        url: URL the package was downloaded from.
        workspace: Scratch workspace owning the archive and its contents.
        package_file: The downloaded ``.nupkg`` file.
        payload: The executable to put in place.
    """

    package_name: str = Field(..., description="NuGet package id")
    version: str = Field(default="", description="Requested version, '' for latest")
    url: str = Field(..., description="Package download URL")
    workspace: Path = Field(..., description="Scratch workspace directory")
    package_file: Path = Field(..., description="Downloaded package archive")
    payload: Path = Field(..., description="Payload executable inside the workspace")


class DownloadStrategy(ABC):
    """
    Abstract base class for ways of obtaining Paket and the bootstrapper.

    Concrete implementations:
    - NugetDownloadStrategy: a NuGet v2 feed
    - FallbackChain: several strategies tried in order
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name used in logs and status output."""

    @abstractmethod
    def get_latest_version(self, ignore_prerelease: bool) -> str:
        """
        Resolve the newest available version.

        Args:
            ignore_prerelease: Leave pre-release versions out of the listing.

        Returns:
            The version string as published, or "" if none is available.

        Raises:
            UnavailableError: If the source is unreachable.
        """

    @abstractmethod
    def download_version(self, version: str, target: Path) -> None:
        """
        Fetch the application executable and write it to ``target``.

        Args:
            version: Version to fetch, or "" for the latest.
            target: Where the executable is written (overwritten if present).

        Raises:
            UnavailableError: If the package cannot be downloaded.
            FailedPreconditionError: If the package has no payload executable.
        """

    @abstractmethod
    def self_update(self, latest_version: str) -> None:
        """
        Replace the running bootstrapper with ``latest_version``.

        Does nothing if the running bootstrapper already is that version.

        Raises:
            UnavailableError: If the package cannot be downloaded.
            FailedPreconditionError: If the package has no payload executable.
            SelfUpdateError: If the swap failed and was rolled back.
            RollbackFailedError: If the swap and its rollback both failed.
        """
