"""
NuGet feed download strategy for the Paket bootstrapper.

This module implements NugetDownloadStrategy, which drives every update
attempt through the same pipeline:

    resolving → downloading → unpacking → locating → swapping → cleanup → done

Paket itself is copied over its target path. The bootstrapper replaces its own
executable with swap_executable, so a failed swap rolls back to the running
version. Status lines go to stdout; diagnostics go to the logger.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from paket_bootstrapper.errors import RollbackFailedError, SelfUpdateError
from paket_bootstrapper.logging import get_logger
from paket_bootstrapper.updates.backends import DownloadStrategy, PreparedPackage
from paket_bootstrapper.updates.feed import (
    DEFAULT_FEED_URL,
    FeedLocatorResolver,
    select_latest_version,
)
from paket_bootstrapper.updates.operations import (
    MoveFunc,
    SwapOutcome,
    SwapStatus,
    copy_file,
    create_scratch_workspace,
    extract_archive,
    locate_payload,
    move_file,
    safe_remove_directory,
    swap_executable,
)
from paket_bootstrapper.updates.state_machine import UpdateState, UpdateStateMachine

logger = get_logger(__name__)

DEFAULT_APP_PACKAGE = "Paket"
DEFAULT_BOOTSTRAPPER_PACKAGE = "Paket.Bootstrapper"
DEFAULT_APP_PAYLOAD = "Paket.exe"
DEFAULT_BOOTSTRAPPER_PAYLOAD = "Paket.Bootstrapper.exe"
DEFAULT_PAYLOAD_DIR = "Tools"


class Fetcher(Protocol):
    """What the strategy needs from an HTTP client."""

    def download_string(self, url: str) -> str: ...

    def download_file(self, url: str, destination: Path) -> Path: ...


UnpackFunc = Callable[[Path, Path], None]
EchoFunc = Callable[[str], None]


def print_status(message: str) -> None:
    """Write a status line to stdout."""
    print(message, flush=True)


def package_file_name(package_name: str, version: str) -> str:
    """
    Local file name for a downloaded package.

    >>> package_file_name("Paket.Bootstrapper", "")
    'paket.bootstrapper.latest.nupkg'
    """
    return f"{package_name.lower()}.{version or 'latest'}.nupkg"


class NugetDownloadStrategy(DownloadStrategy):
    """
    Fetches Paket and the bootstrapper from one NuGet v2 feed.

    The running executable's path and version are explicit inputs so the
    strategy never inspects the real process.

    Attributes:
        folder: Parent directory for scratch workspaces.
        executable_path: Path of the running bootstrapper executable.
        local_version: Version of the running bootstrapper.
        feed_url: Base URL of the NuGet v2 API.
        state_machine: Tracks the current or last attempt.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        folder: Path | str,
        *,
        executable_path: Path | str,
        local_version: str,
        feed_url: str = DEFAULT_FEED_URL,
        app_package_name: str = DEFAULT_APP_PACKAGE,
        bootstrapper_package_name: str = DEFAULT_BOOTSTRAPPER_PACKAGE,
        app_payload: str = DEFAULT_APP_PAYLOAD,
        bootstrapper_payload: str = DEFAULT_BOOTSTRAPPER_PAYLOAD,
        payload_dir: str = DEFAULT_PAYLOAD_DIR,
        unpack_archive: UnpackFunc = extract_archive,
        move: MoveFunc = move_file,
        echo: EchoFunc = print_status,
    ) -> None:
        """
        Initialize the NugetDownloadStrategy.

        Args:
            fetcher: HTTP capability used for listings and downloads.
            folder: Parent directory for scratch workspaces.
            executable_path: Path of the running bootstrapper.
            local_version: Version of the running bootstrapper.
            feed_url: Base URL of the NuGet v2 API.
            app_package_name: Package holding the application.
            bootstrapper_package_name: Package holding the bootstrapper.
            app_payload: Application file name inside ``payload_dir``.
            bootstrapper_payload: Bootstrapper file name inside ``payload_dir``.
            payload_dir: Directory inside a package holding the executables.
            unpack_archive: Extracts an archive into a directory.
            move: Move primitive used by the self-update swap.
            echo: Receives status lines.
        """
        self._fetcher = fetcher
        self.folder = Path(folder)
        self.executable_path = Path(executable_path)
        self.local_version = local_version
        self.feed_url = feed_url
        self._app = FeedLocatorResolver(app_package_name, feed_url)
        self._bootstrapper = FeedLocatorResolver(bootstrapper_package_name, feed_url)
        self._app_payload = Path(payload_dir) / app_payload
        self._bootstrapper_payload = Path(payload_dir) / bootstrapper_payload
        self._unpack_archive = unpack_archive
        self._move = move
        self._echo = echo
        self.state_machine = UpdateStateMachine()

    @property
    def name(self) -> str:
        return "Nuget"

    def get_latest_version(self, ignore_prerelease: bool) -> str:
        """
        Resolve the newest Paket version on the feed.

        Returns:
            The newest version as published, or "" if the listing held no
            parseable version.

        Raises:
            UnavailableError: If the listing cannot be fetched.
        """
        url = self._app.all_package_versions(include_prerelease=not ignore_prerelease)
        versions = self._fetcher.download_string(url)
        latest = select_latest_version(versions)
        logger.info(
            "Resolved latest version",
            extra={"package": self._app.package_name, "version": latest, "url": url},
        )
        return latest

    def download_version(self, version: str, target: Path | str) -> None:
        """Fetch Paket ``version`` ("" for latest) and copy it over ``target``."""
        target = Path(target)
        self._begin(self._app, version)
        try:
            package = self._fetch_package(self._app, version, self._app_payload)
            self.state_machine.transition_to(UpdateState.SWAPPING)
            copy_file(package.payload, target)
            logger.info(
                "Installed package payload",
                extra={"version": version or "latest", "target": str(target)},
            )
        except Exception as e:
            self.state_machine.fail(e)
            raise
        self._cleanup(package)

    def self_update(self, latest_version: str) -> None:
        """
        Replace the running bootstrapper with ``latest_version``.

        Skipped without touching the file system when the local version starts
        with ``latest_version``.
        """
        self._begin(self._bootstrapper, latest_version)

        if latest_version and self.local_version.startswith(latest_version):
            self._echo("Bootstrapper is up to date. Nothing to do.")
            self.state_machine.transition_to(UpdateState.DONE)
            return

        try:
            package = self._fetch_package(
                self._bootstrapper, latest_version, self._bootstrapper_payload
            )
            self.state_machine.transition_to(UpdateState.SWAPPING)
            outcome = swap_executable(
                package.payload, self.executable_path, move=self._move
            )
        except Exception as e:
            self.state_machine.fail(e)
            raise

        if outcome.committed:
            self._echo("Self update of bootstrapper was successful.")
            self._retire_old_executable(outcome)
            self._cleanup(package)
            return

        self._echo("Self update failed. Resetting bootstrapper.")
        self._raise_for_failed_swap(package, outcome)

    def _begin(self, resolver: FeedLocatorResolver, version: str) -> None:
        self.state_machine.reset()
        self.state_machine.transition_to(
            UpdateState.RESOLVING,
            package=resolver.package_name,
            version=version or None,
        )

    def _fetch_package(
        self,
        resolver: FeedLocatorResolver,
        version: str,
        payload: Path,
    ) -> PreparedPackage:
        if version:
            url = resolver.specific_package_version(version)
        else:
            url = resolver.latest_package()

        self.state_machine.transition_to(UpdateState.DOWNLOADING, url=url)
        workspace = create_scratch_workspace(self.folder)
        package_file = workspace / package_file_name(resolver.package_name, version)
        self._echo(f"Starting download from {url}")
        self._fetcher.download_file(url, package_file)

        self.state_machine.transition_to(
            UpdateState.UNPACKING, workspace=str(workspace)
        )
        self._unpack_archive(package_file, workspace)

        self.state_machine.transition_to(UpdateState.LOCATING)
        payload_file = locate_payload(workspace, payload)

        return PreparedPackage(
            package_name=resolver.package_name,
            version=version,
            url=url,
            workspace=workspace,
            package_file=package_file,
            payload=payload_file,
        )

    def _cleanup(self, package: PreparedPackage) -> None:
        self.state_machine.transition_to(UpdateState.CLEANUP)
        safe_remove_directory(package.workspace)
        self.state_machine.transition_to(UpdateState.DONE)

    def _retire_old_executable(self, outcome: SwapOutcome) -> None:
        """Carry the old file mode over and drop the old executable if possible."""
        try:
            shutil.copymode(outcome.aside_path, outcome.target)
        except OSError as e:
            logger.warning(
                "Could not copy file mode to new executable",
                extra={"target": str(outcome.target), "error": str(e)},
            )
        try:
            outcome.aside_path.unlink()
        except OSError as e:
            # Windows keeps the running image locked
            logger.debug(
                "Old executable left in place",
                extra={"aside_path": str(outcome.aside_path), "error": str(e)},
            )

    def _raise_for_failed_swap(
        self, package: PreparedPackage, outcome: SwapOutcome
    ) -> None:
        details = {
            "target": str(outcome.target),
            "aside_path": str(outcome.aside_path),
            "version": package.version or "latest",
            "error": str(outcome.original_error),
        }

        if outcome.status is SwapStatus.ROLLED_BACK:
            safe_remove_directory(package.workspace)
            error: SelfUpdateError | RollbackFailedError = SelfUpdateError(
                f"Self update failed and was rolled back: {outcome.original_error}",
                details=details,
            )
        else:
            details["restore_error"] = str(outcome.restore_error)
            details["workspace"] = str(package.workspace)
            error = RollbackFailedError(
                "Self update failed and the original executable could not be "
                f"restored; it was left at {outcome.aside_path}",
                details=details,
                restore_error=outcome.restore_error,
                aside_path=outcome.aside_path,
            )

        self.state_machine.fail(error)
        raise error from outcome.original_error
