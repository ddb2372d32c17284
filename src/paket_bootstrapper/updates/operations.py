"""
File system operations for fetching and swapping executables.

This module implements:
- Scratch workspace creation and removal
- Safe zip extraction and payload lookup
- File moves that replace an existing destination
- The self-update swap with rollback

The self-update swap is a two-step protocol because a running executable
cannot be overwritten in place on every platform:
1. Move the current executable aside: os.replace(target, aside_path)
2. Move the new executable into place: os.replace(new_file, target)

If step 2 fails, one restore move from aside_path back to target is
attempted. If step 1 fails the original never left target and only the
reserved aside file is removed. The outcome is returned as a SwapOutcome
instead of raised.
"""

from __future__ import annotations

import errno
import os
import shutil
import stat
import tempfile
import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from paket_bootstrapper.errors import FailedPreconditionError, InternalError
from paket_bootstrapper.logging import get_logger

logger = get_logger(__name__)

MoveFunc = Callable[[Path, Path], None]


def ensure_directory(path: Path, *, parents: bool = True, mode: int = 0o755) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Raises:
        FailedPreconditionError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=parents, mode=mode, exist_ok=True)
        return path
    except OSError as e:
        raise FailedPreconditionError(
            f"Failed to create directory: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e


def safe_remove_directory(path: Path, *, ignore_errors: bool = True) -> bool:
    """
    Remove a directory and its contents.

    Returns:
        True if directory was removed, False if it didn't exist.

    Raises:
        FailedPreconditionError: If removal fails and ignore_errors is False.
    """
    if not path.exists():
        return False

    try:
        shutil.rmtree(path, ignore_errors=ignore_errors)
        logger.debug("Removed directory", extra={"path": str(path)})
        return True
    except OSError as e:
        if not ignore_errors:
            raise FailedPreconditionError(
                f"Failed to remove directory: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e
        return False


def create_scratch_workspace(parent: Path) -> Path:
    """
    Create a uniquely named, empty directory under ``parent``.

    Each download attempt owns its workspace exclusively, so concurrent
    bootstrapper processes never share downloaded files.
    """
    ensure_directory(parent)
    try:
        workspace = Path(tempfile.mkdtemp(prefix="paket-", dir=parent))
    except OSError as e:
        raise InternalError(
            f"Failed to create scratch workspace in {parent}: {e}",
            details={"parent": str(parent), "error": str(e)},
        ) from e
    logger.debug("Created scratch workspace", extra={"path": str(workspace)})
    return workspace


def _is_unsafe_member(member: zipfile.ZipInfo) -> bool:
    name = member.filename.replace("\\", "/")
    parts = Path(name).parts
    if name.startswith("/") or ".." in parts:
        return True
    if parts and ":" in parts[0]:
        return True
    return stat.S_ISLNK(member.external_attr >> 16)


def extract_archive(archive: Path, destination: Path) -> None:
    """
    Extract a zip archive (``.nupkg``) into ``destination``.

    Raises:
        FailedPreconditionError: If the file is not a zip archive or contains
            entries that would escape ``destination``.
    """
    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.infolist():
                if _is_unsafe_member(member):
                    raise FailedPreconditionError(
                        f"Unsafe archive entry: {member.filename}",
                        details={"archive": str(archive), "entry": member.filename},
                    )
            zf.extractall(destination)
    except zipfile.BadZipFile as e:
        raise FailedPreconditionError(
            f"Not a valid package archive: {archive}",
            details={"archive": str(archive), "error": str(e)},
        ) from e
    except OSError as e:
        raise InternalError(
            f"Failed to extract {archive}: {e}",
            details={
                "archive": str(archive),
                "destination": str(destination),
                "error": str(e),
            },
        ) from e

    logger.debug(
        "Extracted archive",
        extra={"archive": str(archive), "destination": str(destination)},
    )


def locate_payload(workspace: Path, relative_path: Path | str) -> Path:
    """
    Return the payload file inside an unpacked package.

    Raises:
        FailedPreconditionError: If the file is missing.
    """
    payload = workspace / relative_path
    if not payload.is_file():
        raise FailedPreconditionError(
            f"Package does not contain {relative_path}",
            details={"workspace": str(workspace), "payload": str(relative_path)},
        )
    return payload


def move_file(source: Path, destination: Path) -> None:
    """
    Move ``source`` to ``destination``, replacing any existing file.

    Uses an atomic rename when both paths are on the same file system and
    falls back to copy-and-delete otherwise.
    """
    try:
        os.replace(source, destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.copy2(source, destination)
        os.unlink(source)


def copy_file(source: Path, destination: Path) -> None:
    """
    Copy ``source`` over ``destination``, creating parent directories.

    Raises:
        InternalError: If the copy fails, e.g. ``destination`` is a directory.
    """
    ensure_directory(destination.parent)
    try:
        shutil.copyfile(source, destination)
    except OSError as e:
        raise InternalError(
            f"Failed to write {destination}: {e}",
            details={
                "source": str(source),
                "destination": str(destination),
                "error": str(e),
            },
        ) from e


def make_aside_path(target: Path) -> Path:
    """
    Reserve a fresh temporary path next to ``target`` for the old file.

    Raises:
        InternalError: If the directory of ``target`` is not writable.
    """
    try:
        fd, name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".old", dir=target.parent
        )
    except OSError as e:
        raise InternalError(
            f"Cannot reserve a backup path next to {target}: {e}",
            details={"target": str(target), "error": str(e)},
        ) from e
    os.close(fd)
    return Path(name)


class SwapStatus(str, Enum):
    """How a swap ended."""

    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"


@dataclass(frozen=True)
class SwapOutcome:
    """
    Result of swap_executable.

    Attributes:
        status: COMMITTED, ROLLED_BACK or ROLLBACK_FAILED.
        target: The executable path that was being replaced.
        aside_path: Where the original executable was moved to.
        original_error: The failure of the aside or into-place move.
        restore_error: The failure of the restore move.
    """

    status: SwapStatus
    target: Path
    aside_path: Path
    original_error: BaseException | None = None
    restore_error: BaseException | None = None

    @property
    def committed(self) -> bool:
        """True if the new executable is in place."""
        return self.status is SwapStatus.COMMITTED


def swap_executable(
    new_file: Path,
    target: Path,
    *,
    aside_path: Path | None = None,
    move: MoveFunc = move_file,
) -> SwapOutcome:
    """
    Replace ``target`` with ``new_file``, restoring ``target`` on failure.

    Args:
        new_file: The new executable.
        target: The executable being replaced, usually the running one.
        aside_path: Where to move the current executable. A fresh temporary
            file next to ``target`` is used if omitted.
        move: The move primitive.

    Returns:
        SwapOutcome describing what happened. Move failures never raise.

    Raises:
        InternalError: If no aside path was given and none can be reserved.
            Nothing has been moved at that point.
    """
    if aside_path is None:
        aside_path = make_aside_path(target)

    moved_aside = False
    try:
        move(target, aside_path)
        moved_aside = True
        move(new_file, target)
    except Exception as original_error:
        logger.warning(
            "Executable swap failed",
            extra={
                "target": str(target),
                "aside_path": str(aside_path),
                "moved_aside": moved_aside,
                "error": str(original_error),
            },
        )
        if not moved_aside:
            # The original never left; drop the reserved aside file
            aside_path.unlink(missing_ok=True)
            return SwapOutcome(
                status=SwapStatus.ROLLED_BACK,
                target=target,
                aside_path=aside_path,
                original_error=original_error,
            )
        try:
            move(aside_path, target)
        except Exception as restore_error:
            logger.error(
                "Restoring original executable failed",
                extra={
                    "target": str(target),
                    "aside_path": str(aside_path),
                    "error": str(restore_error),
                },
            )
            return SwapOutcome(
                status=SwapStatus.ROLLBACK_FAILED,
                target=target,
                aside_path=aside_path,
                original_error=original_error,
                restore_error=restore_error,
            )
        logger.info("Original executable restored", extra={"target": str(target)})
        return SwapOutcome(
            status=SwapStatus.ROLLED_BACK,
            target=target,
            aside_path=aside_path,
            original_error=original_error,
        )

    logger.info(
        "Executable swapped",
        extra={"target": str(target), "aside_path": str(aside_path)},
    )
    return SwapOutcome(status=SwapStatus.COMMITTED, target=target, aside_path=aside_path)
