"""
Fetch and self-update machinery for the Paket bootstrapper.

This package implements:
- Version parsing and ordering
- NuGet v2 feed URLs and latest-version selection
- The HTTP fetch capability
- Scratch workspaces, archive extraction and the executable swap
- State machine for tracking an update attempt
- The NuGet download strategy and an ordered fallback chain
"""

from paket_bootstrapper.updates.backends import DownloadStrategy, PreparedPackage
from paket_bootstrapper.updates.fallback import FallbackChain
from paket_bootstrapper.updates.feed import (
    FeedLocatorResolver,
    select_latest_version,
    split_version_list,
)
from paket_bootstrapper.updates.http import FeedClient
from paket_bootstrapper.updates.nuget_backend import NugetDownloadStrategy
from paket_bootstrapper.updates.operations import (
    SwapOutcome,
    SwapStatus,
    extract_archive,
    swap_executable,
)
from paket_bootstrapper.updates.state_machine import (
    UpdateState,
    UpdateStateData,
    UpdateStateMachine,
)
from paket_bootstrapper.updates.version import (
    PreReleaseTag,
    VersionValue,
    compare_versions,
    parse_version,
    try_parse_version,
)

__all__ = [
    # Versions
    "VersionValue",
    "PreReleaseTag",
    "parse_version",
    "try_parse_version",
    "compare_versions",
    # Feed
    "FeedLocatorResolver",
    "select_latest_version",
    "split_version_list",
    "FeedClient",
    # Strategies
    "DownloadStrategy",
    "PreparedPackage",
    "NugetDownloadStrategy",
    "FallbackChain",
    # Operations
    "SwapOutcome",
    "SwapStatus",
    "extract_archive",
    "swap_executable",
    # State machine
    "UpdateStateMachine",
    "UpdateState",
    "UpdateStateData",
]
