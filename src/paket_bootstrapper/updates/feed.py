"""
NuGet v2 feed locators and latest-version selection.

FeedLocatorResolver builds request URLs for a package; it performs no I/O.
select_latest_version picks the newest entry from a ``package-versions``
response, skipping entries that do not parse.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable

from paket_bootstrapper.logging import get_logger
from paket_bootstrapper.updates.version import VersionValue, try_parse_version

logger = get_logger(__name__)

DEFAULT_FEED_URL = "https://www.nuget.org/api/v2"

PACKAGE_VERSIONS_TEMPLATE = "{feed}/package-versions/{package}"
LATEST_PACKAGE_TEMPLATE = "{feed}/package/{package}"
SPECIFIC_PACKAGE_TEMPLATE = "{feed}/package/{package}/{version}"
INCLUDE_PRERELEASE_QUERY = "?includePrerelease=true"


class FeedLocatorResolver:
    """
    Builds feed URLs for one package.

    Attributes:
        package_name: NuGet package id (e.g., "Paket").
        feed_url: Base URL of the NuGet v2 API.
    """

    def __init__(self, package_name: str, feed_url: str = DEFAULT_FEED_URL) -> None:
        self.package_name = package_name
        self.feed_url = feed_url.rstrip("/")

    def all_package_versions(self, include_prerelease: bool) -> str:
        """URL listing every published version of the package."""
        url = PACKAGE_VERSIONS_TEMPLATE.format(
            feed=self.feed_url, package=self.package_name
        )
        if include_prerelease:
            url += INCLUDE_PRERELEASE_QUERY
        return url

    def latest_package(self) -> str:
        """URL of the latest package archive."""
        return LATEST_PACKAGE_TEMPLATE.format(
            feed=self.feed_url, package=self.package_name
        )

    def specific_package_version(self, version: str) -> str:
        """URL of the package archive for ``version``."""
        return SPECIFIC_PACKAGE_TEMPLATE.format(
            feed=self.feed_url, package=self.package_name, version=version
        )


def split_version_list(raw: str) -> list[str]:
    """
    Split a ``["1.0.0","1.1.0"]`` response body into bare version strings.

    Empty entries are dropped; quotes and whitespace are trimmed.
    """
    body = raw.strip().strip("[]")
    return [_clean_entry(entry) for entry in body.split(",") if entry]


def _clean_entry(entry: str) -> str:
    return entry.strip().strip('"').strip()


def select_latest_version(entries: str | Iterable[str]) -> str:
    """
    Select the newest version from a feed listing.

    Args:
        entries: Either the raw bracketed response body or an iterable of
            (possibly quoted) version strings.

    Returns:
        The ``original`` text of the highest version, or "" if no entry
        parsed. Among equal versions the one listed last wins.
    """
    if isinstance(entries, str):
        candidates = split_version_list(entries)
    else:
        candidates = [_clean_entry(entry) for entry in entries]

    parsed: list[VersionValue] = []
    for candidate in candidates:
        version = try_parse_version(candidate)
        if version is None or not version.original.strip():
            logger.debug("Skipping unparseable version", extra={"version": candidate})
            continue
        parsed.append(version)

    if not parsed:
        return ""

    ordered = sorted(parsed, key=functools.cmp_to_key(VersionValue.compare))
    return ordered[-1].original
