"""
Version parsing and ordering for package feed versions.

Feed versions are not guaranteed to be strict SemVer, so this module uses its
own lenient grammar:

    MAJOR[.MINOR[.PATCH[.BUILD]]][-TAG[.PRERELEASEBUILD]]

where TAG is a run of ASCII letters optionally followed by digits ("beta2").
``+`` is accepted as the separator in place of ``-``. Missing numeric parts
default to 0, a missing build or pre-release build to "0".

Ordering is total over parsed values but deliberately not SemVer: a version
with no pre-release tag only outranks a tagged one when its pre-release build
is "0", and non-numeric build parts fall back to ordinal string comparison.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field

from paket_bootstrapper.errors import InvalidArgumentError

_SEPARATORS = "-+"


def _cmp(a: object, b: object) -> int:
    return (a > b) - (a < b)  # type: ignore[operator]


def _as_int(value: str) -> int | None:
    """Return the integer value of a decimal string, or None."""
    text = value.strip()
    digits = text[1:] if text[:1] in "+-" else text
    if not digits or not (digits.isascii() and digits.isdigit()):
        return None
    return int(text)


def _compare_numeric_or_ordinal(a: str, b: str) -> int:
    """Compare numerically when both sides are integers, else as strings."""
    int_a, int_b = _as_int(a), _as_int(b)
    if int_a is not None and int_b is not None:
        return _cmp(int_a, int_b)
    return _cmp(a, b)


def _numeric_key(value: str) -> int | str:
    int_value = _as_int(value)
    return value if int_value is None else int_value


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class PreReleaseTag:
    """
    The letters-plus-optional-number label of a pre-release ("rc", "beta2").

    Attributes:
        origin: Raw text the tag was parsed from.
        name: The letter run.
        number: The digit run as an integer, or None if there was none.
    """

    origin: str
    name: str
    number: int | None = None

    @classmethod
    def try_parse(cls, text: str) -> PreReleaseTag | None:
        """
        Parse a tag of the form ``letters digits*``.

        Returns:
            The tag, or None if ``text`` is not entirely one letter run
            followed by an optional digit run.
        """
        i = 0
        while i < len(text) and text[i].isascii() and text[i].isalpha():
            i += 1
        if i == 0:
            return None

        j = i
        while j < len(text) and text[j].isascii() and text[j].isdigit():
            j += 1
        if j != len(text):
            return None

        digits = text[i:]
        return cls(
            origin=text,
            name=text[:i],
            number=int(digits) if digits else None,
        )

    def compare(self, other: PreReleaseTag) -> int:
        """Order by name, then untagged number above numbered, then number."""
        if self.name != other.name:
            return _cmp(self.name, other.name)
        if self.number is None and other.number is not None:
            return 1
        if self.number is not None and other.number is None:
            return -1
        if self.number is None or other.number is None:
            return 0
        return _cmp(self.number, other.number)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PreReleaseTag):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PreReleaseTag):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.name, self.number))

    def __str__(self) -> str:
        return self.origin


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class VersionValue:
    """
    A parsed, comparable feed version.

    ``original`` keeps the exact source text for display and for building
    download URLs. It takes no part in equality, ordering or hashing.
    """

    major: int
    minor: int = 0
    patch: int = 0
    build: str = "0"
    pre_release: PreReleaseTag | None = None
    pre_release_build: str = "0"
    original: str = field(default="", compare=False)

    def compare(self, other: VersionValue) -> int:
        """
        Compare with another version.

        Returns:
            -1, 0 or 1 as this version is lower than, equal to or higher
            than ``other``.
        """
        if self.major != other.major:
            return _cmp(self.major, other.major)
        if self.minor != other.minor:
            return _cmp(self.minor, other.minor)
        if self.patch != other.patch:
            return _cmp(self.patch, other.patch)
        if self.build != other.build:
            result = _compare_numeric_or_ordinal(self.build, other.build)
            if result:
                return result

        x_tag, y_tag = self.pre_release, other.pre_release
        if x_tag == y_tag and self.pre_release_build == other.pre_release_build:
            return 0
        if x_tag is None and y_tag is not None and self.pre_release_build == "0":
            return 1
        if y_tag is None and x_tag is not None and other.pre_release_build == "0":
            return -1
        if x_tag != y_tag:
            # An absent tag still ranks above a present one
            if x_tag is None:
                return 1
            if y_tag is None:
                return -1
            return x_tag.compare(y_tag)
        return _compare_numeric_or_ordinal(
            self.pre_release_build, other.pre_release_build
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionValue):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, VersionValue):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash(
            (
                self.major,
                self.minor,
                self.patch,
                _numeric_key(self.build),
                self.pre_release,
                _numeric_key(self.pre_release_build),
            )
        )

    def __str__(self) -> str:
        return self.original


def _split_suffix(version: str) -> tuple[str, str | None]:
    """Split off the numeric core and the text up to the next separator."""
    for i, char in enumerate(version):
        if char in _SEPARATORS:
            rest = version[i + 1 :]
            for j, rest_char in enumerate(rest):
                if rest_char in _SEPARATORS:
                    return version[:i], rest[:j]
            return version[:i], rest
    return version, None


def _parse_component(segment: str, name: str, version: str) -> int:
    value = _as_int(segment)
    if value is None or value < 0:
        raise InvalidArgumentError(
            f"Invalid {name} version component: {segment!r}",
            details={"version": version, "component": name},
        )
    return value


def parse_version(version: str) -> VersionValue:
    """
    Parse a feed version string.

    Args:
        version: Version string (e.g., "5.0.1", "1.9.9-beta2", "3.0.0-rc.4").

    Returns:
        The parsed VersionValue, with ``original`` set to ``version``.

    Raises:
        InvalidArgumentError: If the string is blank or its major, minor or
            patch part is not a non-negative integer.
    """
    if not version or not version.strip():
        raise InvalidArgumentError(
            "Version string cannot be empty",
            details={"version": version},
        )

    core, suffix = _split_suffix(version)
    segments = core.split(".")

    major = _parse_component(segments[0], "major", version)
    minor = _parse_component(segments[1], "minor", version) if len(segments) > 1 else 0
    patch = _parse_component(segments[2], "patch", version) if len(segments) > 2 else 0
    build = segments[3] if len(segments) > 3 else "0"

    pre_release = None
    pre_release_build = "0"
    if suffix is not None:
        tokens = suffix.split(".")
        pre_release = PreReleaseTag.try_parse(tokens[0])
        if len(tokens) > 1:
            pre_release_build = tokens[1]

    return VersionValue(
        major=major,
        minor=minor,
        patch=patch,
        build=build,
        pre_release=pre_release,
        pre_release_build=pre_release_build,
        original=version,
    )


def try_parse_version(version: str) -> VersionValue | None:
    """Parse a version string, returning None instead of raising."""
    try:
        return parse_version(version)
    except InvalidArgumentError:
        return None


def compare_versions(v1: str | VersionValue, v2: str | VersionValue) -> int:
    """
    Compare two versions.

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2

    Raises:
        InvalidArgumentError: If either version string is invalid.
    """
    p1 = v1 if isinstance(v1, VersionValue) else parse_version(v1)
    p2 = v2 if isinstance(v2, VersionValue) else parse_version(v2)
    return p1.compare(p2)
