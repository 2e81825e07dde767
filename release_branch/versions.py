"""Version parsing and bumping utilities.

Thin layer over the semver library: strict parsing, validity checks,
incrementing one part of a version, and classifying the difference
between two versions.
"""

from __future__ import annotations

from enum import Enum

import semver


class IncrementableVersionPart(str, Enum):
    """The parts of a SemVer version that can be bumped."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


def parse_version(version_str: str) -> semver.Version:
    """Parse a full SemVer string (major.minor.patch[-pre][+build]).

    Raises:
        ValueError: If the string is not a valid SemVer version.
    """
    return semver.Version.parse(version_str)


def is_valid_version(value: object) -> bool:
    """Return True if value is a string holding a valid SemVer version."""
    return isinstance(value, str) and semver.Version.is_valid(value)


def increment_version(
    version: semver.Version, part: IncrementableVersionPart
) -> semver.Version:
    """Increment one part of a version.

    Lower parts reset to zero and prerelease/build data is dropped:
        1.2.3 + major → 2.0.0
        1.2.3 + minor → 1.3.0
        1.2.3 + patch → 1.2.4

    A prerelease whose lower parts are already zero is finalized instead,
    as npm does:
        2.0.0-rc.1 + major → 2.0.0
        1.3.0-rc.1 + minor → 1.3.0
        1.2.3-rc.1 + patch → 1.2.3
    """
    if version.prerelease:
        lower = {
            IncrementableVersionPart.MAJOR: (version.minor, version.patch),
            IncrementableVersionPart.MINOR: (version.patch,),
            IncrementableVersionPart.PATCH: (),
        }[part]
        if not any(lower):
            return version.finalize_version()
    if part is IncrementableVersionPart.MAJOR:
        return version.bump_major()
    if part is IncrementableVersionPart.MINOR:
        return version.bump_minor()
    return version.bump_patch()


def diff_kind(
    old: semver.Version, new: semver.Version
) -> IncrementableVersionPart | None:
    """Return the most significant part that differs, or None if equal.

    Versions that only differ in prerelease data count as a patch change.
    """
    if old.major != new.major:
        return IncrementableVersionPart.MAJOR
    if old.minor != new.minor:
        return IncrementableVersionPart.MINOR
    if old.compare(new) != 0:
        return IncrementableVersionPart.PATCH
    return None
