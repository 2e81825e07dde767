"""Release plan builder.

Turns a validated release spec into concrete versions: one entry for the
root package, whose version tracks the release itself, followed by one
entry per released workspace package.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date
from enum import Enum
from typing import Optional

from .errors import NoOpVersionBumpError, VersionBumpError
from .models import PackageReleasePlan, Project, ReleasePlan, ReleaseSpecification
from .versions import IncrementableVersionPart, increment_version


class VersioningScheme(str, Enum):
    """How the root package version (and so the release name) is derived."""

    ORDINARY = "ordinary"
    DATE = "date"


_DATED_BRANCH = re.compile(r"^release/(?P<date>\d{4}-\d{2}-\d{2})/(?P<counter>\d+)$")


def ordinary_root_version(project: Project, *, backport: bool) -> str:
    """Next root version under the ordinary/backport convention.

    Examples:
        root 5.2.0, ordinary release → 6.0.0
        root 5.2.0, backport release → 5.3.0
    """
    release = project.release_version
    if backport:
        return f"{release.ordinary_number}.{release.backport_number + 1}.0"
    return f"{release.ordinary_number + 1}.0.0"


def dated_release_counter(
    project: Project,
    today: date,
    existing_branches: Iterable[str] = (),
    current_branch: Optional[str] = None,
) -> int:
    """Work out the counter for a date-based release made today.

    The counter continues from the root version (when its major part is
    today's date) and from any release/<date>/<n> branches for today. If
    HEAD already is one of today's release branches, its counter is reused
    so that a resumed run lands on the same branch.
    """
    iso = today.isoformat()
    if current_branch:
        match = _DATED_BRANCH.match(current_branch)
        if match and match["date"] == iso:
            return int(match["counter"])

    highest = 0
    root_version = project.root_package.version
    if root_version.major == int(today.strftime("%Y%m%d")):
        highest = root_version.minor
    for branch in existing_branches:
        match = _DATED_BRANCH.match(branch)
        if match and match["date"] == iso:
            highest = max(highest, int(match["counter"]))
    return highest + 1


def plan_release(
    project: Project,
    specification: ReleaseSpecification,
    *,
    scheme: VersioningScheme = VersioningScheme.ORDINARY,
    today: Optional[date] = None,
    backport: bool = False,
    existing_branches: Iterable[str] = (),
    current_branch: Optional[str] = None,
) -> ReleasePlan:
    """Compute new versions for the root and every released package.

    Args:
        project: The project graph.
        specification: The validated release spec.
        scheme: Root versioning convention.
        today: Release date (required for the date scheme).
        backport: Bump the backport number instead of the ordinary number
                  (ordinary scheme only).
        existing_branches: Local branch names, for the date counter.
        current_branch: The checked-out branch, for the date counter.

    Returns:
        The plan, root entry first, then packages in spec order.

    Raises:
        NoOpVersionBumpError: If an exact version equals the current one.
        VersionBumpError: If an exact version is lower than the current one.
    """
    if scheme is VersioningScheme.DATE:
        if today is None:
            raise ValueError("today is required for date-based versioning")
        counter = dated_release_counter(project, today, existing_branches, current_branch)
        root_version = f"{today.strftime('%Y%m%d')}.{counter}.0"
        release_name = f"{today.isoformat()}/{counter}"
    else:
        root_version = ordinary_root_version(project, backport=backport)
        release_name = root_version

    entries = [
        PackageReleasePlan(
            package=project.root_package,
            new_version=root_version,
            should_update_changelog=False,
        )
    ]

    for name, specifier in specification.packages.items():
        package = project.workspace_packages[name]
        current = package.version
        if isinstance(specifier, IncrementableVersionPart):
            new_version = increment_version(current, specifier)
        else:
            comparison = specifier.compare(current)
            if comparison == 0:
                raise NoOpVersionBumpError(name, str(current))
            if comparison < 0:
                raise VersionBumpError(
                    f'Cannot release "{name}" at {specifier}: it is already at the '
                    f"greater version {current}.",
                    name,
                    str(current),
                    str(specifier),
                )
            new_version = specifier
        entries.append(
            PackageReleasePlan(
                package=package, new_version=str(new_version), should_update_changelog=True
            )
        )

    return ReleasePlan(release_name=release_name, packages=entries)
