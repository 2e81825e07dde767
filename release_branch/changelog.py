"""Changelog editing for packages following the Keep a Changelog format.

Two jobs:
1. At release time, move the "## [Unreleased]" entries into a section for
   the new version and rewrite the link references at the bottom.
2. For check-deps, find (and optionally add) the "Bump `dep` from `old` to
   `new`" entries that dependency bumps require.

A changelog looks like:

    # Changelog

    ## [Unreleased]
    ### Changed
    - Bump `@scope/b` from `^1.0.0` to `^2.0.0` ([#12](https://github.com/org/repo/pull/12))

    ## [1.0.0]
    ### Added
    - Initial release

    [Unreleased]: https://github.com/org/repo/compare/@scope/a@1.0.0...HEAD
    [1.0.0]: https://github.com/org/repo/releases/tag/@scope/a@1.0.0
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Optional

from .models import DependencyChange

UNRELEASED = "Unreleased"
PLACEHOLDER_PR_NUMBER = "XXXXX"

_SECTION_HEADER = re.compile(r"^## \[(?P<version>[^\]]+)\]")
_CATEGORY_HEADER = re.compile(r"^### (?P<category>.+?)\s*$")
_LINK_REFERENCE = re.compile(r"^\[(?P<label>[^\]]+)\]:\s*\S")


def tag_prefix_for(package_name: str) -> str:
    """Release tags for workspace packages look like "<name>@<version>"."""
    return f"{package_name}@"


def _split_link_references(lines: list[str]) -> tuple[list[str], list[str]]:
    body = [line for line in lines if not _LINK_REFERENCE.match(line)]
    links = [line for line in lines if _LINK_REFERENCE.match(line)]
    while body and not body[-1].strip():
        body.pop()
    return body, links


def _strip_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def _released_versions(lines: Iterable[str]) -> list[str]:
    versions = []
    for line in lines:
        match = _SECTION_HEADER.match(line)
        if match and match["version"] != UNRELEASED:
            versions.append(match["version"])
    return versions


def _section_bounds(lines: list[str], version: str) -> Optional[tuple[int, int]]:
    """Return (header index, end index) of a "## [version]" section."""
    start = None
    for index, line in enumerate(lines):
        if start is None:
            match = _SECTION_HEADER.match(line)
            if match and match["version"] == version:
                start = index
        elif line.startswith("## "):
            return start, index
    return (start, len(lines)) if start is not None else None


def update_changelog(
    text: str, new_version: str, repository_url: str, tag_prefix: str
) -> Optional[str]:
    """Move unreleased changes into a section for a new version.

    Args:
        text: Current changelog contents.
        new_version: Version being released.
        repository_url: Canonical HTTPS URL, used for the compare links.
        tag_prefix: Prefix of release tags for this package (e.g. "pkg@").

    Returns:
        The new changelog text, or None if a section for `new_version`
        already exists (nothing to change).
    """
    body, links = _split_link_references(text.splitlines())
    released = _released_versions(body)
    if new_version in released:
        return None
    previous = released[0] if released else None

    new_header = [f"## [{UNRELEASED}]", "", f"## [{new_version}]"]
    bounds = _section_bounds(body, UNRELEASED)
    if bounds is not None:
        start, end = bounds
        entries = _strip_blank_edges(body[start + 1 : end])
        body = body[:start] + new_header + entries + [""] + body[end:]
    else:
        insert_at = next(
            (i for i, line in enumerate(body) if line.startswith("## ")), len(body)
        )
        spacer = [""] if insert_at == len(body) and body else []
        body = body[:insert_at] + spacer + new_header + [""] + body[insert_at:]

    new_tag = f"{tag_prefix}{new_version}"
    if previous is None:
        version_link = f"[{new_version}]: {repository_url}/releases/tag/{new_tag}"
    else:
        version_link = (
            f"[{new_version}]: {repository_url}/compare/{tag_prefix}{previous}...{new_tag}"
        )
    kept_links = [
        line for line in links if _LINK_REFERENCE.match(line)["label"] != UNRELEASED
    ]
    new_links = [
        f"[{UNRELEASED}]: {repository_url}/compare/{new_tag}...HEAD",
        version_link,
        *kept_links,
    ]

    return "\n".join(_strip_blank_edges(body)) + "\n\n" + "\n".join(new_links) + "\n"


def format_dependency_bump_entry(
    change: DependencyChange, pr_number: Optional[str], repository_url: str
) -> str:
    """Render the changelog line for one dependency bump.

    Peer dependency bumps are breaking for consumers, so they carry the
    "**BREAKING:**" prefix.
    """
    pr = pr_number or PLACEHOLDER_PR_NUMBER
    prefix = "**BREAKING:** " if change.type == "peerDependencies" else ""
    return (
        f"{prefix}Bump `{change.dependency}` from `{change.old_version}` to "
        f"`{change.new_version}` ([#{pr}]({repository_url}/pull/{pr}))"
    )


def _bump_pattern(change: DependencyChange, *, exact: bool) -> re.Pattern[str]:
    dep = re.escape(change.dependency)
    if exact:
        versions = f"from `{re.escape(change.old_version)}` to `{re.escape(change.new_version)}`"
    else:
        versions = "from `[^`]+` to `[^`]+`"
    return re.compile(f"Bump `{dep}` {versions}")


def has_section(text: str, version: Optional[str] = None) -> bool:
    """Whether the changelog has a section for `version` (Unreleased if None)."""
    return _section_bounds(text.splitlines(), version or UNRELEASED) is not None


def section_entries(text: str, version: Optional[str] = None) -> dict[str, list[str]]:
    """Entries of one changelog section, grouped by category.

    Args:
        text: Changelog contents.
        version: Release section to read; the Unreleased section if None.

    Returns:
        Category name → entry texts (without the leading "- "). Empty if
        the section does not exist.
    """
    lines = text.splitlines()
    bounds = _section_bounds(lines, version or UNRELEASED)
    if bounds is None:
        return {}
    categories: dict[str, list[str]] = {}
    current = None
    for line in lines[bounds[0] + 1 : bounds[1]]:
        header = _CATEGORY_HEADER.match(line)
        if header:
            current = categories.setdefault(header["category"], [])
        elif current is not None and line.startswith("- "):
            current.append(line[2:])
    return categories


def missing_dependency_bump_entries(
    text: str, changes: Iterable[DependencyChange], version: Optional[str] = None
) -> list[DependencyChange]:
    """Changes with no exactly matching entry under "### Changed"."""
    changed = section_entries(text, version).get("Changed", [])
    return [
        change
        for change in changes
        if not any(_bump_pattern(change, exact=True).search(entry) for entry in changed)
    ]


def add_dependency_bump_entries(
    text: str,
    changes: Iterable[DependencyChange],
    repository_url: str,
    *,
    version: Optional[str] = None,
    pr_number: Optional[str] = None,
) -> str:
    """Add or correct dependency bump entries under "### Changed".

    An existing entry for the same dependency with different versions is
    rewritten in place; otherwise a new entry is appended to the category.
    Missing sections and categories are created.
    """
    missing = missing_dependency_bump_entries(text, changes, version)
    if not missing:
        return text

    lines = text.splitlines()
    section = version or UNRELEASED
    bounds = _section_bounds(lines, section)
    if bounds is None:
        insert_at = next(
            (i for i, line in enumerate(lines) if _SECTION_HEADER.match(line)), len(lines)
        )
        lines[insert_at:insert_at] = [f"## [{section}]", ""]
        bounds = (insert_at, insert_at + 2)

    start, end = bounds
    changed_at = None
    for index in range(start + 1, end):
        header = _CATEGORY_HEADER.match(lines[index])
        if header and header["category"] == "Changed":
            changed_at = index
            break
    if changed_at is None:
        lines[start + 1 : start + 1] = ["### Changed"]
        changed_at = start + 1
        end += 1

    for change in missing:
        entry = f"- {format_dependency_bump_entry(change, pr_number, repository_url)}"
        pattern = _bump_pattern(change, exact=False)
        category_end = changed_at + 1
        while category_end < end and lines[category_end].startswith("- "):
            category_end += 1
        existing = next(
            (i for i in range(changed_at + 1, category_end) if pattern.search(lines[i])),
            None,
        )
        if existing is not None:
            lines[existing] = entry
        else:
            lines.insert(category_end, entry)
            end += 1

    return "\n".join(lines) + "\n"
