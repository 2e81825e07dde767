"""check-deps: find dependency bumps between two refs and check changelogs.

Each workspace package.json that changed between the refs is loaded at
both refs and compared key by key. A range that changed under
"dependencies" or "peerDependencies" is a bump, and the package's
changelog should carry a matching "Bump `dep` from `old` to `new`" entry.
"""

from __future__ import annotations

import json
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from pydantic import BaseModel, Field

from . import repo
from .changelog import (
    add_dependency_bump_entries,
    has_section,
    missing_dependency_bump_entries,
)
from .errors import CommandError, ManifestReadError, ReleaseBranchError
from .manifest import MANIFEST_FILE_NAME, read_json_object
from .models import DependencyChange
from .project import CHANGELOG_FILE_NAME, resolve_repository_url
from .shell import info, step, warn

BUMP_SECTIONS = ("dependencies", "peerDependencies")


class PackageBumps(BaseModel):
    """Dependency bumps found in one workspace package.

    Attributes:
        package: Directory name of the package.
        package_name: The "name" from its manifest.
        directory: Package directory relative to the project root.
        new_version: The package's own new version, if it changed too (the
                     package is being released, so entries belong in that
                     version's section instead of Unreleased).
        changes: The bumps themselves.
    """

    package: str
    package_name: str
    directory: str
    new_version: Optional[str] = None
    changes: list[DependencyChange] = Field(default_factory=list)


class ChangelogCheck(BaseModel):
    """Result of checking one package's changelog for bump entries."""

    package: str
    has_changelog: bool
    has_section: bool
    missing: list[DependencyChange] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.has_changelog and self.has_section and not self.missing


def _load_manifest_at(directory: Path, ref: str, path: str) -> Optional[dict[str, Any]]:
    text = repo.show_file(directory, ref, path)
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestReadError(f"Could not parse {path} at {ref}: {exc}", Path(path)) from None
    return data if isinstance(data, dict) else None


def compare_manifests(
    package: str, old: dict[str, Any], new: dict[str, Any]
) -> list[DependencyChange]:
    """List ranges that changed between two versions of a manifest.

    Added and removed dependencies are not bumps and are ignored, as are
    devDependencies.
    """
    changes = []
    for section in BUMP_SECTIONS:
        old_deps = old.get(section) or {}
        new_deps = new.get(section) or {}
        if not isinstance(old_deps, dict) or not isinstance(new_deps, dict):
            continue
        for dependency, new_range in new_deps.items():
            old_range = old_deps.get(dependency)
            if isinstance(old_range, str) and isinstance(new_range, str) and old_range != new_range:
                changes.append(
                    DependencyChange(
                        package=package,
                        dependency=dependency,
                        type=section,
                        old_version=old_range,
                        new_version=new_range,
                    )
                )
    return changes


def find_dependency_bumps(
    directory: Path, from_ref: str, to_ref: str = "HEAD"
) -> dict[str, PackageBumps]:
    """Collect dependency bumps in workspace manifests between two refs.

    Returns:
        Package directory name → bumps, for packages with at least one.
    """
    bumps: dict[str, PackageBumps] = {}
    for path in repo.changed_files(directory, from_ref, to_ref):
        posix = PurePosixPath(path)
        # The root manifest lists workspaces, not releasable dependencies
        if posix.name != MANIFEST_FILE_NAME or posix.parent == PurePosixPath("."):
            continue
        old = _load_manifest_at(directory, from_ref, path)
        new = _load_manifest_at(directory, to_ref, path)
        if old is None or new is None:
            continue
        package = posix.parent.name
        changes = compare_manifests(package, old, new)
        if not changes:
            continue
        new_version = new.get("version")
        bumps[package] = PackageBumps(
            package=package,
            package_name=str(new.get("name") or package),
            directory=str(posix.parent),
            new_version=new_version if new_version != old.get("version") else None,
            changes=changes,
        )
    return bumps


def resolve_from_ref(directory: Path, default_branch: str) -> Optional[str]:
    """Pick the ref to compare against when --from is not given.

    Returns:
        The merge base of HEAD with the default branch (local first, then
        origin), or None when HEAD is the default branch itself.

    Raises:
        ReleaseBranchError: If no merge base can be found.
    """
    current = repo.current_branch_name(directory)
    info(f"Current branch: {current}")
    if current in {default_branch, "main", "master"}:
        warn(
            f"You are on {current}. Specify refs to compare with --from, or switch to "
            "a feature branch."
        )
        return None
    for candidate in (default_branch, f"origin/{default_branch}"):
        try:
            base = repo.merge_base(directory, candidate)
        except CommandError:
            continue
        info(f"Comparing against merge base with {candidate}: {base[:8]}")
        return base
    raise ReleaseBranchError(
        f"Could not find merge base with {default_branch} or origin/{default_branch}.",
        "Specify refs manually with --from, or choose another branch with "
        "--default-branch.",
    )


def check_changelogs(
    directory: Path, bumps: dict[str, PackageBumps]
) -> list[ChangelogCheck]:
    """Check each package's changelog for the entries its bumps need."""
    results = []
    for package, package_bumps in bumps.items():
        changelog_path = directory / package_bumps.directory / CHANGELOG_FILE_NAME
        if not changelog_path.exists():
            results.append(
                ChangelogCheck(
                    package=package,
                    has_changelog=False,
                    has_section=False,
                    missing=package_bumps.changes,
                )
            )
            continue
        text = changelog_path.read_text(encoding="utf-8")
        results.append(
            ChangelogCheck(
                package=package,
                has_changelog=True,
                has_section=has_section(text, package_bumps.new_version),
                missing=missing_dependency_bump_entries(
                    text, package_bumps.changes, package_bumps.new_version
                ),
            )
        )
    return results


def fix_changelogs(
    directory: Path,
    bumps: dict[str, PackageBumps],
    repository_url: str,
    pr_number: Optional[str] = None,
) -> int:
    """Add missing bump entries to changelogs.

    Returns:
        Number of changelogs that were rewritten.
    """
    updated = 0
    for package, package_bumps in bumps.items():
        changelog_path = directory / package_bumps.directory / CHANGELOG_FILE_NAME
        if not changelog_path.exists():
            warn(f"No {CHANGELOG_FILE_NAME} found for {package} at {changelog_path}")
            continue
        text = changelog_path.read_text(encoding="utf-8")
        new_text = add_dependency_bump_entries(
            text,
            package_bumps.changes,
            repository_url,
            version=package_bumps.new_version,
            pr_number=pr_number,
        )
        if new_text != text:
            changelog_path.write_text(new_text, encoding="utf-8")
            info(f"Updated {changelog_path.relative_to(directory)}")
            updated += 1
    return updated


def check_dependency_bumps(
    directory: Path,
    *,
    from_ref: Optional[str] = None,
    to_ref: str = "HEAD",
    default_branch: str = "main",
    fix: bool = False,
    pr_number: Optional[str] = None,
) -> dict[str, PackageBumps]:
    """Report dependency bumps and validate (or fix) their changelog entries.

    Returns:
        The bumps found, keyed by package directory name.
    """
    directory = directory.resolve()
    step("Checking dependency bumps")
    if from_ref is None:
        from_ref = resolve_from_ref(directory, default_branch)
        if from_ref is None:
            return {}

    info(f"Comparing {from_ref[:8]} to {to_ref}")
    bumps = find_dependency_bumps(directory, from_ref, to_ref)
    if not bumps:
        info("No dependency version bumps found.")
        return {}

    for package_bumps in bumps.values():
        for change in package_bumps.changes:
            info(
                f"{package_bumps.package_name}: {change.dependency} "
                f"{change.old_version} → {change.new_version} ({change.type})"
            )

    step("Validating changelogs")
    has_errors = False
    for result in check_changelogs(directory, bumps):
        if not result.has_changelog:
            warn(f"{result.package}: {CHANGELOG_FILE_NAME} not found")
        elif not result.has_section:
            warn(f"{result.package}: no section for these changes found")
        elif result.missing:
            names = ", ".join(change.dependency for change in result.missing)
            warn(f"{result.package}: missing changelog entries for {names}")
        else:
            info(f"{result.package}: all entries present")
        has_errors = has_errors or not result.ok

    if has_errors and not fix:
        info("Run with --fix to update the changelogs automatically.")

    if fix:
        step("Updating changelogs")
        root_manifest = read_json_object(directory / MANIFEST_FILE_NAME)
        repository_url = resolve_repository_url(directory, root_manifest)
        updated = fix_changelogs(directory, bumps, repository_url, pr_number)
        if updated and not pr_number:
            info("Placeholder PR numbers (XXXXX) were used; pass --pr to fill them in.")
        elif not updated:
            info("All changelogs are up to date.")

    return bumps
