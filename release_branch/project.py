"""Project graph reader.

Discovers the workspace packages listed by the root package.json,
validates every manifest, and works out which packages changed since
their latest release. The manifest reads and git queries for separate
packages are independent, so they are gathered concurrently.
"""

from __future__ import annotations

import asyncio
import glob
from pathlib import Path
from typing import Any

from .errors import ManifestFieldError, ManifestReadError, ProjectReadError
from .manifest import MANIFEST_FILE_NAME, read_manifest
from .models import Package, Project, ReleaseVersion
from .repo import has_changes_since, normalize_repository_url, remote_url, tag_names_async
from .versions import is_valid_version, parse_version

CHANGELOG_FILE_NAME = "CHANGELOG.md"


def root_release_tag(root_version: str) -> str:
    """Tag created for a release of the whole project: v<version>."""
    return f"v{root_version}"


def package_release_tag(name: str, version: str) -> str:
    """Tag created for a release of one workspace package: <name>@<version>."""
    return f"{name}@{version}"


def expand_workspace_globs(root: Path, patterns: list[str]) -> list[Path]:
    """Expand workspace globs into package directories.

    Matches are sorted per pattern; a directory matched by several patterns
    is kept once, at its first position.
    """
    directories: list[Path] = []
    seen: set[Path] = set()
    for pattern in patterns:
        for match in sorted(glob.glob(str(root / pattern))):
            path = Path(match).resolve()
            if path.is_dir() and path not in seen:
                seen.add(path)
                directories.append(path)
    return directories


def latest_release_tag(
    package_name: str, version: str, root_version: str, tags: set[str]
) -> str | None:
    """Find the tag marking a workspace package's latest release.

    Packages released together with the whole project may only carry the
    project-wide tag, so that is tried second.
    """
    for tag in (package_release_tag(package_name, version), root_release_tag(root_version)):
        if tag in tags:
            return tag
    return None


def resolve_repository_url(root: Path, raw_manifest: dict[str, Any]) -> str:
    """Work out the canonical HTTPS URL of the project's repository.

    The "repository" field of the root manifest wins (either a string or
    an object with "url"); otherwise the "origin" remote is used.
    """
    repository = raw_manifest.get("repository")
    url = None
    if isinstance(repository, str):
        url = repository
    elif isinstance(repository, dict) and isinstance(repository.get("url"), str):
        url = repository["url"]
    if not url:
        url = remote_url(root)
    if not url:
        raise ProjectReadError(
            f'Could not determine the repository URL for {root}: the root manifest '
            'has no "repository" field and there is no "origin" remote.',
            root,
        )
    return normalize_repository_url(url)


def _parse_release_version(version: str, root: Path) -> ReleaseVersion:
    if not is_valid_version(version):
        raise ProjectReadError(
            f'The version of the root package in {root} must be a valid SemVer '
            f'version string (got "{version}")',
            root,
        )
    parsed = parse_version(version)
    return ReleaseVersion(ordinary_number=parsed.major, backport_number=parsed.minor)


async def _read_package(
    directory: Path, *, strict_version: bool, is_root: bool
) -> tuple[dict[str, Any], Package]:
    raw, manifest = await asyncio.to_thread(
        read_manifest, directory, strict_version=strict_version
    )
    package = Package(
        directory_path=directory,
        manifest_path=directory / MANIFEST_FILE_NAME,
        unvalidated_manifest=raw,
        manifest=manifest,
        changelog_path=directory / CHANGELOG_FILE_NAME,
        has_changes_since_latest_release=False,
        is_root=is_root,
    )
    return raw, package


async def _read_workspace_package(directory: Path) -> Package:
    if not (directory / MANIFEST_FILE_NAME).is_file():
        raise ProjectReadError(
            f"The workspace directory {directory} does not contain a {MANIFEST_FILE_NAME}",
            directory,
        )
    _, package = await _read_package(directory, strict_version=True, is_root=False)
    return package


async def read_project(directory: Path) -> Project:
    """Build the project graph for a monorepo.

    Args:
        directory: Root directory of the project (holding the root
                   package.json and the git repository).

    Returns:
        A fully populated Project.

    Raises:
        ProjectReadError: If the root manifest is missing or invalid, a
                          workspace directory has no manifest, or two
                          packages share a name.
        ManifestFieldError: If a workspace manifest is invalid.
        UnrecognizedRemoteUrlError: If the repository URL cannot be
                                    normalized.
    """
    root = directory.resolve()
    try:
        root_raw, root_package = await _read_package(root, strict_version=False, is_root=True)
    except (ManifestReadError, ManifestFieldError) as exc:
        raise ProjectReadError(f"Could not read the root package: {exc}", root) from exc

    release_version = _parse_release_version(root_package.manifest.version, root)
    repository_url = resolve_repository_url(root, root_raw)

    workspace_dirs = expand_workspace_globs(root, root_package.manifest.workspaces)
    tags, packages = await asyncio.gather(
        tag_names_async(root),
        asyncio.gather(*(_read_workspace_package(d) for d in workspace_dirs)),
    )

    workspace_packages: dict[str, Package] = {}
    for package in packages:
        existing = workspace_packages.get(package.name)
        if existing is not None:
            raise ProjectReadError(
                f'Package name "{package.name}" is used by both '
                f"{existing.directory_path} and {package.directory_path}",
                root,
            )
        workspace_packages[package.name] = package

    root_tag = root_release_tag(root_package.manifest.version)
    changes = await asyncio.gather(
        has_changes_since(root, root_tag if root_tag in tags else None, root),
        *(
            has_changes_since(
                root,
                latest_release_tag(
                    package.name, package.manifest.version, root_package.manifest.version, tags
                ),
                package.directory_path,
            )
            for package in workspace_packages.values()
        ),
    )

    root_package = root_package.model_copy(
        update={"has_changes_since_latest_release": changes[0]}
    )
    workspace_packages = {
        name: package.model_copy(update={"has_changes_since_latest_release": changed})
        for (name, package), changed in zip(workspace_packages.items(), changes[1:])
    }

    return Project(
        directory_path=root,
        repository_url=repository_url,
        root_package=root_package,
        workspace_packages=workspace_packages,
        release_version=release_version,
    )
