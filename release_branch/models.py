"""Data models for release-branch.

These Pydantic models represent the core data structures used throughout
the release workflow: the project graph, the user's release spec, and the
plan derived from it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Union

import semver
from pydantic import BaseModel, ConfigDict, Field

from .manifest import PackageManifest
from .versions import IncrementableVersionPart, parse_version

VersionSpecifier = Union[IncrementableVersionPart, semver.Version]


class Package(BaseModel):
    """A single package in the project (the root or a workspace package).

    Attributes:
        directory_path: Absolute path to the package directory.
        manifest_path: Absolute path to its package.json.
        unvalidated_manifest: The raw JSON object, written back on update
                              with only the version replaced.
        manifest: The validated view of the same manifest.
        changelog_path: Where CHANGELOG.md would be (it may not exist).
        has_changes_since_latest_release: Whether any commit touched the
              package directory since its latest release tag (True if the
              package was never released).
        is_root: True for the monorepo root package.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    directory_path: Path
    manifest_path: Path
    unvalidated_manifest: dict[str, Any]
    manifest: PackageManifest
    changelog_path: Path
    has_changes_since_latest_release: bool
    is_root: bool = False

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def version(self) -> semver.Version:
        return parse_version(self.manifest.version)


class ReleaseVersion(BaseModel):
    """The release counter carried by the root package version.

    For a root version "ORDINARY.BACKPORT.0", ordinary releases bump the
    first number and backport releases the second.
    """

    ordinary_number: int
    backport_number: int


class Project(BaseModel):
    """The whole monorepo: root package plus workspace packages.

    Built once per run by read_project() and treated as read-only after.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    directory_path: Path
    repository_url: str
    root_package: Package
    workspace_packages: dict[str, Package] = Field(default_factory=dict)
    release_version: ReleaseVersion

    @property
    def is_monorepo(self) -> bool:
        return bool(self.workspace_packages)


class ReleaseSpecification(BaseModel):
    """Validated user intent for the release.

    Attributes:
        packages: Package name → how to change its version, in the order the
                  packages appear in the spec file.
        skipped_packages: Packages marked "intentionally-skip".
        path: The spec file this was read from.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    packages: dict[str, VersionSpecifier] = Field(default_factory=dict)
    skipped_packages: set[str] = Field(default_factory=set)
    path: Path


class PackageReleasePlan(BaseModel):
    """How one package changes in this release.

    Attributes:
        package: The project's Package object itself (not a copy).
        new_version: Concrete version to write, greater than the current one.
        should_update_changelog: False for the root package entry.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    package: Package
    new_version: str
    should_update_changelog: bool


class ReleasePlan(BaseModel):
    """Concrete instructions for the release.

    Attributes:
        release_name: Used for the branch name and the commit message.
        packages: Root entry first, then workspace packages in spec order.
    """

    release_name: str
    packages: list[PackageReleasePlan] = Field(default_factory=list)

    @property
    def branch_name(self) -> str:
        return f"release/{self.release_name}"


class DependencyChange(BaseModel):
    """A dependency version bump found in a workspace manifest.

    Attributes:
        package: Workspace directory name of the package whose manifest
                 changed.
        dependency: Name of the dependency that was bumped.
        type: Which section the dependency is listed in.
        old_version: Version range before the change.
        new_version: Version range after the change.
    """

    package: str
    dependency: str
    type: Literal["dependencies", "peerDependencies"]
    old_version: str
    new_version: str
