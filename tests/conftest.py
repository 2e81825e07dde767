"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import pytest

from release_branch.manifest import validate_manifest
from release_branch.models import Package, Project, ReleaseVersion
from release_branch.versions import parse_version

PackageFactory = Callable[..., Package]
ProjectFactory = Callable[..., Project]


def write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")


@pytest.fixture
def package_factory(tmp_path: Path) -> PackageFactory:
    """Build in-memory Package objects rooted under tmp_path."""

    def build(
        name: str,
        version: str = "1.0.0",
        *,
        changed: bool = True,
        dependencies: Optional[dict[str, str]] = None,
        peer_dependencies: Optional[dict[str, str]] = None,
        is_root: bool = False,
        **extra: Any,
    ) -> Package:
        directory = tmp_path if is_root else tmp_path / "packages" / name.split("/")[-1]
        raw: dict[str, Any] = {"name": name, "version": version, **extra}
        if dependencies:
            raw["dependencies"] = dependencies
        if peer_dependencies:
            raw["peerDependencies"] = peer_dependencies
        return Package(
            directory_path=directory,
            manifest_path=directory / "package.json",
            unvalidated_manifest=raw,
            manifest=validate_manifest(raw, directory, strict_version=not is_root),
            changelog_path=directory / "CHANGELOG.md",
            has_changes_since_latest_release=changed,
            is_root=is_root,
        )

    return build


@pytest.fixture
def project_factory(tmp_path: Path, package_factory: PackageFactory) -> ProjectFactory:
    """Build an in-memory Project from workspace packages."""

    def build(
        *packages: Package,
        root_version: str = "1.0.0",
        root_name: str = "@example/monorepo",
    ) -> Project:
        root = package_factory(
            root_name, root_version, is_root=True, private=True, workspaces=["packages/*"]
        )
        parsed = parse_version(root_version)
        return Project(
            directory_path=tmp_path,
            repository_url="https://github.com/example-org/example-repo",
            root_package=root,
            workspace_packages={p.name: p for p in packages},
            release_version=ReleaseVersion(
                ordinary_number=parsed.major, backport_number=parsed.minor
            ),
        )

    return build


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    """Write a small monorepo to disk (no git repository).

    Layout:
        package.json            root, version 1.0.0, workspaces packages/*
        packages/a/package.json @example/a 0.1.2
        packages/b/package.json @example/b 1.1.4, depends on @example/a
    """
    write_json(
        tmp_path / "package.json",
        {
            "name": "@example/monorepo",
            "version": "1.0.0",
            "private": True,
            "workspaces": ["packages/*"],
            "repository": {
                "type": "git",
                "url": "git+https://github.com/example-org/example-repo.git",
            },
        },
    )
    write_json(
        tmp_path / "packages" / "a" / "package.json",
        {"name": "@example/a", "version": "0.1.2"},
    )
    write_json(
        tmp_path / "packages" / "b" / "package.json",
        {
            "name": "@example/b",
            "version": "1.1.4",
            "dependencies": {"@example/a": "^0.1.2", "lodash": "^4.17.21"},
        },
    )
    return tmp_path
