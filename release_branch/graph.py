"""Dependency graph lookups over workspace packages.

Only "dependencies" and "peerDependencies" matter for release
consistency: dev and optional dependencies never break installs of a
published package.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from .models import Package

DependencyType = Literal["dependencies", "peerDependencies"]


def dependency_names(package: Package, dep_type: DependencyType) -> list[str]:
    """Names listed in one dependency section of a package's manifest."""
    if dep_type == "dependencies":
        return list(package.manifest.dependencies)
    return list(package.manifest.peer_dependencies)


def workspace_dependencies(
    package: Package, workspace_packages: Mapping[str, Package]
) -> list[str]:
    """Workspace packages that `package` depends on, directly or as a peer.

    Order follows the manifest; a package listed in both sections appears
    once.
    """
    seen: dict[str, None] = {}
    for dep_type in ("dependencies", "peerDependencies"):
        for name in dependency_names(package, dep_type):
            if name in workspace_packages:
                seen.setdefault(name, None)
    return list(seen)


def reverse_dependencies(
    workspace_packages: Mapping[str, Package], dep_type: DependencyType
) -> dict[str, list[str]]:
    """Map each workspace package to the packages that list it.

    Example:
        If b and c both list a under "dependencies":
        reverse_dependencies(pkgs, "dependencies")["a"] → ["b", "c"]
    """
    reverse_deps: dict[str, list[str]] = {n: [] for n in workspace_packages}
    for name, package in workspace_packages.items():
        for dep in dependency_names(package, dep_type):
            # External packages are not part of the graph
            if dep in reverse_deps and name not in reverse_deps[dep]:
                reverse_deps[dep].append(name)
    return reverse_deps


def dependents_of(
    workspace_packages: Mapping[str, Package], name: str, dep_type: DependencyType
) -> list[str]:
    """Workspace packages listing `name` in the given section."""
    return reverse_dependencies(workspace_packages, dep_type).get(name, [])
