"""Dependency consistency checks for a release spec.

Releasing a package without the changed workspace packages it depends on
can publish something that does not install, so that blocks the release.
Releasing a major version without its dependents only leaves consumers
with duplicated packages, so that is reported as advice.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .errors import MissingDependenciesError
from .graph import dependents_of, workspace_dependencies
from .models import Project, ReleaseSpecification, VersionSpecifier
from .specification import INTENTIONALLY_SKIP
from .versions import IncrementableVersionPart, diff_kind


class PackageConsistency(BaseModel):
    """What is missing from the release for one package in it."""

    missing_dependencies: list[str] = Field(default_factory=list)
    missing_direct_dependents: list[str] = Field(default_factory=list)
    missing_peer_dependents: list[str] = Field(default_factory=list)


class ConsistencyReport(BaseModel):
    """Per-package consistency results, keyed by released package name."""

    packages: dict[str, PackageConsistency] = Field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return any(p.missing_dependencies for p in self.packages.values())


def implies_major_bump(project: Project, name: str, specifier: VersionSpecifier) -> bool:
    """Whether releasing `name` with `specifier` changes its major version."""
    if isinstance(specifier, IncrementableVersionPart):
        return specifier is IncrementableVersionPart.MAJOR
    package = project.workspace_packages[name]
    return diff_kind(package.version, specifier) is IncrementableVersionPart.MAJOR


def check_consistency(
    project: Project, specification: ReleaseSpecification
) -> ConsistencyReport:
    """Find packages that should be in the release but are not.

    For every package P being released:
      1. changed workspace packages P depends on (dependencies or
         peerDependencies) that are neither released nor skipped;
      2. on a major bump, packages listing P in dependencies that are
         neither released nor skipped;
      3. on a major bump, the same for peerDependencies.
    Only the first kind blocks the release.
    """
    candidates = set(specification.packages)
    accounted_for = candidates | specification.skipped_packages
    workspace = project.workspace_packages
    report = ConsistencyReport()

    for name, specifier in specification.packages.items():
        package = workspace[name]
        result = PackageConsistency(
            missing_dependencies=[
                dep
                for dep in workspace_dependencies(package, workspace)
                if workspace[dep].has_changes_since_latest_release and dep not in accounted_for
            ]
        )
        if implies_major_bump(project, name, specifier):
            result.missing_direct_dependents = [
                q for q in dependents_of(workspace, name, "dependencies") if q not in accounted_for
            ]
            result.missing_peer_dependents = [
                q
                for q in dependents_of(workspace, name, "peerDependencies")
                if q not in accounted_for
            ]
        report.packages[name] = result

    return report


def _skip_example(names: list[str]) -> str:
    dumped = yaml.safe_dump(
        {"packages": {n: INTENTIONALLY_SKIP for n in names}}, sort_keys=False
    )
    return "\n".join(f"    {line}" for line in dumped.strip().splitlines())


def _bullets(names: list[str]) -> str:
    return "\n".join(f"  - {n}" for n in names)


def assert_consistent(report: ConsistencyReport, spec_path: Path) -> None:
    """Raise if any released package is missing a changed dependency.

    Raises:
        MissingDependenciesError: Listing every missing dependency, with an
                                  example of how to skip them.
    """
    missing = {
        name: result.missing_dependencies
        for name, result in report.packages.items()
        if result.missing_dependencies
    }
    if not missing:
        return

    sections = []
    for name, deps in missing.items():
        sections.append(
            f"The following packages, which are dependencies or peer dependencies of "
            f"the package '{name}' being released, are missing from the release spec.\n\n"
            f"{_bullets(deps)}\n\n"
            f"  These packages may have changes that '{name}' relies upon. Consider "
            "including them in the release spec.\n\n"
            "  If you are ABSOLUTELY SURE these packages are safe to omit, however, and "
            "want to postpone the release of a package, then list it with a directive "
            f'of "{INTENTIONALLY_SKIP}". For example:\n\n'
            f"{_skip_example(deps)}"
        )
    message = (
        "Your release spec could not be processed due to the following issues:\n\n"
        + "\n\n".join(f"* {s}" for s in sections)
    )
    raise MissingDependenciesError(message, missing, spec_path)


def format_warnings(report: ConsistencyReport) -> list[str]:
    """Render the advisory findings, one message per package and kind."""
    warnings = []
    for name, result in report.packages.items():
        if result.missing_direct_dependents:
            warnings.append(
                f"The following direct dependents of package '{name}', which is being "
                "released with a major version bump, are missing from the release spec:\n"
                f"{_bullets(result.missing_direct_dependents)}\n"
                "Consider including them so that the dependency tree of consuming "
                "projects can be kept small."
            )
        if result.missing_peer_dependents:
            warnings.append(
                f"The following dependents of package '{name}', which is being released "
                "with a major version bump, are missing from the release spec:\n"
                f"{_bullets(result.missing_peer_dependents)}\n"
                f"Consider including them so that they are compatible with the new "
                f"'{name}' version."
            )
    return warnings
