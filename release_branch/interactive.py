"""Terminal prompts for filling in the release spec.

An alternative to editing the spec file by hand: each workspace package is
offered in turn, and any changed dependency left out of the release is
asked about before the answers are written to the spec file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from .consistency import check_consistency, format_warnings
from .errors import ReleaseSpecificationError
from .models import Package, Project
from .specification import (
    INTENTIONALLY_SKIP,
    render_specification,
    validate_release_specification,
)
from .versions import IncrementableVersionPart, is_valid_version, parse_version

_CHOICES = ", ".join([p.value for p in IncrementableVersionPart] + ["an exact version"])


def check_answer(package: Package, answer: str, *, allow_skip: bool) -> Optional[str]:
    """Return an error message for an invalid answer, or None if it is fine.

    An empty answer leaves the package out of the release.
    """
    if not answer or answer in {p.value for p in IncrementableVersionPart}:
        return None
    if allow_skip and answer == INTENTIONALLY_SKIP:
        return None
    if not is_valid_version(answer):
        return f'"{answer}" is not a valid version specifier (use {_CHOICES})'
    if parse_version(answer).compare(package.version) <= 0:
        return f'"{answer}" must be greater than the current version {package.version}'
    return None


def ask_for_directive(package: Package, *, allow_skip: bool = False) -> Optional[str]:
    """Prompt until a valid directive is given for one package."""
    suffix = " (changed)" if package.has_changes_since_latest_release else ""
    while True:
        answer = click.prompt(
            f"{package.name} {package.manifest.version}{suffix}",
            default="",
            show_default=False,
        ).strip()
        error = check_answer(package, answer, allow_skip=allow_skip)
        if error is None:
            return answer or None
        click.echo(f"  {error}", err=True)


def prompt_for_specification(project: Project, spec_path: Path) -> str:
    """Ask for a directive per package and return the resulting spec text.

    Raises:
        ReleaseSpecificationError: If no package was given a version.
    """
    click.echo(
        f"For each package, enter {_CHOICES}. Leave it empty to keep the package "
        "out of this release."
    )
    ordered = sorted(
        project.workspace_packages.values(),
        key=lambda p: not p.has_changes_since_latest_release,
    )
    directives: dict[str, Optional[str]] = {}
    for package in ordered:
        answer = ask_for_directive(package)
        if answer is not None:
            directives[package.name] = answer

    if not directives:
        raise ReleaseSpecificationError("No packages were selected for the release.")

    while True:
        text = render_specification(directives)
        report = check_consistency(
            project, validate_release_specification(project, text, spec_path)
        )
        for warning in format_warnings(report):
            click.echo(f"\n{warning}")
        missing = [
            dep for result in report.packages.values() for dep in result.missing_dependencies
        ]
        if not missing:
            return text
        for name in dict.fromkeys(missing):
            click.echo(
                f'\n"{name}" has changed and a package in this release depends on it. '
                f'Give it a version, or answer "{INTENTIONALLY_SKIP}" to leave it out.'
            )
            answer = ask_for_directive(project.workspace_packages[name], allow_skip=True)
            directives[name] = answer
