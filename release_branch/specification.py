"""Release specification: template generation, parsing and validation.

The release spec is a YAML file the user edits to say which packages go
into the release and how their versions change:

    packages:
      "@scope/a": major
      "@scope/b": 1.2.3
      "@scope/c": intentionally-skip
      "@scope/d": null

The file is composed into PyYAML's node graph rather than loaded straight
into Python objects so that every entry keeps the line it was written on.
Validation then reports every problem at once, each with its line number.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import NamedTuple, Optional, Union

import yaml

from .errors import (
    ReleaseSpecificationError,
    ReleaseSpecificationParseError,
    ReleaseSpecificationValidationError,
    SpecificationIssue,
)
from .models import Project, ReleaseSpecification, VersionSpecifier
from .versions import IncrementableVersionPart, is_valid_version, parse_version

SPEC_FILE_NAME = "RELEASE_SPEC.yml"
INTENTIONALLY_SKIP = "intentionally-skip"

_NULL_TAG = "tag:yaml.org,2002:null"
_SPECIFIER_HINT = (
    '(must be "major", "minor", or "patch"; or a version string with major, '
    'minor, and patch parts, such as "1.2.3")'
)


class NonScalarValue(NamedTuple):
    """Placeholder for a list or mapping written where a scalar belongs."""

    kind: str


Directive = Union[None, str, NonScalarValue]


class SpecificationEntry(NamedTuple):
    """One "name: directive" line of the packages mapping.

    Attributes:
        name: The package name as written (a NonScalarValue if the key was
              not a plain string).
        directive: None for null, the scalar text otherwise.
        line: 1-based line number of the key.
    """

    name: Union[str, NonScalarValue]
    directive: Directive
    line: int


def generate_template(project: Project, *, editor_available: bool) -> str:
    """Build the initial release spec for a project.

    Every workspace package is listed with a null specifier; packages that
    changed since their latest release come first.

    Raises:
        ReleaseSpecificationError: If no workspace package has changed.
    """
    packages = list(project.workspace_packages.values())
    changed = [p for p in packages if p.has_changes_since_latest_release]
    unchanged = [p for p in packages if not p.has_changes_since_latest_release]
    if not changed:
        raise ReleaseSpecificationError(
            "Could not generate release specification: There are no packages "
            "that have changed since their latest release."
        )

    if editor_available:
        after_editing = (
            "# When you're finished, save this file and close it. The tool will update the\n"
            "# versions of the packages you've listed and will move the changelog entries to\n"
            "# a new section."
        )
    else:
        after_editing = (
            "# When you're finished, save this file and then run release-branch again with\n"
            "# --continue. The tool will update the versions of the packages you've listed\n"
            "# and will move the changelog entries to a new section."
        )

    instructions = f"""\
# This file (called the "release spec") allows you to specify which packages you
# want to include in this release along with the new versions they should
# receive.
#
# All workspace packages are listed below. Packages which have changed since
# their latest release come first; the rest follow after a comment. Leave a
# package as null (or remove it) to keep it out of the release.
#
# For each package you *do* want to release, specify how its version should be
# changed depending on the impact of the changes that will go into the release.
# A version specifier (the value that goes after each package in the list
# below) can be one of the following:
#
# - "major" (if you want to bump the major part of the package's version)
# - "minor" (if you want to bump the minor part of the package's version)
# - "patch" (if you want to bump the patch part of the package's version)
# - an exact version with major, minor, and patch parts (e.g. "1.2.3")
# - "{INTENTIONALLY_SKIP}" (to leave out a changed package that another
#   package in this release depends on)
#
{after_editing}"""

    body = yaml.safe_dump(
        {"packages": {p.name: None for p in changed}}, sort_keys=False, default_flow_style=False
    )
    if unchanged:
        body += "  # No changes since their latest release:\n"
        for package in unchanged:
            line = yaml.safe_dump({package.name: None}, default_flow_style=False)
            body += f"  {line}"
    return f"{instructions}\n\n{body}"


def render_specification(directives: dict[str, Optional[str]]) -> str:
    """Write out a release spec from package name → directive pairs."""
    header = "# Release spec written from answers given at the terminal.\n\n"
    return header + yaml.safe_dump(
        {"packages": directives}, sort_keys=False, default_flow_style=False
    )


def _scalar_text(node: yaml.Node) -> Directive:
    if isinstance(node, yaml.ScalarNode):
        return None if node.tag == _NULL_TAG else str(node.value)
    return NonScalarValue("list" if isinstance(node, yaml.SequenceNode) else "mapping")


def _parsed_preview(text: str) -> str:
    try:
        return json.dumps(yaml.safe_load(text), indent=2, default=str)
    except yaml.YAMLError:
        return text


def parse_release_specification(text: str, path: Path) -> list[SpecificationEntry]:
    """Compose the spec text and extract the package entries in file order.

    Raises:
        ReleaseSpecificationParseError: If the text is not YAML, or is not a
                                        mapping with a mapping under
                                        "packages".
    """
    try:
        document = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as exc:
        raise ReleaseSpecificationParseError(
            f"Your release spec does not appear to be valid YAML.\n\n{exc}", path
        ) from exc

    packages_node = None
    if isinstance(document, yaml.MappingNode):
        for key_node, value_node in document.value:
            if isinstance(key_node, yaml.ScalarNode) and key_node.value == "packages":
                packages_node = value_node
                break

    if not isinstance(packages_node, yaml.MappingNode):
        raise ReleaseSpecificationParseError(
            "Your release spec could not be processed because it needs to be an "
            "object with a `packages` property. The value of `packages` must itself "
            "be an object, where each key is a workspace package in the project and "
            'each value is a version specifier ("major", "minor", or "patch"; or a '
            'version string with major, minor, and patch parts, such as "1.2.3").'
            "\n\nHere is the parsed version of the file you provided:\n\n"
            + _parsed_preview(text),
            path,
        )

    entries = []
    for key_node, value_node in packages_node.value:
        name = _scalar_text(key_node)
        entries.append(
            SpecificationEntry(
                name=name if name is not None else "null",
                directive=_scalar_text(value_node),
                line=key_node.start_mark.line + 1,
            )
        )
    return entries


def _parse_specifier(directive: str) -> Optional[VersionSpecifier]:
    try:
        return IncrementableVersionPart(directive)
    except ValueError:
        pass
    if is_valid_version(directive):
        return parse_version(directive)
    return None


def _entry_issues(
    project: Project, entry: SpecificationEntry, seen: set[str]
) -> tuple[list[SpecificationIssue], Optional[VersionSpecifier]]:
    """Check one entry; return its issues and its specifier if usable."""
    issues: list[SpecificationIssue] = []
    name = entry.name
    directive = entry.directive

    if isinstance(name, NonScalarValue):
        issues.append(
            SpecificationIssue(entry.line, f"A {name.kind} is not a valid package name")
        )
        return issues, None

    package = project.workspace_packages.get(name)
    if package is None:
        issues.append(
            SpecificationIssue(entry.line, f"{json.dumps(name)} is not a package in the project")
        )
    if name in seen:
        issues.append(SpecificationIssue(entry.line, f'"{name}" is listed more than once'))
    seen.add(name)

    if directive is None or directive == INTENTIONALLY_SKIP:
        return issues, None

    if isinstance(directive, NonScalarValue):
        specifier, shown = None, f"A {directive.kind}"
    else:
        specifier, shown = _parse_specifier(directive), json.dumps(directive)
    if specifier is None:
        issues.append(
            SpecificationIssue(
                entry.line,
                f'{shown} is not a valid version specifier for package "{name}"\n'
                + _SPECIFIER_HINT,
            )
        )
        return issues, None

    if package is not None and not isinstance(specifier, IncrementableVersionPart):
        comparison = specifier.compare(package.version)
        if comparison == 0:
            issues.append(
                SpecificationIssue(
                    entry.line,
                    f'{shown} is not a valid version specifier for package "{name}"\n'
                    f'("{name}" is already at version "{directive}")',
                )
            )
        elif comparison < 0:
            issues.append(
                SpecificationIssue(
                    entry.line,
                    f'{shown} is not a valid version specifier for package "{name}"\n'
                    f'("{name}" is at a greater version "{package.manifest.version}")',
                )
            )
    return issues, specifier


def validate_release_specification(
    project: Project, text: str, path: Path
) -> ReleaseSpecification:
    """Parse and validate release spec text against the project.

    Every entry is checked before anything is raised, so the user sees all
    problems in one go.

    Raises:
        ReleaseSpecificationParseError: If the text cannot be parsed.
        ReleaseSpecificationValidationError: Listing every invalid entry.
    """
    entries = parse_release_specification(text, path)

    issues: list[SpecificationIssue] = []
    seen: set[str] = set()
    packages: dict[str, VersionSpecifier] = {}
    skipped: set[str] = set()

    for entry in entries:
        entry_issues, specifier = _entry_issues(project, entry, seen)
        issues.extend(entry_issues)
        if entry_issues or isinstance(entry.name, NonScalarValue):
            continue
        if entry.directive == INTENTIONALLY_SKIP:
            skipped.add(entry.name)
        elif specifier is not None:
            packages[entry.name] = specifier

    if not issues and not packages:
        issues.append(
            SpecificationIssue(
                None,
                "No packages are being released. Give at least one package a "
                "version specifier.",
            )
        )

    if issues:
        raise ReleaseSpecificationValidationError(issues, path)

    return ReleaseSpecification(packages=packages, skipped_packages=skipped, path=path)


def read_release_specification(project: Project, path: Path) -> ReleaseSpecification:
    """Read the release spec file and validate it."""
    return validate_release_specification(project, path.read_text(encoding="utf-8"), path)
