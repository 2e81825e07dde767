"""Error hierarchy for release-branch.

Every failure the tool knows how to describe is a subclass of
ReleaseBranchError. The CLI prints the message (and suggestion, if any)
and exits with status 1; anything else is a bug and surfaces with a
traceback.
"""

from __future__ import annotations

from pathlib import Path
from typing import NamedTuple, Optional


class ReleaseBranchError(Exception):
    """Base exception for all release-branch errors.

    Attributes:
        message: Human-readable description of the problem.
        suggestion: Optional hint telling the user how to fix it.
    """

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\n\n{self.suggestion}"
        return self.message


class UsageError(ReleaseBranchError):
    """Raised when command-line flags are combined in an unsupported way."""


class ResumeStateError(UsageError):
    """Raised when a previous run left a release spec behind."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            "It looks like you are in the middle of a run. Assuming that you "
            "have edited the release spec to your liking, re-run this tool "
            "with --continue to resume the run, or with --abort to stop it.",
            f"The path to the release spec is:\n{path}",
        )


class ManifestReadError(ReleaseBranchError):
    """Raised when a package.json cannot be read or is not a JSON object."""

    def __init__(self, message: str, path: Path) -> None:
        super().__init__(message)
        self.path = path


class ManifestFieldError(ReleaseBranchError):
    """Raised when a field in a package.json fails validation.

    Attributes:
        field: Name of the offending field, as written in the manifest.
        package: Package name if it could be read, else the directory.
        value: The literal value found in the manifest (None if absent).
        reason: What the value must look like.
    """

    def __init__(
        self, field: str, package: str, value: object, reason: str, *, by_name: bool
    ) -> None:
        self.field = field
        self.package = package
        self.value = value
        self.reason = reason
        subject = (
            f'The value of "{field}" in the manifest for "{package}"'
            if by_name
            else f'The value of "{field}" in the manifest located at "{package}"'
        )
        message = f"{subject} {reason}"
        if value is not None:
            message += f" (got {value!r})"
        super().__init__(message)


class ProjectReadError(ReleaseBranchError):
    """Raised when the project graph cannot be assembled."""

    def __init__(self, message: str, directory: Path) -> None:
        super().__init__(message)
        self.directory = directory


class UnrecognizedRemoteUrlError(ReleaseBranchError):
    """Raised when a repository URL is neither HTTPS nor SSH style."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f'Unrecognized URL for git remote "origin": {url}')


class CommandError(ReleaseBranchError):
    """Raised when an external command exits with a non-zero status.

    Attributes:
        command: The full argument list that was run.
        exit_code: Process exit status.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    def __init__(
        self, command: list[str], exit_code: int, stdout: str, stderr: str
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        message = f"Command {' '.join(command)!r} failed with exit code {exit_code}"
        detail = stderr.strip() or stdout.strip()
        super().__init__(f"{message}:\n{detail}" if detail else message)


class EditorError(ReleaseBranchError):
    """Raised when the editor exits uncleanly."""


class ReleaseSpecificationError(ReleaseBranchError):
    """Raised when a release spec cannot be generated or used."""


class ReleaseSpecificationParseError(ReleaseSpecificationError):
    """Raised when the release spec is not well-formed."""

    def __init__(self, message: str, path: Path) -> None:
        self.path = path
        super().__init__(message, _retained_spec_afterword(path))


class SpecificationIssue(NamedTuple):
    """A single problem found in a release spec."""

    line: Optional[int]
    message: str


class ReleaseSpecificationValidationError(ReleaseSpecificationError):
    """Raised with every problem found in a release spec at once."""

    def __init__(self, issues: list[SpecificationIssue], path: Path) -> None:
        self.issues = issues
        self.path = path
        lines = ["Your release spec could not be processed due to the following issues:"]
        for issue in issues:
            prefix = f"* Line {issue.line}: " if issue.line is not None else "* "
            first, *rest = issue.message.split("\n")
            lines.append(prefix + first)
            lines.extend(" " * len(prefix) + line if line else "" for line in rest)
        super().__init__("\n".join(lines), _retained_spec_afterword(path))


class MissingDependenciesError(ReleaseSpecificationError):
    """Raised when changed dependencies of released packages are left out.

    Attributes:
        missing: Map of released package name to the dependencies it is
                 missing from the release.
    """

    def __init__(self, message: str, missing: dict[str, list[str]], path: Path) -> None:
        self.missing = missing
        self.path = path
        super().__init__(message, _retained_spec_afterword(path))


class VersionBumpError(ReleaseBranchError):
    """Raised when an exact version would not move a package forward."""

    def __init__(
        self, message: str, package: str, current_version: str, new_version: str
    ) -> None:
        super().__init__(message)
        self.package = package
        self.current_version = current_version
        self.new_version = new_version


class NoOpVersionBumpError(VersionBumpError):
    """Raised when an exact version equals the current version."""

    def __init__(self, package: str, version: str) -> None:
        super().__init__(
            f'Cannot release "{package}" at {version}: it is already at that version.',
            package,
            version,
            version,
        )


def _retained_spec_afterword(path: Path) -> str:
    return (
        "The release spec file has been retained for you to edit again and make "
        "the necessary fixes. Once you've done this, re-run this tool with "
        f"--continue.\n\n{path}"
    )
