"""Git operations used by the release workflow.

Every function takes the repository directory explicitly. Read-only
queries that are fanned out across packages have coroutine variants.
"""

from __future__ import annotations

import re
from pathlib import Path

from .errors import CommandError, UnrecognizedRemoteUrlError
from .shell import git, git_async, run

_HTTPS_URL = re.compile(r"^(?:git\+)?https://(?P<host>[^/]+)/(?P<path>.+?)(?:\.git)?/?$")
_SSH_URL = re.compile(r"^git@(?P<host>[^:]+):(?P<path>.+?)(?:\.git)?$")
_SSH_PROTOCOL_URL = re.compile(
    r"^(?:git\+)?ssh://git@(?P<host>[^/:]+)(?::\d+)?/(?P<path>.+?)(?:\.git)?/?$"
)


def normalize_repository_url(url: str) -> str:
    """Convert a git remote URL into the canonical HTTPS form.

    Examples:
        https://github.com/org/repo.git → https://github.com/org/repo
        git@github.com:org/repo.git    → https://github.com/org/repo
        git+ssh://git@github.com/org/repo.git → https://github.com/org/repo

    Raises:
        UnrecognizedRemoteUrlError: If the URL is neither HTTPS nor SSH style.
    """
    stripped = url.strip()
    for pattern in (_HTTPS_URL, _SSH_URL, _SSH_PROTOCOL_URL):
        match = pattern.match(stripped)
        if match:
            return f"https://{match['host']}/{match['path']}"
    raise UnrecognizedRemoteUrlError(url)


def remote_url(cwd: Path) -> str:
    """Return the URL of the "origin" remote, or "" if there is none."""
    return git("config", "--get", "remote.origin.url", cwd=cwd, check=False)


def current_branch_name(cwd: Path) -> str:
    return git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)


def list_branches(cwd: Path) -> list[str]:
    """Return the names of all local branches."""
    out = git("branch", "--list", "--format=%(refname:short)", cwd=cwd)
    return [line.strip() for line in out.splitlines() if line.strip()]


def branch_exists(cwd: Path, branch: str) -> bool:
    return ref_exists(cwd, f"refs/heads/{branch}")


def checkout_branch(cwd: Path, branch: str) -> bool:
    """Check out a branch, creating it from HEAD if it does not exist.

    Returns:
        True if the branch was newly created.
    """
    if branch_exists(cwd, branch):
        git("checkout", branch, cwd=cwd)
        return False
    git("checkout", "-b", branch, cwd=cwd)
    return True


def commit_all(cwd: Path, message: str) -> None:
    """Stage every change in the working tree and commit it."""
    git("add", "-A", cwd=cwd)
    git("commit", "-m", message, cwd=cwd)


def reset_hard(cwd: Path) -> None:
    """Discard all uncommitted changes to tracked files."""
    git("reset", "--hard", "HEAD", cwd=cwd)


async def tag_names_async(cwd: Path) -> set[str]:
    out = await git_async("tag", "--list", cwd=cwd)
    return {line.strip() for line in out.splitlines() if line.strip()}


async def commits_since_count(cwd: Path, ref: str, path: Path) -> int:
    """Count commits after `ref` that touched `path`."""
    out = await git_async("rev-list", "--count", f"{ref}..HEAD", "--", str(path), cwd=cwd)
    return int(out or "0")


async def has_changes_since(cwd: Path, tag: str | None, path: Path) -> bool:
    """Whether any commit touched `path` since `tag`.

    A package without a release tag has never been released, so it always
    counts as changed.
    """
    if tag is None:
        return True
    return await commits_since_count(cwd, tag, path) > 0


def merge_base(cwd: Path, ref: str, other: str = "HEAD") -> str:
    return git("merge-base", ref, other, cwd=cwd)


def show_file(cwd: Path, ref: str, path: str) -> str | None:
    """Return the contents of `path` at `ref`, or None if it did not exist."""
    result = run("git", "show", f"{ref}:{path}", cwd=cwd, check=False)
    if result.returncode != 0:
        return None
    return result.stdout


def changed_files(
    cwd: Path, from_ref: str, to_ref: str | None = None, paths: tuple[str, ...] = ()
) -> list[str]:
    """List files that differ between two refs (or a ref and the work tree).

    `git diff --exit-code` exits 1 when there are differences; exiting 1
    with no output means there is nothing to report.
    """
    args = ["git", "diff", "--exit-code", "--name-only", from_ref]
    if to_ref is not None:
        args.append(to_ref)
    if paths:
        args.extend(["--", *paths])
    result = run(*args, cwd=cwd, check=False)
    if result.returncode not in (0, 1):
        raise CommandError(args, result.returncode, result.stdout, result.stderr)
    return [line for line in result.stdout.splitlines() if line.strip()]


def ref_exists(cwd: Path, ref: str) -> bool:
    result = run("git", "rev-parse", "--verify", "--quiet", ref, cwd=cwd, check=False)
    return result.returncode == 0


def restore_files(cwd: Path, ref: str, paths: list[Path]) -> None:
    """Replace files in the working tree with their contents at `ref`."""
    if paths:
        git("checkout", ref, "--", *(str(p) for p in paths), cwd=cwd)
