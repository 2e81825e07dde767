"""Shell and git utilities.

Provides thin wrappers around subprocess calls for running commands and
git operations, an asyncio variant for the read-only queries that are
fanned out concurrently, plus output formatting helpers.
"""

from __future__ import annotations

import asyncio
import subprocess
from pathlib import Path

import click

from .errors import CommandError


def run(
    *args: str, cwd: Path | None = None, check: bool = True
) -> subprocess.CompletedProcess[str]:
    """Run a command and capture its output.

    Args:
        *args: Command and arguments (e.g., "git", "status").
        cwd: Directory to run the command in.
        check: If True (default), raise CommandError on non-zero exit.
               Set to False for commands whose exit status carries meaning
               (e.g., `git diff --exit-code`).

    Returns:
        CompletedProcess with returncode, stdout and stderr.
    """
    result = subprocess.run(args, cwd=cwd, capture_output=True, text=True)
    if check and result.returncode != 0:
        raise CommandError(list(args), result.returncode, result.stdout, result.stderr)
    return result


async def run_async(
    *args: str, cwd: Path | None = None, check: bool = True
) -> subprocess.CompletedProcess[str]:
    """Coroutine version of run() for concurrent read-only queries."""
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    raw_stdout, raw_stderr = await process.communicate()
    result = subprocess.CompletedProcess(
        list(args),
        process.returncode if process.returncode is not None else -1,
        raw_stdout.decode(),
        raw_stderr.decode(),
    )
    if check and result.returncode != 0:
        raise CommandError(list(args), result.returncode, result.stdout, result.stderr)
    return result


def git(*args: str, cwd: Path, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        cwd: Repository directory.
        check: If True (default), raise on non-zero exit.

    Returns:
        Stripped stdout from the git command.
    """
    return run("git", *args, cwd=cwd, check=check).stdout.strip()


async def git_async(*args: str, cwd: Path, check: bool = True) -> str:
    """Coroutine version of git()."""
    result = await run_async("git", *args, cwd=cwd, check=check)
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release workflow in terminal output.
    """
    click.echo(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def info(msg: str) -> None:
    """Print an indented progress line."""
    click.echo(f"  {msg}")


def warn(msg: str) -> None:
    """Print a warning to standard error."""
    click.echo(f"Warning: {msg}", err=True)
