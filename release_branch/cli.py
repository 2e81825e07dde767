"""CLI entry point for release-branch."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import click

from release_branch.config import Settings
from release_branch.dependency_bumps import check_dependency_bumps
from release_branch.errors import ReleaseBranchError
from release_branch.pipeline import ReleaseOptions, WorkflowState, run_release
from release_branch.plan import VersioningScheme


@click.group(invoke_without_command=True)
@click.version_option(package_name="release-branch")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Prepare a monorepo for a new release on a release branch."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(release)


@cli.command()
@click.option(
    "-d",
    "--project-directory",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path.cwd,
    help="Root directory of the project.  [default: current directory]",
)
@click.option(
    "--temp-directory",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where to keep the release spec between runs.  "
    "[default: <system temp>/release-branch/<root package name>]",
)
@click.option(
    "--reset",
    is_flag=True,
    help="Remove the release spec left by a previous run and start over.",
)
@click.option(
    "--backport",
    is_flag=True,
    help="Bump the backport number instead of the ordinary number.",
)
@click.option(
    "--versioning-scheme",
    type=click.Choice([s.value for s in VersioningScheme]),
    default=VersioningScheme.ORDINARY.value,
    show_default=True,
    help="How the root version and release name are derived.",
)
@click.option(
    "-b",
    "--default-branch",
    default="main",
    show_default=True,
    help="Branch that changelogs of left-out packages are restored from.",
)
@click.option(
    "--continue",
    "resume",
    is_flag=True,
    help="Continue from the release spec left by a previous run.",
)
@click.option(
    "--abort",
    is_flag=True,
    help="Discard uncommitted changes and the release spec.",
)
@click.option(
    "-i",
    "--interactive",
    is_flag=True,
    help="Answer prompts in the terminal instead of editing the release spec.",
)
def release(
    project_directory: Path,
    temp_directory: Optional[Path],
    reset: bool,
    backport: bool,
    versioning_scheme: str,
    default_branch: str,
    resume: bool,
    abort: bool,
    interactive: bool,
) -> None:
    """Create (or update) the release branch for this project."""
    options = ReleaseOptions(
        project_directory=project_directory,
        temp_directory=temp_directory,
        reset=reset,
        backport=backport,
        scheme=VersioningScheme(versioning_scheme),
        default_branch=default_branch,
        resume=resume,
        abort=abort,
        interactive=interactive,
    )
    try:
        state = run_release(options, Settings.from_environ(os.environ))
    except ReleaseBranchError as exc:
        raise click.ClickException(str(exc)) from exc

    if state is WorkflowState.COMMITTED:
        click.echo("\n✓ Release branch is ready")
    elif state is WorkflowState.ABORTED:
        click.echo("\n✓ Release aborted")


@cli.command("check-deps")
@click.option(
    "--from",
    "from_ref",
    default=None,
    help="Ref to compare from.  [default: merge base with the default branch]",
)
@click.option("--to", "to_ref", default="HEAD", show_default=True, help="Ref to compare to.")
@click.option(
    "--default-branch",
    default="main",
    show_default=True,
    help="Branch to find the merge base with when --from is not given.",
)
@click.option("--fix", is_flag=True, help="Add missing entries to the changelogs.")
@click.option(
    "--pr", "pr_number", default=None, help="PR number to use in new changelog entries."
)
@click.option(
    "-d",
    "--project-directory",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path.cwd,
    help="Root directory of the project.  [default: current directory]",
)
def check_deps(
    from_ref: Optional[str],
    to_ref: str,
    default_branch: str,
    fix: bool,
    pr_number: Optional[str],
    project_directory: Path,
) -> None:
    """Check that dependency bumps have changelog entries."""
    try:
        check_dependency_bumps(
            project_directory,
            from_ref=from_ref,
            to_ref=to_ref,
            default_branch=default_branch,
            fix=fix,
            pr_number=pr_number,
        )
    except ReleaseBranchError as exc:
        raise click.ClickException(str(exc)) from exc
