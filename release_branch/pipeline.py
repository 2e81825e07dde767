"""Release workflow: read → spec → validate → plan → write → commit.

This module drives a release from start to finish:
1. Read the project graph
2. Generate the release spec and let the user fill it in (editor or prompts)
3. Validate the spec and check dependency consistency
4. Build the release plan
5. Write new versions to manifests and move changelog entries
6. Commit everything on release/<release name>

The spec file is the only state kept between runs. If a run stops after
the spec is generated, re-running with --continue picks up from the file
on disk; --abort throws the run away.
"""

from __future__ import annotations

import asyncio
import tempfile
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from . import repo
from .changelog import tag_prefix_for, update_changelog
from .config import Settings
from .consistency import assert_consistent, check_consistency, format_warnings
from .editor import determine_editor, wait_for_edit
from .errors import (
    EditorError,
    ManifestReadError,
    ProjectReadError,
    ReleaseBranchError,
    ReleaseSpecificationError,
    ResumeStateError,
    UsageError,
)
from .interactive import prompt_for_specification
from .manifest import MANIFEST_FILE_NAME, read_json_object, write_manifest_version
from .models import Project, ReleasePlan, ReleaseSpecification
from .plan import VersioningScheme, plan_release
from .project import read_project
from .shell import info, step, warn
from .specification import SPEC_FILE_NAME, generate_template, read_release_specification
from .versions import IncrementableVersionPart


class WorkflowState(str, Enum):
    """Where a release run got to."""

    NO_SPEC = "no-spec"
    SPEC_GENERATED = "spec-generated"
    SPEC_EDITED = "spec-edited"
    SPEC_VALIDATED = "spec-validated"
    PLAN_BUILT = "plan-built"
    MANIFESTS_UPDATED = "manifests-updated"
    COMMITTED = "committed"
    ABORTED = "aborted"
    FAILED = "failed"


class ReleaseOptions(BaseModel):
    """Command-line choices for one release run.

    Attributes:
        project_directory: Root of the monorepo.
        temp_directory: Where the spec file lives; derived from the root
                        package name if not given.
        reset: Delete a spec file left by an earlier run and start over.
        backport: Bump the backport number instead of the ordinary number.
        scheme: How the root version and release name are derived.
        default_branch: Branch that changelogs of left-out packages are
                        restored from.
        resume: Continue from the spec file on disk (--continue).
        abort: Throw away an interrupted run.
        interactive: Answer terminal prompts instead of editing the spec.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project_directory: Path
    temp_directory: Optional[Path] = None
    reset: bool = False
    backport: bool = False
    scheme: VersioningScheme = VersioningScheme.ORDINARY
    default_branch: str = "main"
    resume: bool = False
    abort: bool = False
    interactive: bool = False


def default_temp_directory(root_package_name: str) -> Path:
    """Per-project scratch directory under the system temp directory."""
    return (
        Path(tempfile.gettempdir())
        / "release-branch"
        / root_package_name.replace("/", "__")
    )


def check_options(options: ReleaseOptions) -> None:
    """Reject flag combinations that make no sense.

    Raises:
        UsageError: If --continue is combined with --abort or --reset.
    """
    if options.resume and options.abort:
        raise UsageError("--continue and --abort cannot be used together.")
    if options.resume and options.reset:
        raise UsageError("--continue and --reset cannot be used together.")


class ReleaseWorkflow:
    """One run of the release workflow.

    Attributes:
        state: The last state reached.
        project: The project graph, once read.
        specification: The validated release spec, once read.
        plan: The release plan, once built.
    """

    def __init__(
        self,
        options: ReleaseOptions,
        settings: Settings,
        *,
        prompt: Callable[[Project, Path], str] = prompt_for_specification,
    ) -> None:
        self.options = options
        self.settings = settings
        self.prompt = prompt
        self.directory = options.project_directory.resolve()
        self.state = WorkflowState.NO_SPEC
        self.project: Optional[Project] = None
        self.specification: Optional[ReleaseSpecification] = None
        self.plan: Optional[ReleasePlan] = None

    @property
    def spec_path(self) -> Path:
        temp_directory = self.options.temp_directory
        if temp_directory is None:
            try:
                root_manifest = read_json_object(self.directory / MANIFEST_FILE_NAME)
            except ManifestReadError as exc:
                raise ProjectReadError(
                    f"Could not read the root package: {exc}", self.directory
                ) from exc
            name = root_manifest.get("name")
            if not isinstance(name, str) or not name:
                raise ReleaseBranchError(
                    f'The root manifest in {self.directory} needs a "name" to derive '
                    "a temporary directory from.",
                    "Pass --temp-directory to choose one explicitly.",
                )
            temp_directory = default_temp_directory(name)
        return temp_directory / SPEC_FILE_NAME

    def run(self) -> WorkflowState:
        """Run the workflow as far as it can go.

        Returns:
            The final state: COMMITTED, ABORTED, or SPEC_GENERATED when the
            user has to edit the spec file themselves.

        Raises:
            UsageError: For invalid flag combinations (before anything runs).
            ReleaseBranchError: For anything the user needs to fix; the spec
                                file is kept so the run can be continued.
        """
        check_options(self.options)
        try:
            return self._run()
        except ReleaseSpecificationError:
            self.state = WorkflowState.SPEC_GENERATED
            raise
        except Exception:
            self.state = WorkflowState.FAILED
            raise

    def _run(self) -> WorkflowState:
        spec_path = self.spec_path

        if self.options.abort:
            return self.abort(spec_path)

        step("Reading project")
        project = asyncio.run(read_project(self.directory))
        if not project.is_monorepo:
            raise ReleaseBranchError(
                f"{self.directory} has no workspace packages. Only monorepos are supported."
            )
        self.project = project
        for package in project.workspace_packages.values():
            marker = "changed" if package.has_changes_since_latest_release else "unchanged"
            info(f"{package.name} {package.manifest.version} ({marker})")

        if spec_path.exists() and self.options.reset:
            info(f"Removing release spec from a previous run: {spec_path}")
            spec_path.unlink()

        if spec_path.exists():
            if not self.options.resume:
                raise ResumeStateError(spec_path)
            info(f"Continuing from {spec_path}")
        elif self.options.resume:
            raise UsageError(
                f"There is no release spec to continue from (looked for {spec_path}).",
                "Run without --continue to start a new release.",
            )
        elif not self.generate_spec(spec_path):
            return self.state

        self.specification = self.validate(spec_path)
        self.plan = self.build_plan()
        self.write_plan()
        self.commit(spec_path)
        return self.state

    def abort(self, spec_path: Path) -> WorkflowState:
        """Discard uncommitted changes and the spec file."""
        step("Aborting release")
        repo.reset_hard(self.directory)
        if spec_path.exists():
            spec_path.unlink()
            info(f"Removed {spec_path}")
        self.state = WorkflowState.ABORTED
        return self.state

    def generate_spec(self, spec_path: Path) -> bool:
        """Write the spec template and have the user fill it in.

        Returns:
            True if the spec was edited and the run can go on; False if the
            user has to edit the file and re-run with --continue.
        """
        assert self.project is not None
        step("Generating release spec")
        editor = None if self.options.interactive else determine_editor(self.settings)
        template = generate_template(
            self.project, editor_available=editor is not None or self.options.interactive
        )
        spec_path.parent.mkdir(parents=True, exist_ok=True)
        spec_path.write_text(template, encoding="utf-8")
        self.state = WorkflowState.SPEC_GENERATED

        if self.options.interactive:
            spec_path.write_text(self.prompt(self.project, spec_path), encoding="utf-8")
        elif editor is None:
            info(
                "A template has been generated that specifies this release. Please open "
                "the following file in your editor of choice, then re-run this tool with "
                f"--continue:\n\n  {spec_path}"
            )
            return False
        else:
            try:
                wait_for_edit(editor, spec_path)
            except EditorError:
                info(
                    f"The release spec was kept at {spec_path}. Edit it, then re-run "
                    "this tool with --continue."
                )
                raise

        self.state = WorkflowState.SPEC_EDITED
        return True

    def validate(self, spec_path: Path) -> ReleaseSpecification:
        assert self.project is not None
        step("Validating release spec")
        specification = read_release_specification(self.project, spec_path)
        self.state = WorkflowState.SPEC_VALIDATED
        for name, specifier in specification.packages.items():
            shown = (
                specifier.value if isinstance(specifier, IncrementableVersionPart) else specifier
            )
            info(f"{name}: {shown}")
        return specification

    def build_plan(self) -> ReleasePlan:
        """Check dependency consistency and compute the release plan."""
        assert self.project is not None and self.specification is not None
        step("Checking dependency consistency")
        report = check_consistency(self.project, self.specification)
        for message in format_warnings(report):
            warn(message)
        assert_consistent(report, self.specification.path)

        step("Planning release")
        plan = plan_release(
            self.project,
            self.specification,
            scheme=self.options.scheme,
            today=self.settings.today,
            backport=self.options.backport,
            existing_branches=repo.list_branches(self.directory),
            current_branch=repo.current_branch_name(self.directory),
        )
        self.state = WorkflowState.PLAN_BUILT
        for entry in plan.packages:
            info(f"{entry.package.name}: {entry.package.manifest.version} → {entry.new_version}")
        return plan

    def restore_skipped_changelogs(self) -> None:
        """Reset changelogs of changed packages left out of the release."""
        assert self.project is not None and self.plan is not None
        released = {entry.package.name for entry in self.plan.packages}
        paths = [
            package.changelog_path
            for name, package in self.project.workspace_packages.items()
            if name not in released
            and package.has_changes_since_latest_release
            and package.changelog_path.exists()
        ]
        if not paths:
            return
        branch = self.options.default_branch
        if not repo.ref_exists(self.directory, branch):
            warn(f"Default branch {branch} not found; left-out changelogs were not restored.")
            return
        repo.restore_files(self.directory, branch, paths)

    def write_plan(self) -> None:
        """Write new versions and changelog sections for every plan entry."""
        assert self.project is not None and self.plan is not None
        step("Updating manifests and changelogs")
        self.restore_skipped_changelogs()
        for entry in self.plan.packages:
            package = entry.package
            write_manifest_version(
                package.manifest_path, package.unvalidated_manifest, entry.new_version
            )
            info(f"Wrote {package.name} {entry.new_version}")
            if not entry.should_update_changelog:
                continue
            if not package.changelog_path.exists():
                warn(f"{package.name} has no changelog at {package.changelog_path}; skipping.")
                continue
            updated = update_changelog(
                package.changelog_path.read_text(encoding="utf-8"),
                entry.new_version,
                self.project.repository_url,
                tag_prefix_for(package.name),
            )
            if updated is None:
                warn(f"{package.changelog_path} already has a {entry.new_version} section.")
                continue
            package.changelog_path.write_text(updated, encoding="utf-8")
        self.state = WorkflowState.MANIFESTS_UPDATED

    def commit(self, spec_path: Path) -> None:
        """Commit the release on its branch and drop the spec file."""
        assert self.plan is not None
        step(f"Committing to {self.plan.branch_name}")
        created = repo.checkout_branch(self.directory, self.plan.branch_name)
        prefix = "Release" if created else "Update Release"
        repo.commit_all(self.directory, f"{prefix} {self.plan.release_name}")
        spec_path.unlink(missing_ok=True)
        self.state = WorkflowState.COMMITTED
        info(f"Committed {prefix} {self.plan.release_name}")


def run_release(options: ReleaseOptions, settings: Settings) -> WorkflowState:
    """Run a release with the given options; see ReleaseWorkflow.run()."""
    return ReleaseWorkflow(options, settings).run()
