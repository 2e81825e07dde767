"""End-to-end release runs against a real git repository."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from release_branch.cli import cli

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


def _write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's configuration."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.delenv("EDITOR", raising=False)


@pytest.fixture
def repo(tmp_path: Path, git_env: None) -> Path:
    """A monorepo released once as v2022.1.1, with @example/a changed since.

    A release branch for 2022-06-24 already exists.
    """
    root = tmp_path / "repo"
    root.mkdir()
    _git(root, "init", "-q")
    _git(root, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(root, "remote", "add", "origin", "git@github.com:example-org/example-repo.git")

    _write_json(
        root / "package.json",
        {
            "name": "@example/monorepo",
            "version": "2022.1.1",
            "private": True,
            "workspaces": ["packages/*"],
        },
    )
    _write_json(
        root / "packages" / "a" / "package.json", {"name": "@example/a", "version": "0.1.2"}
    )
    _write_json(
        root / "packages" / "b" / "package.json",
        {"name": "@example/b", "version": "1.1.4", "dependencies": {"@example/a": "^0.1.2"}},
    )
    for name in ("a", "b"):
        (root / "packages" / name / "CHANGELOG.md").write_text(
            "# Changelog\n\n## [Unreleased]\n"
        )
    _git(root, "add", "-A")
    _git(root, "commit", "-q", "-m", "Initial commit")
    _git(root, "tag", "v2022.1.1")

    (root / "packages" / "a" / "index.js").write_text("module.exports = 1;\n")
    (root / "packages" / "a" / "CHANGELOG.md").write_text(
        "# Changelog\n\n## [Unreleased]\n### Added\n- Export a number\n"
    )
    _git(root, "add", "-A")
    _git(root, "commit", "-q", "-m", "Add index")
    _git(root, "branch", "release/2022-06-24/1")
    return root


class TestDatedRelease:
    """Full run: generate the spec, edit it, continue."""

    def test_release(self, repo: Path, tmp_path: Path) -> None:
        spec_dir = tmp_path / "spec"
        args = [
            "release",
            "-d",
            str(repo),
            "--temp-directory",
            str(spec_dir),
            "--versioning-scheme",
            "date",
        ]
        runner = CliRunner()

        with patch("release_branch.pipeline.determine_editor", return_value=None):
            first = runner.invoke(cli, args, env={"TODAY": "2022-06-24"})

        assert first.exit_code == 0, first.output
        template = (spec_dir / "RELEASE_SPEC.yml").read_text()
        assert template.index("@example/a") < template.index("No changes since")
        assert template.index("No changes since") < template.index("@example/b")

        (spec_dir / "RELEASE_SPEC.yml").write_text('packages:\n  "@example/a": major\n')
        second = runner.invoke(cli, [*args, "--continue"], env={"TODAY": "2022-06-24"})

        assert second.exit_code == 0, second.output
        assert _git(repo, "rev-parse", "--abbrev-ref", "HEAD") == "release/2022-06-24/2"
        assert _git(repo, "log", "-1", "--format=%s") == "Release 2022-06-24/2"
        assert _git(repo, "status", "--porcelain") == ""
        assert not (spec_dir / "RELEASE_SPEC.yml").exists()

        root_manifest = json.loads((repo / "package.json").read_text())
        a_manifest = json.loads((repo / "packages" / "a" / "package.json").read_text())
        b_manifest = json.loads((repo / "packages" / "b" / "package.json").read_text())
        assert root_manifest["version"] == "20220624.2.0"
        assert a_manifest["version"] == "1.0.0"
        assert b_manifest["version"] == "1.1.4"

        changelog = (repo / "packages" / "a" / "CHANGELOG.md").read_text()
        assert "## [1.0.0]\n### Added\n- Export a number" in changelog
        assert (
            "[1.0.0]: https://github.com/example-org/example-repo/releases/tag/@example/a@1.0.0"
            in changelog
        )
        # Major bump of a without its dependent b is only advice
        assert "direct dependents of package '@example/a'" in second.output

    def test_continue_with_invalid_spec_keeps_it(self, repo: Path, tmp_path: Path) -> None:
        spec_dir = tmp_path / "spec"
        spec_dir.mkdir()
        (spec_dir / "RELEASE_SPEC.yml").write_text('packages:\n  "@example/zzz": major\n')

        result = CliRunner().invoke(
            cli,
            ["release", "-d", str(repo), "--temp-directory", str(spec_dir), "--continue"],
        )

        assert result.exit_code == 1
        assert "Line 2" in result.output
        assert (spec_dir / "RELEASE_SPEC.yml").exists()
        assert _git(repo, "status", "--porcelain") == ""

    def test_abort(self, repo: Path, tmp_path: Path) -> None:
        spec_dir = tmp_path / "spec"
        spec_dir.mkdir()
        (spec_dir / "RELEASE_SPEC.yml").write_text("packages: {}\n")
        (repo / "package.json").write_text("{}\n")

        result = CliRunner().invoke(
            cli, ["release", "-d", str(repo), "--temp-directory", str(spec_dir), "--abort"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads((repo / "package.json").read_text())["version"] == "2022.1.1"
        assert not (spec_dir / "RELEASE_SPEC.yml").exists()


class TestCheckDeps:
    def test_reports_and_fixes_bumps(self, repo: Path) -> None:
        base = _git(repo, "rev-parse", "HEAD")
        _write_json(
            repo / "packages" / "b" / "package.json",
            {"name": "@example/b", "version": "1.1.4", "dependencies": {"@example/a": "^1.0.0"}},
        )
        _git(repo, "commit", "-q", "-am", "Bump a in b")

        result = CliRunner().invoke(
            cli, ["check-deps", "-d", str(repo), "--from", base, "--fix", "--pr", "9"]
        )

        assert result.exit_code == 0, result.output
        changelog = (repo / "packages" / "b" / "CHANGELOG.md").read_text()
        assert (
            "- Bump `@example/a` from `^0.1.2` to `^1.0.0` "
            "([#9](https://github.com/example-org/example-repo/pull/9))"
        ) in changelog
