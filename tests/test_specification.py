"""Tests for release_branch.specification."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from release_branch.errors import (
    ReleaseSpecificationError,
    ReleaseSpecificationParseError,
    ReleaseSpecificationValidationError,
)
from release_branch.specification import (
    INTENTIONALLY_SKIP,
    generate_template,
    parse_release_specification,
    read_release_specification,
    render_specification,
    validate_release_specification,
)
from release_branch.versions import IncrementableVersionPart

SPEC_PATH = Path("/tmp/RELEASE_SPEC.yml")


@pytest.fixture
def project(package_factory, project_factory):
    """Three workspace packages: a and c changed, b unchanged."""
    return project_factory(
        package_factory("@example/a", "1.0.0"),
        package_factory("@example/b", "2.3.4", changed=False),
        package_factory("@example/c", "0.1.0"),
    )


class TestGenerateTemplate:
    """Tests for generate_template()."""

    def test_changed_packages_first(self, project) -> None:
        template = generate_template(project, editor_available=True)

        body = template[template.index("packages:") :]
        assert body.index("@example/a") < body.index("@example/c") < body.index("@example/b")
        assert body.index("# No changes since their latest release:") < body.index("@example/b")

    def test_every_package_is_null(self, project) -> None:
        template = generate_template(project, editor_available=True)

        assert yaml.safe_load(template) == {
            "packages": {"@example/a": None, "@example/c": None, "@example/b": None}
        }

    def test_instructions_depend_on_editor(self, project) -> None:
        with_editor = generate_template(project, editor_available=True)
        without_editor = generate_template(project, editor_available=False)

        assert "save this file and close it" in with_editor
        assert "--continue" in without_editor
        assert "--continue" not in with_editor

    def test_lists_the_skip_directive(self, project) -> None:
        assert INTENTIONALLY_SKIP in generate_template(project, editor_available=True)

    def test_no_changes(self, package_factory, project_factory) -> None:
        project = project_factory(package_factory("@example/a", changed=False))

        with pytest.raises(ReleaseSpecificationError, match="no packages that have changed"):
            generate_template(project, editor_available=True)

    def test_template_validates_to_empty_release(self, project) -> None:
        """An untouched template is parseable but releases nothing."""
        template = generate_template(project, editor_available=True)

        with pytest.raises(ReleaseSpecificationValidationError, match="No packages are being"):
            validate_release_specification(project, template, SPEC_PATH)


class TestRenderSpecification:
    def test_round_trips_through_parser(self) -> None:
        text = render_specification({"@example/a": "major", "@example/b": None})

        entries = parse_release_specification(text, SPEC_PATH)

        assert [(e.name, e.directive) for e in entries] == [
            ("@example/a", "major"),
            ("@example/b", None),
        ]


class TestParseReleaseSpecification:
    """Tests for parse_release_specification()."""

    def test_line_numbers(self) -> None:
        text = "# comment\npackages:\n  a: major\n\n  b: 1.2.3\n"

        entries = parse_release_specification(text, SPEC_PATH)

        assert [(e.name, e.directive, e.line) for e in entries] == [
            ("a", "major", 3),
            ("b", "1.2.3", 5),
        ]

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ReleaseSpecificationParseError) as exc_info:
            parse_release_specification("packages:\n  a: [unclosed\n", SPEC_PATH)

        assert "does not appear to be valid YAML" in str(exc_info.value)
        assert exc_info.value.path == SPEC_PATH

    @pytest.mark.parametrize(
        "text", ["", "- a\n- b\n", "other: 1\n", "packages:\n  - a\n", "packages: major\n"]
    )
    def test_packages_must_be_mapping(self, text: str) -> None:
        with pytest.raises(ReleaseSpecificationParseError, match="`packages` property"):
            parse_release_specification(text, SPEC_PATH)

    def test_error_retains_spec(self) -> None:
        with pytest.raises(ReleaseSpecificationParseError) as exc_info:
            parse_release_specification("other: 1\n", SPEC_PATH)

        assert "re-run this tool with --continue" in str(exc_info.value)
        assert str(SPEC_PATH) in str(exc_info.value)


class TestValidateReleaseSpecification:
    """Tests for validate_release_specification()."""

    def test_valid_spec(self, project) -> None:
        text = (
            "packages:\n"
            '  "@example/a": major\n'
            '  "@example/c": 0.2.0\n'
            f'  "@example/b": {INTENTIONALLY_SKIP}\n'
        )

        spec = validate_release_specification(project, text, SPEC_PATH)

        assert list(spec.packages) == ["@example/a", "@example/c"]
        assert spec.packages["@example/a"] is IncrementableVersionPart.MAJOR
        assert str(spec.packages["@example/c"]) == "0.2.0"
        assert spec.skipped_packages == {"@example/b"}
        assert spec.path == SPEC_PATH

    def test_null_entries_are_dropped(self, project) -> None:
        text = 'packages:\n  "@example/a": patch\n  "@example/c": null\n  "@example/b":\n'

        spec = validate_release_specification(project, text, SPEC_PATH)

        assert list(spec.packages) == ["@example/a"]
        assert spec.skipped_packages == set()

    def test_collects_every_issue_with_line_numbers(self, project) -> None:
        text = (
            "packages:\n"
            '  "@example/a": major\n'
            '  "@example/nope": minor\n'
            '  "@example/c": huge\n'
        )

        with pytest.raises(ReleaseSpecificationValidationError) as exc_info:
            validate_release_specification(project, text, SPEC_PATH)

        error = exc_info.value
        assert [issue.line for issue in error.issues] == [3, 4]
        message = str(error)
        assert message.startswith(
            "Your release spec could not be processed due to the following issues:"
        )
        assert '* Line 3: "@example/nope" is not a package in the project' in message
        assert '* Line 4: "huge" is not a valid version specifier for package' in message
        assert 'such as "1.2.3"' in message

    def test_exact_version_equal_to_current(self, project) -> None:
        text = 'packages:\n  "@example/a": 1.0.0\n'

        with pytest.raises(ReleaseSpecificationValidationError) as exc_info:
            validate_release_specification(project, text, SPEC_PATH)

        assert '"@example/a" is already at version "1.0.0"' in str(exc_info.value)

    def test_exact_version_lower_than_current(self, project) -> None:
        text = 'packages:\n  "@example/b": 2.0.0\n'

        with pytest.raises(ReleaseSpecificationValidationError) as exc_info:
            validate_release_specification(project, text, SPEC_PATH)

        assert '"@example/b" is at a greater version "2.3.4"' in str(exc_info.value)

    def test_exact_version_below_current_in_full_release(
        self, package_factory, project_factory
    ) -> None:
        """An exact version never moves a package backwards, even among valid bumps."""
        project = project_factory(
            package_factory("a", "0.1.2"),
            package_factory("b", "1.1.4"),
            package_factory("c", "2.0.13"),
            package_factory("d", "1.7.12"),
        )
        text = "packages:\n  a: major\n  b: minor\n  c: patch\n  d: 1.2.3\n"

        with pytest.raises(ReleaseSpecificationValidationError) as exc_info:
            validate_release_specification(project, text, SPEC_PATH)

        [issue] = exc_info.value.issues
        assert issue.line == 5
        assert 'package "d"' in issue.message
        assert '"d" is at a greater version "1.7.12"' in issue.message

    def test_duplicate_entry(self, project) -> None:
        text = 'packages:\n  "@example/a": major\n  "@example/a": minor\n'

        with pytest.raises(ReleaseSpecificationValidationError) as exc_info:
            validate_release_specification(project, text, SPEC_PATH)

        assert exc_info.value.issues[0].line == 3
        assert "listed more than once" in exc_info.value.issues[0].message

    def test_non_scalar_specifier(self, project) -> None:
        text = 'packages:\n  "@example/a":\n    - major\n'

        with pytest.raises(ReleaseSpecificationValidationError) as exc_info:
            validate_release_specification(project, text, SPEC_PATH)

        assert 'A list is not a valid version specifier for package "@example/a"' in str(
            exc_info.value
        )

    def test_partial_version_is_rejected(self, project) -> None:
        text = 'packages:\n  "@example/a": "1.2"\n'

        with pytest.raises(ReleaseSpecificationValidationError):
            validate_release_specification(project, text, SPEC_PATH)

    def test_only_skips_releases_nothing(self, project) -> None:
        text = f'packages:\n  "@example/a": {INTENTIONALLY_SKIP}\n'

        with pytest.raises(ReleaseSpecificationValidationError) as exc_info:
            validate_release_specification(project, text, SPEC_PATH)

        assert exc_info.value.issues[0].line is None

    def test_read_from_file(self, project, tmp_path: Path) -> None:
        path = tmp_path / "RELEASE_SPEC.yml"
        path.write_text('packages:\n  "@example/a": minor\n')

        spec = read_release_specification(project, path)

        assert spec.packages == {"@example/a": IncrementableVersionPart.MINOR}
        assert spec.path == path
