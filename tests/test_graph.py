"""Tests for release_branch.graph."""

from __future__ import annotations

from release_branch.graph import dependents_of, reverse_dependencies, workspace_dependencies


class TestWorkspaceDependencies:
    def test_ignores_external_packages(self, package_factory) -> None:
        a = package_factory("a")
        b = package_factory("b", dependencies={"a": "^1.0.0", "lodash": "^4.0.0"})
        pkgs = {"a": a, "b": b}

        assert workspace_dependencies(b, pkgs) == ["a"]

    def test_peer_and_direct_listed_once(self, package_factory) -> None:
        a = package_factory("a")
        c = package_factory("c")
        b = package_factory(
            "b",
            dependencies={"a": "^1.0.0"},
            peer_dependencies={"a": "^1.0.0", "c": "^1.0.0"},
        )
        pkgs = {"a": a, "b": b, "c": c}

        assert workspace_dependencies(b, pkgs) == ["a", "c"]


class TestReverseDependencies:
    def test_dependents(self, package_factory) -> None:
        """b and c both depend on a; nothing depends on b or c."""
        a = package_factory("a")
        b = package_factory("b", dependencies={"a": "^1.0.0"})
        c = package_factory("c", dependencies={"a": "^1.0.0", "react": "^18.0.0"})
        pkgs = {"a": a, "b": b, "c": c}

        result = reverse_dependencies(pkgs, "dependencies")

        assert result == {"a": ["b", "c"], "b": [], "c": []}

    def test_sections_are_separate(self, package_factory) -> None:
        a = package_factory("a")
        b = package_factory("b", peer_dependencies={"a": "^1.0.0"})
        pkgs = {"a": a, "b": b}

        assert reverse_dependencies(pkgs, "dependencies")["a"] == []
        assert reverse_dependencies(pkgs, "peerDependencies")["a"] == ["b"]

    def test_dependents_of_unknown_package(self, package_factory) -> None:
        pkgs = {"a": package_factory("a")}
        assert dependents_of(pkgs, "missing", "dependencies") == []
