from __future__ import annotations

import pytest

from depdoctor.models.graph import (
    DependencyNode,
    FlatDependencyRecord,
    OverrideDirective,
    RequirementEdge,
    ResolvedVersion,
    VersionRequirement,
    child_location,
    strip_version_suffix,
)


@pytest.mark.unit
class TestFlatDependencyRecord:
    """Tests for FlatDependencyRecord."""

    def test_distinct_versions_in_discovery_order(self) -> None:
        """Test repeated versions count once and order is preserved."""
        record = FlatDependencyRecord("lodash")
        record.add(ResolvedVersion("lodash", "4.17.21", "node_modules/lodash"))
        record.add(ResolvedVersion("lodash", "4.17.15", "node_modules/a/node_modules/lodash", "a"))
        record.add(ResolvedVersion("lodash", "4.17.21", "node_modules/b/node_modules/lodash", "b"))

        assert record.versions == ["4.17.21", "4.17.15"]
        assert record.multiplicity == 2
        assert len(record.occurrences) == 3

    def test_locations_and_requesters(self) -> None:
        """Test per-version location and requester lookups."""
        record = FlatDependencyRecord("lodash")
        record.add(ResolvedVersion("lodash", "4.17.21", "node_modules/lodash"))
        record.add(ResolvedVersion("lodash", "4.17.21", "node_modules/b/node_modules/lodash", "b"))

        assert record.locations_of("4.17.21") == [
            "node_modules/lodash",
            "node_modules/b/node_modules/lodash",
        ]
        assert record.requesters_of("4.17.21") == ["(root)", "b"]
        assert record.locations_of("1.0.0") == []


@pytest.mark.unit
class TestOverrideDirective:
    """Tests for OverrideDirective path handling."""

    def test_plain_path(self) -> None:
        """Test a plain key names the package with no ancestors."""
        directive = OverrideDirective("lodash", "4.17.21")

        assert directive.package == "lodash"
        assert directive.ancestors == []

    def test_nested_path(self) -> None:
        """Test a nested path splits into ancestors and package."""
        directive = OverrideDirective("react>@babel/core@7", "7.23.0")

        assert directive.package == "@babel/core"
        assert directive.ancestors == ["react"]

    @pytest.mark.parametrize(
        "key,expected",
        [("lodash@^4", "lodash"), ("@babel/core@7", "@babel/core"), ("@types/node", "@types/node")],
    )
    def test_strip_version_suffix(self, key: str, expected: str) -> None:
        """Test version suffixes are dropped without breaking scopes."""
        assert strip_version_suffix(key) == expected


@pytest.mark.unit
class TestTreeHelpers:
    """Tests for DependencyNode.walk, child_location and edge labels."""

    def test_walk_is_preorder_with_ancestors(self) -> None:
        """Test walk yields each node with its ancestor chain."""
        leaf = DependencyNode("c", "1.0.0", "x")
        mid = DependencyNode("b", "1.0.0", "y", children=[leaf])
        top = DependencyNode("a", "1.0.0", "z", children=[mid])

        walked = [(n.name, [a.name for a in anc]) for n, anc in top.walk()]

        assert walked == [("a", []), ("b", ["a"]), ("c", ["a", "b"])]

    def test_child_location(self) -> None:
        """Test npm install paths nest under node_modules."""
        assert child_location(None, "a") == "node_modules/a"
        assert child_location("node_modules/a", "b") == "node_modules/a/node_modules/b"

    def test_source_label(self) -> None:
        """Test edge labels for root, versioned and unversioned sources."""
        requirement = VersionRequirement("react", "^18.0.0")

        assert RequirementEdge(None, None, ".", requirement).source_label == "(root)"
        assert RequirementEdge("a", "1.0.0", ".", requirement).source_label == "a@1.0.0"
        assert RequirementEdge("a", None, ".", requirement).source_label == "a"
