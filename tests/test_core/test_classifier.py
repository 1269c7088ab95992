from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from depdoctor.core.classifier import ConflictClassifier, deduplicate
from depdoctor.core.normalizer import DependencyGraph, GraphNormalizer
from depdoctor.core.registry import PackageMetadata
from depdoctor.models.conflict import ConflictRecord, ConflictType, Severity
from depdoctor.models.project import ProjectSnapshot


def _graph(data: Dict[str, Any]) -> DependencyGraph:
    return GraphNormalizer().normalize(ProjectSnapshot.from_dict(data))


def _tree(**deps: Any) -> Dict[str, Any]:
    return {"tree": {"dependencies": deps}}


def _only(records: Any, type_: ConflictType, package: Optional[str] = None) -> ConflictRecord:
    matching = [r for r in records if r.type is type_ and (package is None or r.package == package)]
    assert len(matching) == 1, matching
    return matching[0]


@pytest.mark.unit
class TestMultipleVersions:
    """Tests for the multiple_versions check."""

    def test_two_versions_is_info(self) -> None:
        """Test two distinct versions give one info record."""
        graph = _graph(
            _tree(
                lodash={"version": "4.17.21"},
                a={"version": "1.0.0", "dependencies": {"lodash": {"version": "3.10.1"}}},
            )
        )

        record = _only(ConflictClassifier().classify(graph), ConflictType.MULTIPLE_VERSIONS)

        assert record.severity is Severity.INFO
        assert record.package == "lodash"
        assert [v["version"] for v in record.evidence["versions"]] == ["4.17.21", "3.10.1"]

    def test_three_versions_is_warning(self) -> None:
        """Test more than two distinct versions give a warning."""
        graph = _graph(
            _tree(
                debug={"version": "4.3.4"},
                a={"version": "1.0.0", "dependencies": {"debug": {"version": "3.2.7"}}},
                b={"version": "1.0.0", "dependencies": {"debug": {"version": "2.6.9"}}},
            )
        )

        record = _only(ConflictClassifier().classify(graph), ConflictType.MULTIPLE_VERSIONS)

        assert record.severity is Severity.WARNING
        assert len(record.affected_locations) == 3

    def test_same_version_twice_is_not_reported(self) -> None:
        """Test the same version at two locations is not a duplicate."""
        graph = _graph(
            _tree(
                ms={"version": "2.1.3"},
                a={"version": "1.0.0", "dependencies": {"ms": {"version": "2.1.3"}}},
            )
        )

        records = ConflictClassifier().classify(graph, ["multiple_versions"])

        assert records == []


@pytest.mark.unit
class TestPeerDependencies:
    """Tests for the peer_dependency and missing_dependency checks."""

    def test_unmet_peer_is_warning(self) -> None:
        """Test an installed peer outside the range gives a warning."""
        graph = _graph(
            _tree(
                react={"version": "17.0.2"},
                **{"react-dom": {"version": "18.2.0", "peerDependencies": {"react": "^18.2.0"}}},
            )
        )

        record = _only(ConflictClassifier().classify(graph), ConflictType.PEER_DEPENDENCY)

        assert record.severity is Severity.WARNING
        assert record.package == "react"
        assert record.evidence["installed"] == ["17.0.2"]
        assert record.evidence["requiredBy"] == [
            {"from": "react-dom@18.2.0", "requirement": "^18.2.0"}
        ]

    def test_satisfied_peer_is_quiet(self) -> None:
        """Test a satisfied peer produces nothing."""
        graph = _graph(
            _tree(
                react={"version": "18.2.0"},
                **{"react-dom": {"version": "18.2.0", "peerDependencies": {"react": "^18.2.0"}}},
            )
        )

        assert ConflictClassifier().classify(graph, ["peer_dependency", "missing_dependency"]) == []

    def test_absent_peer_is_missing_error(self) -> None:
        """Test a non-optional peer that is not installed is an error."""
        graph = _graph(
            _tree(**{"react-dom": {"version": "18.2.0", "peerDependencies": {"react": "^18.2.0"}}})
        )

        records = ConflictClassifier().classify(graph)
        record = _only(records, ConflictType.MISSING_DEPENDENCY)

        assert record.severity is Severity.ERROR
        assert record.package == "react"
        assert not [r for r in records if r.type is ConflictType.PEER_DEPENDENCY]

    def test_absent_optional_peer_is_ignored(self) -> None:
        """Test an optional peer that is absent yields no record."""
        graph = _graph(
            _tree(
                **{
                    "react-dom": {
                        "version": "18.2.0",
                        "peerDependencies": {"react": "^18.2.0"},
                        "peerDependenciesMeta": {"react": {"optional": True}},
                    }
                }
            )
        )

        assert ConflictClassifier().classify(graph) == []

    def test_registry_peers_used_when_tree_has_none(self) -> None:
        """Test peers come from registry metadata when the tree omits them."""
        graph = _graph(_tree(react={"version": "17.0.2"}, **{"react-dom": {"version": "18.2.0"}}))
        metadata = {
            "react-dom": PackageMetadata.from_packument(
                "react-dom",
                {"versions": {"18.2.0": {"peerDependencies": {"react": "^18.2.0"}}}},
            )
        }

        records = ConflictClassifier(metadata).classify(graph, ["peer_dependency"])

        assert _only(records, ConflictType.PEER_DEPENDENCY).package == "react"

    def test_malformed_peer_range_skipped(self) -> None:
        """Test an unparseable peer range does not produce a record."""
        graph = _graph(
            _tree(react={"version": "18.2.0"}, plugin={"version": "1.0.0", "peerDependencies": {"react": "not-a-range"}})
        )

        assert ConflictClassifier().classify(graph, ["peer_dependency"]) == []


@pytest.mark.unit
class TestVersionConflicts:
    """Tests for the version_conflict check."""

    def test_out_of_range_install_is_error(self) -> None:
        """Test an installed copy outside its parent's range is an error."""
        graph = _graph(
            _tree(a={"version": "1.0.0", "dependencies": {"ms": {"version": "3.0.0", "from": "ms@^2.0.0"}}})
        )

        record = _only(ConflictClassifier().classify(graph), ConflictType.VERSION_CONFLICT)

        assert record.severity is Severity.ERROR
        assert record.evidence["invalid"][0]["from"] == "a@1.0.0"

    def test_overridden_package_is_skipped(self) -> None:
        """Test a package forced by an override is not reported as invalid."""
        data = _tree(a={"version": "1.0.0", "dependencies": {"ms": {"version": "3.0.0", "from": "ms@^2.0.0"}}})
        data["manifest"] = {"overrides": {"ms": "3.0.0"}}

        records = ConflictClassifier().classify(_graph(data), ["version_conflict"])

        assert records == []


@pytest.mark.unit
class TestWorkspaceMismatch:
    """Tests for the workspace_mismatch check."""

    def test_members_with_different_ranges(self) -> None:
        """Test one record listing both members and requirement strings."""
        graph = _graph(
            {
                "workspaces": [
                    {"name": "A", "dependencies": {"lodash": "^4.0.0"}},
                    {"name": "B", "dependencies": {"lodash": "^3.0.0"}},
                ]
            }
        )

        record = _only(ConflictClassifier().classify(graph), ConflictType.WORKSPACE_MISMATCH)

        assert record.package == "lodash"
        assert record.severity is Severity.WARNING
        assert record.evidence["members"] == [
            {"workspace": "A", "requirement": "^4.0.0"},
            {"workspace": "B", "requirement": "^3.0.0"},
        ]
        assert set(record.affected_locations) == {"A", "B"}

    def test_identical_ranges_are_fine(self) -> None:
        """Test identical ranges across members give no record."""
        graph = _graph(
            {
                "workspaces": [
                    {"name": "A", "dependencies": {"lodash": "^4.0.0"}},
                    {"name": "B", "dependencies": {"lodash": "^4.0.0"}},
                ]
            }
        )

        assert ConflictClassifier().classify(graph) == []


@pytest.mark.unit
class TestOverrideRisk:
    """Tests for the override_risk check."""

    def test_override_carries_original_requirements(self) -> None:
        """Test the record lists the requirements the override replaces."""
        data = _tree(a={"version": "1.0.0", "dependencies": {"ms": {"version": "3.0.0", "from": "ms@^2.0.0"}}})
        data["manifest"] = {"overrides": {"ms": "3.0.0"}}

        record = _only(ConflictClassifier().classify(_graph(data)), ConflictType.OVERRIDE_RISK)

        assert record.severity is Severity.INFO
        assert record.evidence["forcedVersion"] == "3.0.0"
        assert record.evidence["originalRequirements"] == [
            {"from": "a@1.0.0", "requirement": "^2.0.0"}
        ]
        assert record.evidence["potentialBreaking"] is True

    def test_compatible_override_is_not_breaking(self) -> None:
        """Test a forced version inside every original range is not breaking."""
        data = _tree(a={"version": "1.0.0", "dependencies": {"ms": {"version": "2.1.3", "from": "ms@^2.0.0"}}})
        data["manifest"] = {"overrides": {"ms": "2.1.3"}}

        record = _only(ConflictClassifier().classify(_graph(data)), ConflictType.OVERRIDE_RISK)

        assert record.evidence["potentialBreaking"] is False

    def test_scoped_override_only_counts_its_parent(self) -> None:
        """Test a nested override only considers requirements from its ancestor."""
        data = _tree(
            a={"version": "1.0.0", "dependencies": {"ms": {"version": "2.1.3", "from": "ms@^2.0.0"}}},
            b={"version": "1.0.0", "dependencies": {"ms": {"version": "2.1.3", "from": "ms@^2.1.0"}}},
        )
        data["manifest"] = {"overrides": {"b": {"ms": "2.1.3"}}}

        record = _only(ConflictClassifier().classify(_graph(data)), ConflictType.OVERRIDE_RISK)

        assert record.evidence["path"] == "b>ms"
        assert record.evidence["originalRequirements"] == [
            {"from": "b@1.0.0", "requirement": "^2.1.0"}
        ]


@pytest.mark.unit
class TestEngineMismatch:
    """Tests for the engine_mismatch check."""

    def test_root_engine_failure_is_error(self) -> None:
        """Test engines.node >=18 with runtime 16 gives exactly one error."""
        graph = _graph({"manifest": {"engines": {"node": ">=18"}}, "runtimeVersion": "v16.20.0"})

        records = ConflictClassifier().classify(graph)
        record = _only(records, ConflictType.ENGINE_MISMATCH)

        assert record.severity is Severity.ERROR
        assert record.package == "node"
        assert record.evidence == {"field": "node", "required": ">=18", "current": "16.20.0"}

    def test_runtime_argument_overrides_snapshot(self) -> None:
        """Test an explicit runtime version takes precedence."""
        graph = _graph({"manifest": {"engines": {"node": ">=18"}}, "runtimeVersion": "16.20.0"})

        assert ConflictClassifier(runtime_version="20.10.0").classify(graph) == []

    def test_unknown_runtime_skips_check(self) -> None:
        """Test no runtime version means no engine records."""
        graph = _graph({"manifest": {"engines": {"node": ">=18"}}})

        assert ConflictClassifier().classify(graph) == []

    def test_package_engine_failure_is_warning(self) -> None:
        """Test a package whose registry engines reject the runtime warns."""
        data = _tree(vite={"version": "5.0.0"})
        data["runtimeVersion"] = "16.20.0"
        metadata = {
            "vite": PackageMetadata.from_packument(
                "vite", {"versions": {"5.0.0": {"engines": {"node": ">=18.0.0"}}}}
            )
        }

        record = _only(ConflictClassifier(metadata).classify(_graph(data)), ConflictType.ENGINE_MISMATCH)

        assert record.severity is Severity.WARNING
        assert record.package == "vite"


@pytest.mark.unit
class TestDeprecated:
    """Tests for the deprecated check."""

    def test_deprecated_version(self) -> None:
        """Test a deprecated installed version is reported with the latest."""
        graph = _graph(_tree(request={"version": "2.88.2"}))
        metadata = {
            "request": PackageMetadata.from_packument(
                "request",
                {
                    "dist-tags": {"latest": "2.88.2"},
                    "versions": {"2.88.2": {"deprecated": "request has been deprecated"}},
                },
            )
        }

        record = _only(ConflictClassifier(metadata).classify(graph), ConflictType.DEPRECATED)

        assert record.severity is Severity.WARNING
        assert record.evidence["latest"] == "2.88.2"
        assert record.evidence["deprecated"][0]["reason"] == "request has been deprecated"


@pytest.mark.unit
class TestClassifyInvariants:
    """Tests for filtering, deduplication and idempotence."""

    @pytest.fixture
    def messy_graph(self) -> DependencyGraph:
        data = _tree(
            lodash={"version": "4.17.21"},
            a={"version": "1.0.0", "dependencies": {"lodash": {"version": "3.10.1"}}},
            **{"react-dom": {"version": "18.2.0", "peerDependencies": {"react": "^18.2.0"}}},
        )
        data["manifest"] = {"engines": {"node": ">=18"}}
        data["runtimeVersion"] = "16.0.0"
        data["workspaces"] = [
            {"name": "A", "dependencies": {"lodash": "^4.0.0"}},
            {"name": "B", "dependencies": {"lodash": "^3.0.0"}},
        ]
        return _graph(data)

    def test_one_record_per_type_and_package(self, messy_graph: DependencyGraph) -> None:
        """Test no (type, package) pair appears twice."""
        records = ConflictClassifier().classify(messy_graph)
        keys = [r.key for r in records]

        assert len(keys) == len(set(keys))
        assert len(records) == 4

    def test_idempotent(self, messy_graph: DependencyGraph) -> None:
        """Test two passes over the same graph give equal records."""
        classifier = ConflictClassifier()

        assert classifier.classify(messy_graph) == classifier.classify(messy_graph)

    def test_passes_compare_as_sets(self, messy_graph: DependencyGraph) -> None:
        """Test two passes give the same set of records."""
        classifier = ConflictClassifier()
        first_pass = classifier.classify(messy_graph)
        second_pass = classifier.classify(messy_graph)

        assert set(first_pass) == set(second_pass)
        assert len(set(first_pass)) == len(first_pass)

    def test_check_types_filter(self, messy_graph: DependencyGraph) -> None:
        """Test only the requested types are produced."""
        records = ConflictClassifier().classify(messy_graph, ["engine_mismatch"])

        assert [r.type for r in records] == [ConflictType.ENGINE_MISMATCH]

    def test_check_order(self, messy_graph: DependencyGraph) -> None:
        """Test records come out in check order."""
        types = [r.type for r in ConflictClassifier().classify(messy_graph)]

        assert types == [
            ConflictType.MISSING_DEPENDENCY,
            ConflictType.MULTIPLE_VERSIONS,
            ConflictType.WORKSPACE_MISMATCH,
            ConflictType.ENGINE_MISMATCH,
        ]

    def test_deduplicate_keeps_first(self) -> None:
        """Test deduplicate keeps the first record for a key."""
        first = ConflictRecord(ConflictType.DEPRECATED, Severity.WARNING, "x", "first")
        second = ConflictRecord(ConflictType.DEPRECATED, Severity.WARNING, "x", "second")

        assert [r.message for r in deduplicate([first, second])] == ["first"]
