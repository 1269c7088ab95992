from __future__ import annotations

from typing import Any, Dict

import pytest

from depdoctor.core.classifier import ConflictClassifier
from depdoctor.core.normalizer import DependencyGraph, GraphNormalizer
from depdoctor.core.ranker import rank
from depdoctor.core.registry import PackageMetadata
from depdoctor.core.solutions import SolutionConstraints, SolutionGenerator
from depdoctor.models.conflict import ConflictType
from depdoctor.models.project import PackageManager, ProjectSnapshot
from depdoctor.models.solution import CandidateKind, RiskLevel, SolutionAction


def _graph(data: Dict[str, Any]) -> DependencyGraph:
    return GraphNormalizer().normalize(ProjectSnapshot.from_dict(data))


def _metadata(name: str, latest: str) -> Dict[str, PackageMetadata]:
    return {
        name: PackageMetadata.from_packument(
            name, {"dist-tags": {"latest": latest}, "versions": {latest: {}}}
        )
    }


@pytest.fixture
def transitive_graph() -> DependencyGraph:
    """ms pulled in twice, at two versions, by two direct dependencies."""
    return _graph(
        {
            "manifest": {"dependencies": {"a": "^1.0.0", "b": "^1.0.0"}},
            "tree": {
                "dependencies": {
                    "a": {"version": "1.0.0", "dependencies": {"ms": {"version": "2.1.2"}}},
                    "b": {"version": "1.0.0", "dependencies": {"ms": {"version": "2.1.3"}}},
                }
            },
        }
    )


@pytest.fixture
def direct_graph() -> DependencyGraph:
    """lodash declared directly and installed at an old major."""
    return _graph(
        {
            "manifest": {"dependencies": {"lodash": "^3.10.0"}},
            "tree": {"dependencies": {"lodash": {"version": "3.10.1"}}},
        }
    )


@pytest.mark.unit
class TestGenerateForPackage:
    """Tests for package-specific candidates."""

    def test_transitive_duplicate_gets_upgrade_and_pin(self, transitive_graph: DependencyGraph) -> None:
        """Test a transitive duplicate yields upgrade-to-latest and force-pin."""
        generator = SolutionGenerator(transitive_graph, _metadata("ms", "2.1.3"))

        candidates = generator.generate_for_package("ms")

        assert [c.kind for c in candidates] == [
            CandidateKind.UPGRADE_LATEST,
            CandidateKind.FORCE_PIN,
        ]
        assert [c.score for c in candidates] == [90, 65]
        assert rank(candidates)[0].kind is CandidateKind.UPGRADE_LATEST

    def test_transitive_upgrade_is_an_override(self, transitive_graph: DependencyGraph) -> None:
        """Test upgrading a transitive package edits the override field."""
        generator = SolutionGenerator(transitive_graph, _metadata("ms", "2.1.3"))

        upgrade = generator.generate_for_package("ms")[0]
        step = upgrade.steps[0]

        assert step.action is SolutionAction.OVERRIDE
        assert step.field == "overrides"
        assert step.from_version == "2.1.2"
        assert step.to_version == "2.1.3"
        assert step.manual is True

    def test_force_pin_steps(self, transitive_graph: DependencyGraph) -> None:
        """Test force-pin adds the override then reinstalls."""
        generator = SolutionGenerator(
            transitive_graph,
            _metadata("ms", "2.1.3"),
            package_manager=PackageManager.PNPM,
        )

        pin = generator.generate_for_package("ms")[1]

        assert pin.steps[0].field == "pnpm.overrides"
        assert pin.steps[1].action is SolutionAction.REGENERATE_LOCK
        assert pin.steps[1].file == "pnpm-lock.yaml"
        assert pin.steps[1].command == "pnpm install"

    def test_breaking_upgrade_skipped_by_default(self, direct_graph: DependencyGraph) -> None:
        """Test a major upgrade is withheld under the balanced strategy."""
        generator = SolutionGenerator(direct_graph, _metadata("lodash", "4.17.21"))

        assert generator.generate_for_package("lodash") == []

    def test_breaking_upgrade_allowed_when_aggressive(self, direct_graph: DependencyGraph) -> None:
        """Test the aggressive strategy proposes a major upgrade."""
        generator = SolutionGenerator(
            direct_graph, _metadata("lodash", "4.17.21"), strategy="aggressive"
        )

        candidates = generator.generate_for_package("lodash")

        assert len(candidates) == 1
        upgrade = candidates[0]
        assert upgrade.kind is CandidateKind.UPGRADE_LATEST
        assert upgrade.is_breaking
        assert upgrade.score == 60
        assert upgrade.risk.level is RiskLevel.HIGH
        assert upgrade.steps[0].command == "npm install lodash@4.17.21 --save"
        assert upgrade.steps[0].field == "dependencies"

    def test_breaking_upgrade_allowed_by_constraint(self, direct_graph: DependencyGraph) -> None:
        """Test allow_major_upgrade lifts the major-version gate."""
        generator = SolutionGenerator(
            direct_graph,
            _metadata("lodash", "4.17.21"),
            constraints=SolutionConstraints(allow_major_upgrade=True),
        )

        kinds = [c.kind for c in generator.generate_for_package("lodash")]

        assert kinds == [CandidateKind.UPGRADE_LATEST]

    def test_excluded_package_gets_nothing(self, transitive_graph: DependencyGraph) -> None:
        """Test excluded packages never get candidates."""
        generator = SolutionGenerator(
            transitive_graph,
            _metadata("ms", "2.1.3"),
            constraints=SolutionConstraints(exclude_packages=frozenset({"ms"})),
        )

        assert generator.generate_for_package("ms") == []

    def test_explicit_target(self, transitive_graph: DependencyGraph) -> None:
        """Test a target version gives upgrade-target and a pin to the target."""
        generator = SolutionGenerator(transitive_graph)

        candidates = generator.generate_for_package("ms", target_version="2.1.3")

        assert [c.kind for c in candidates] == [
            CandidateKind.UPGRADE_TARGET,
            CandidateKind.FORCE_PIN,
        ]
        assert candidates[1].steps[0].to_version == "2.1.3"
        assert candidates[0].score == 75

    def test_preferred_version_used_as_target(self, transitive_graph: DependencyGraph) -> None:
        """Test preferred_versions supplies the target when none is given."""
        generator = SolutionGenerator(
            transitive_graph,
            constraints=SolutionConstraints(preferred_versions={"ms": "2.1.3"}),
        )

        kinds = [c.kind for c in generator.generate_for_package("ms")]

        assert CandidateKind.UPGRADE_TARGET in kinds

    def test_target_below_current_is_downgrade(self) -> None:
        """Test a lower target on a direct dependency is a downgrade step."""
        graph = _graph(
            {
                "manifest": {"devDependencies": {"ms": "^2.1.3"}},
                "tree": {"devDependencies": {"ms": {"version": "2.1.3"}}},
            }
        )

        candidates = SolutionGenerator(graph).generate_for_package("ms", "2.1.2")

        assert len(candidates) == 1
        step = candidates[0].steps[0]
        assert step.action is SolutionAction.DOWNGRADE
        assert step.field == "devDependencies"
        assert step.command == "npm install ms@2.1.2 --save-dev"

    def test_no_facts_no_candidates(self, transitive_graph: DependencyGraph) -> None:
        """Test nothing is proposed without a latest or target version."""
        assert SolutionGenerator(transitive_graph).generate_for_package("ms") == []


@pytest.mark.unit
class TestWorkspaceUnify:
    """Tests for the workspace unify candidate."""

    @pytest.fixture
    def monorepo(self) -> DependencyGraph:
        return _graph(
            {
                "workspaces": [
                    {"name": "A", "relativePath": "packages/a", "dependencies": {"lodash": "^4.0.0"}},
                    {"name": "B", "relativePath": "packages/b", "dependencies": {"lodash": "^3.0.0"}},
                ]
            }
        )

    def test_unify_to_highest_declared(self, monorepo: DependencyGraph) -> None:
        """Test members are unified on the highest declared range."""
        candidates = SolutionGenerator(monorepo).generate_for_package("lodash")

        assert [c.kind for c in candidates] == [CandidateKind.WORKSPACE_UNIFY]
        unify = candidates[0]
        assert unify.score == 85
        assert [s.file for s in unify.steps] == [
            "packages/a/package.json",
            "packages/b/package.json",
        ]
        assert {s.to_version for s in unify.steps} == {"^4.0.0"}
        assert unify.compatibility.affected_packages == ["A", "B"]

    def test_unify_across_major_is_medium_risk(self, monorepo: DependencyGraph) -> None:
        """Test moving a member from ^3 to ^4 is breaking and at least medium risk."""
        unify = SolutionGenerator(monorepo).generate_for_package("lodash")[0]

        assert unify.is_breaking is True
        assert unify.risk.level is RiskLevel.MEDIUM
        assert unify.risk.factors[0] == "Major version change may include breaking changes"

    def test_unify_prefers_latest(self, monorepo: DependencyGraph) -> None:
        """Test a known latest version becomes the unify target."""
        generator = SolutionGenerator(monorepo, _metadata("lodash", "4.17.21"))

        unify = [
            c for c in generator.generate_for_package("lodash")
            if c.kind is CandidateKind.WORKSPACE_UNIFY
        ][0]

        assert {s.to_version for s in unify.steps} == {"4.17.21"}

    def test_single_member_is_not_unified(self) -> None:
        """Test one declaring member yields no unify candidate."""
        graph = _graph({"workspaces": [{"name": "A", "dependencies": {"lodash": "^4.0.0"}}]})

        assert SolutionGenerator(graph).generate_for_package("lodash") == []


@pytest.mark.unit
class TestGenerateGeneral:
    """Tests for graph-wide candidates."""

    def test_balanced_general(self, transitive_graph: DependencyGraph) -> None:
        """Test dedupe and lock regeneration under the balanced strategy."""
        candidates = SolutionGenerator(transitive_graph).generate_general()

        assert [c.kind for c in candidates] == [
            CandidateKind.DEDUPE,
            CandidateKind.REGENERATE_LOCK,
        ]
        assert candidates[0].steps[0].command == "npm dedupe"
        assert [s.command for s in candidates[1].steps] == [
            "rm -rf node_modules",
            "rm -f package-lock.json",
            "npm install",
        ]

    def test_aggressive_adds_update_all(self, transitive_graph: DependencyGraph) -> None:
        """Test update-all only appears under the aggressive strategy."""
        candidates = SolutionGenerator(transitive_graph, strategy="aggressive").generate_general()

        assert candidates[-1].kind is CandidateKind.UPDATE_ALL
        assert candidates[-1].score == 40
        assert candidates[-1].is_breaking

    def test_conservative_has_no_update_all(self, transitive_graph: DependencyGraph) -> None:
        """Test conservative never proposes update-all."""
        candidates = SolutionGenerator(transitive_graph, strategy="conservative").generate_general()

        assert CandidateKind.UPDATE_ALL not in [c.kind for c in candidates]

    def test_general_candidates_use_yarn(self, transitive_graph: DependencyGraph) -> None:
        """Test commands follow the package manager."""
        candidates = SolutionGenerator(
            transitive_graph, package_manager=PackageManager.YARN
        ).generate_general()

        assert candidates[0].steps[0].command == "yarn dedupe"
        assert candidates[1].steps[1].command == "rm -f yarn.lock"


@pytest.mark.unit
class TestGenerateForConflict:
    """Tests for generate_for_conflict."""

    def test_runtime_engine_record_has_no_candidates(self) -> None:
        """Test the runtime engine record cannot be fixed by a package change."""
        graph = _graph({"manifest": {"engines": {"node": ">=18"}}, "runtimeVersion": "16.0.0"})
        record = ConflictClassifier().classify(graph)[0]

        assert record.type is ConflictType.ENGINE_MISMATCH
        assert SolutionGenerator(graph).generate_for_conflict(record) == []

    def test_duplicate_record_delegates_to_package(self, transitive_graph: DependencyGraph) -> None:
        """Test a multiple_versions record gets the package's candidates."""
        record = ConflictClassifier().classify(transitive_graph, ["multiple_versions"])[0]
        generator = SolutionGenerator(transitive_graph, _metadata("ms", "2.1.3"))

        kinds = [c.kind for c in generator.generate_for_conflict(record)]

        assert kinds == [CandidateKind.UPGRADE_LATEST, CandidateKind.FORCE_PIN]
