"""Remediation candidate generation for depdoctor.

For a single package :class:`SolutionGenerator` proposes up to four
candidates, depending on which facts are available:

1. upgrade to the registry's latest version;
2. upgrade to an explicit target version;
3. force-pin a transitive package through the manager's override field;
4. unify the range declared by every workspace member.

It also proposes graph-wide candidates (dedupe, lock regeneration and,
under the ``aggressive`` strategy only, bulk update-all). Every candidate
is passed through :func:`depdoctor.core.ranker.assess` before it is
returned.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional

from depdoctor.utils.logger import get_logger
from depdoctor.core.ranker import assess
from depdoctor.core.registry import PackageMetadata
from depdoctor.core.normalizer import DependencyGraph
from depdoctor.core.classifier import RUNTIME_PACKAGE
from depdoctor.models.graph import DependencyKind
from depdoctor.models.project import PackageManager
from depdoctor.models.conflict import ConflictRecord, ConflictType
from depdoctor.constants import (
    DEFAULT_ALLOW_MAJOR_UPGRADE,
    DEFAULT_STRATEGY,
    INSTALL_DIR,
    MANIFEST_FILE,
)
from depdoctor.models.solution import (
    CandidateKind,
    CompatibilityNotes,
    SolutionAction,
    SolutionCandidate,
    SolutionStep,
)
from depdoctor.utils.version_utils import (
    coerce_version,
    get_update_type,
    is_major_bump,
    sort_versions,
)

logger = get_logger("solutions")

__all__ = ["SolutionConstraints", "SolutionGenerator"]

GENERAL_ISSUE = "general"


@dataclass
class SolutionConstraints:
    """Caller limits on what the generator may propose.

    Attributes:
        allow_major_upgrade: Permit upgrade-to-latest across a major version.
        preferred_versions: Package → version used as the explicit target
            when none is passed.
        exclude_packages: Packages that must never get candidates.
    """

    allow_major_upgrade: bool = DEFAULT_ALLOW_MAJOR_UPGRADE
    preferred_versions: Dict[str, str] = field(default_factory=dict)
    exclude_packages: FrozenSet[str] = frozenset()


class SolutionGenerator:
    """Propose remediation candidates for packages and for the whole graph.

    Args:
        graph: Normalized dependency graph.
        metadata: Registry metadata keyed by package name.
        package_manager: Manager whose commands and fields to use; the
            graph's by default.
        strategy: ``conservative``, ``balanced`` or ``aggressive``.
        constraints: Caller limits.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        metadata: Optional[Mapping[str, PackageMetadata]] = None,
        package_manager: Optional[PackageManager] = None,
        strategy: str = DEFAULT_STRATEGY,
        constraints: Optional[SolutionConstraints] = None,
    ) -> None:
        self.graph = graph
        self.metadata: Mapping[str, PackageMetadata] = metadata or {}
        self.package_manager = package_manager or graph.package_manager
        self.strategy = strategy
        self.constraints = constraints or SolutionConstraints()

    # ------------------------------------------------------------------
    # Package-specific candidates
    # ------------------------------------------------------------------

    def latest_version(self, name: str) -> Optional[str]:
        package = self.metadata.get(name)
        return package.latest_version if package else None

    def observed_versions(self, name: str) -> List[str]:
        """Installed versions, else the version coerced from the root's range."""
        installed = self.graph.versions_of(name)
        if installed:
            return installed
        declared = self.graph.direct_dependencies.get(name)
        coerced = coerce_version(declared.range) if declared else None
        return [coerced] if coerced else []

    def generate_for_package(
        self,
        name: str,
        target_version: Optional[str] = None,
    ) -> List[SolutionCandidate]:
        """Return zero to four candidates for *name*, in generation order."""
        if name in self.constraints.exclude_packages:
            logger.debug("%s is excluded, no candidates generated", name)
            return []

        target = target_version or self.constraints.preferred_versions.get(name)
        latest = self.latest_version(name)
        observed = self.observed_versions(name)
        ordered = sort_versions(observed) or observed
        current = ordered[0] if ordered else None

        candidates: List[SolutionCandidate] = []

        if latest and any(v != latest for v in observed):
            breaking = is_major_bump(current, latest)
            if not breaking or self._majors_allowed():
                candidates.append(
                    self._upgrade(name, CandidateKind.UPGRADE_LATEST, current, latest, breaking)
                )
            else:
                logger.debug(
                    "Skipping major upgrade of %s %s -> %s", name, current, latest
                )

        if target and target != latest:
            candidates.append(
                self._upgrade(
                    name,
                    CandidateKind.UPGRADE_TARGET,
                    current,
                    target,
                    is_major_bump(current, target),
                )
            )

        pin = target or latest
        if pin and not self.graph.is_direct(name):
            candidates.append(self._force_pin(name, current, pin))

        unify = self._workspace_unify(name, target or latest)
        if unify is not None:
            candidates.append(unify)

        logger.debug("Generated %d candidate(s) for %s", len(candidates), name)
        return [assess(c) for c in candidates]

    def generate_for_conflict(self, record: ConflictRecord) -> List[SolutionCandidate]:
        """Return package-specific candidates for the package *record* names."""
        if record.type is ConflictType.ENGINE_MISMATCH and record.package == RUNTIME_PACKAGE:
            return []
        return self.generate_for_package(record.package)

    def _majors_allowed(self) -> bool:
        return self.strategy == "aggressive" or self.constraints.allow_major_upgrade

    def _upgrade(
        self,
        name: str,
        kind: CandidateKind,
        current: Optional[str],
        version: str,
        breaking: bool,
    ) -> SolutionCandidate:
        if kind is CandidateKind.UPGRADE_LATEST:
            title = f"Upgrade {name} to the latest version"
            description = f"Move {name} from {current or 'not installed'} to {version}"
        else:
            title = f"Upgrade {name} to {version}"
            description = (
                f"Move {name} from {current or 'not installed'} to the requested {version}"
            )
        return SolutionCandidate(
            for_issue=name,
            kind=kind,
            title=title,
            description=description,
            steps=self._upgrade_steps(name, current, version),
            compatibility=CompatibilityNotes(
                breaking_changes=breaking,
                affected_packages=[name],
                testing_required=["unit tests", "integration tests"]
                if breaking
                else ["unit tests"],
            ),
        )

    def _upgrade_steps(
        self,
        name: str,
        current: Optional[str],
        version: str,
    ) -> List[SolutionStep]:
        manager = self.package_manager
        action = (
            SolutionAction.DOWNGRADE
            if get_update_type(current, version) == "downgrade"
            else SolutionAction.UPGRADE
        )

        declared = self.graph.direct_dependencies.get(name)
        if declared is not None:
            dev = declared.kind is DependencyKind.DEV
            return [
                SolutionStep(
                    action=action,
                    target=name,
                    file=MANIFEST_FILE,
                    from_version=current,
                    to_version=version,
                    field="devDependencies" if dev else "dependencies",
                    command=manager.add_command(name, version, dev=dev),
                )
            ]

        return [
            SolutionStep(
                action=SolutionAction.OVERRIDE,
                target=name,
                file=MANIFEST_FILE,
                from_version=current,
                to_version=version,
                field=manager.override_field,
                manual=True,
            )
        ]

    def _force_pin(self, name: str, current: Optional[str], version: str) -> SolutionCandidate:
        manager = self.package_manager
        return SolutionCandidate(
            for_issue=name,
            kind=CandidateKind.FORCE_PIN,
            title=f"Force {name} with {manager.override_field}",
            description=(
                f"Add {name}@{version} to {manager.override_field} in "
                f"{MANIFEST_FILE} so every consumer gets one version"
            ),
            steps=[
                SolutionStep(
                    action=SolutionAction.OVERRIDE,
                    target=name,
                    file=MANIFEST_FILE,
                    from_version=current,
                    to_version=version,
                    field=manager.override_field,
                    manual=True,
                ),
                SolutionStep(
                    action=SolutionAction.REGENERATE_LOCK,
                    target="lock file",
                    file=manager.lock_file,
                    command=manager.install_command(),
                ),
            ],
            compatibility=CompatibilityNotes(
                breaking_changes=is_major_bump(current, version),
                affected_packages=[name],
                testing_required=["unit tests"],
            ),
        )

    def _workspace_unify(
        self,
        name: str,
        preferred: Optional[str],
    ) -> Optional[SolutionCandidate]:
        members = self.graph.members_declaring(name)
        if len(members) < 2:
            return None

        target = preferred or _highest_declared(
            [m.requirements[name] for m in members]
        )
        if target is None:
            logger.debug("No unify target for %s, skipping workspace candidate", name)
            return None

        steps = [
            SolutionStep(
                action=SolutionAction.UPGRADE,
                target=name,
                file=posixpath.join(m.relative_path, MANIFEST_FILE)
                if m.relative_path
                else MANIFEST_FILE,
                from_version=m.requirements[name],
                to_version=target,
                field="dependencies",
                manual=True,
            )
            for m in members
        ]

        return SolutionCandidate(
            for_issue=name,
            kind=CandidateKind.WORKSPACE_UNIFY,
            title=f"Unify {name} across all workspaces",
            description=f"Declare {name}@{target} in all {len(members)} workspaces",
            steps=steps,
            compatibility=CompatibilityNotes(
                breaking_changes=any(
                    is_major_bump(m.requirements[name], target) for m in members
                ),
                affected_packages=[m.name for m in members],
                testing_required=[f"{m.name} tests" for m in members],
            ),
        )

    # ------------------------------------------------------------------
    # Graph-wide candidates
    # ------------------------------------------------------------------

    def generate_general(self) -> List[SolutionCandidate]:
        """Return dedupe, lock regeneration and (aggressive only) update-all."""
        manager = self.package_manager
        lock_file = manager.lock_file

        candidates = [
            SolutionCandidate(
                for_issue=GENERAL_ISSUE,
                kind=CandidateKind.DEDUPE,
                title="Deduplicate dependencies",
                description="Run the package manager's dedupe command to collapse duplicate copies",
                steps=[
                    SolutionStep(
                        action=SolutionAction.DEDUPE,
                        target="all dependencies",
                        file=lock_file,
                        command=manager.dedupe_command(),
                    )
                ],
                compatibility=CompatibilityNotes(testing_required=["full regression"]),
            ),
            SolutionCandidate(
                for_issue=GENERAL_ISSUE,
                kind=CandidateKind.REGENERATE_LOCK,
                title="Regenerate the lock file",
                description=f"Remove {INSTALL_DIR} and {lock_file}, then reinstall",
                steps=[
                    SolutionStep(
                        action=SolutionAction.REMOVE,
                        target=INSTALL_DIR,
                        file=INSTALL_DIR,
                        command=f"rm -rf {INSTALL_DIR}",
                    ),
                    SolutionStep(
                        action=SolutionAction.REMOVE,
                        target="lock file",
                        file=lock_file,
                        command=f"rm -f {lock_file}",
                    ),
                    SolutionStep(
                        action=SolutionAction.REGENERATE_LOCK,
                        target="dependencies",
                        file=MANIFEST_FILE,
                        command=manager.install_command(),
                    ),
                ],
                compatibility=CompatibilityNotes(testing_required=["full regression"]),
            ),
        ]

        if self.strategy == "aggressive":
            candidates.append(
                SolutionCandidate(
                    for_issue=GENERAL_ISSUE,
                    kind=CandidateKind.UPDATE_ALL,
                    title="Update every dependency to its latest version",
                    description="Bump all ranges with npm-check-updates and reinstall",
                    steps=[
                        SolutionStep(
                            action=SolutionAction.UPGRADE,
                            target="all dependencies",
                            file=MANIFEST_FILE,
                            command=manager.update_all_command(),
                            manual=True,
                        ),
                        SolutionStep(
                            action=SolutionAction.REGENERATE_LOCK,
                            target="dependencies",
                            file=lock_file,
                            command=manager.install_command(),
                        ),
                    ],
                    compatibility=CompatibilityNotes(
                        breaking_changes=True,
                        testing_required=["full regression", "manual testing"],
                    ),
                )
            )

        return [assess(c) for c in candidates]


def _highest_declared(requirements: List[str]) -> Optional[str]:
    """Return the declared range whose coerced version is highest."""
    by_version = {}
    for spec in requirements:
        coerced = coerce_version(spec)
        if coerced is not None:
            by_version.setdefault(coerced, spec)
    ordered = sort_versions(by_version)
    return by_version[ordered[-1]] if ordered else None
