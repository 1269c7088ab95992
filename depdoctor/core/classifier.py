"""Conflict classification for depdoctor.

:class:`ConflictClassifier` runs a fixed sequence of independent checks
over a :class:`~depdoctor.core.normalizer.DependencyGraph` and emits typed,
severity-tagged :class:`~depdoctor.models.conflict.ConflictRecord` objects.

Checks, in order:

========================  ==========  =========================================
Type                      Severity    Trigger
========================  ==========  =========================================
``version_conflict``      error       installed copy outside its parent's range
``peer_dependency``       warning     peer present, but no copy satisfies it
``missing_dependency``    error       non-optional peer not installed at all
``multiple_versions``     info/warn   >1 distinct copy (warning when >2)
``workspace_mismatch``    warning     members declare different range strings
``override_risk``         info        root override directive
``engine_mismatch``       error/warn  runtime fails root / package ``engines``
``deprecated``            warning     installed version marked deprecated
========================  ==========  =========================================

Registry metadata is optional. Without it the peer check relies on the
peers recorded in the installed tree, and the package-level engine and
deprecation checks simply find nothing.

Every check feeds one deduplication step keyed by ``(type, package)``, so a
package appears at most once per type in a pass. No check raises: malformed
versions and ranges are skipped and logged at DEBUG level.

Example::

    classifier = ConflictClassifier(metadata=store_results, runtime_version="16.20.0")
    for record in classifier.classify(graph):
        print(record)
"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

from depdoctor.utils.logger import get_logger
from depdoctor.core.registry import PackageMetadata
from depdoctor.core.normalizer import DependencyGraph
from depdoctor.models.graph import DependencyKind, RequirementEdge, VersionRequirement
from depdoctor.models.conflict import ConflictRecord, ConflictType, Severity
from depdoctor.utils.version_utils import (
    engine_satisfied,
    parse_range,
    parse_version,
    satisfies,
)

logger = get_logger("classifier")

__all__ = ["ConflictClassifier", "deduplicate"]

#: Package name used for records about the runtime itself.
RUNTIME_PACKAGE = "node"

CheckTypes = Optional[Iterable[Union[ConflictType, str]]]


def deduplicate(records: Iterable[ConflictRecord]) -> List[ConflictRecord]:
    """Keep the first record for each ``(type, package)`` pair."""
    seen: Set[Tuple[ConflictType, str]] = set()
    result: List[ConflictRecord] = []
    for record in records:
        if record.key in seen:
            logger.debug("Dropping duplicate %s record for %s", record.type.value, record.package)
            continue
        seen.add(record.key)
        result.append(record)
    return result


class ConflictClassifier:
    """Classify dependency problems in a normalized graph.

    Args:
        metadata: Registry metadata keyed by package name. Missing entries
            mean "unknown".
        runtime_version: Current runtime version; defaults to the graph's.
    """

    def __init__(
        self,
        metadata: Optional[Mapping[str, PackageMetadata]] = None,
        runtime_version: Optional[str] = None,
    ) -> None:
        self.metadata: Mapping[str, PackageMetadata] = metadata or {}
        self.runtime_version = runtime_version

    def classify(
        self,
        graph: DependencyGraph,
        check_types: CheckTypes = None,
    ) -> List[ConflictRecord]:
        """Run every enabled check and return deduplicated records.

        Args:
            graph: Normalized dependency graph.
            check_types: Restrict to these conflict types; all when ``None``.

        Returns:
            Records in check order.
        """
        enabled = _enabled_types(check_types)

        checks: List[Tuple[Set[ConflictType], Callable[[DependencyGraph], List[ConflictRecord]]]] = [
            ({ConflictType.VERSION_CONFLICT}, self._check_version_conflicts),
            (
                {ConflictType.PEER_DEPENDENCY, ConflictType.MISSING_DEPENDENCY},
                self._check_peer_dependencies,
            ),
            ({ConflictType.MULTIPLE_VERSIONS}, self._check_multiple_versions),
            ({ConflictType.WORKSPACE_MISMATCH}, self._check_workspace_mismatch),
            ({ConflictType.OVERRIDE_RISK}, self._check_override_risk),
            ({ConflictType.ENGINE_MISMATCH}, self._check_engines),
            ({ConflictType.DEPRECATED}, self._check_deprecated),
        ]

        records: List[ConflictRecord] = []
        for produces, check in checks:
            if not produces & enabled:
                continue
            found = [r for r in check(graph) if r.type in enabled]
            logger.debug("%s produced %d record(s)", check.__name__.lstrip("_"), len(found))
            records.extend(found)

        return deduplicate(records)

    # ------------------------------------------------------------------
    # version_conflict
    # ------------------------------------------------------------------

    def _check_version_conflicts(self, graph: DependencyGraph) -> List[ConflictRecord]:
        overridden = {o.package for o in graph.overrides}
        invalid: Dict[str, List[RequirementEdge]] = {}

        for edge in graph.edges:
            name = edge.requirement.name
            if name in overridden or edge.resolved_version is None:
                continue
            if parse_range(edge.requirement.range) is None:
                logger.debug("Skipping unparseable range %r for %s", edge.requirement.range, name)
                continue
            if parse_version(edge.resolved_version) is None:
                continue
            if not satisfies(edge.resolved_version, edge.requirement.range):
                invalid.setdefault(name, []).append(edge)

        records = []
        for name, edges in invalid.items():
            first = edges[0]
            records.append(
                ConflictRecord(
                    type=ConflictType.VERSION_CONFLICT,
                    severity=Severity.ERROR,
                    package=name,
                    message=(
                        f"{name}@{first.resolved_version} does not satisfy "
                        f"{first.requirement.range} required by {first.source_label}"
                    ),
                    evidence={
                        "invalid": [
                            {
                                "from": e.source_label,
                                "requirement": e.requirement.range,
                                "installed": e.resolved_version,
                                "location": e.location,
                            }
                            for e in edges
                        ]
                    },
                    affected_locations=tuple(e.location for e in edges),
                    suggested_action=f"Reinstall {name} or align the requiring ranges",
                )
            )
        return records

    # ------------------------------------------------------------------
    # peer_dependency / missing_dependency
    # ------------------------------------------------------------------

    def _peer_edges(self, graph: DependencyGraph) -> List[RequirementEdge]:
        """Peer edges from the tree, plus registry peers for nodes that list none."""
        edges = list(graph.peer_edges)
        for top in graph.nodes:
            for node, _ in top.walk():
                if node.peer_dependencies or node.version is None:
                    continue
                package = self.metadata.get(node.name)
                facts = package.version(node.version) if package else None
                if facts is None:
                    continue
                for peer, spec in facts.peer_dependencies.items():
                    edges.append(
                        RequirementEdge(
                            source=node.name,
                            source_version=node.version,
                            location=node.location,
                            requirement=VersionRequirement(
                                name=peer,
                                range=spec,
                                kind=DependencyKind.PEER,
                                optional=facts.peer_optional.get(peer, False),
                            ),
                        )
                    )
        return edges

    def _check_peer_dependencies(self, graph: DependencyGraph) -> List[ConflictRecord]:
        unmet: Dict[str, List[RequirementEdge]] = {}
        missing: Dict[str, List[RequirementEdge]] = {}

        for edge in self._peer_edges(graph):
            requirement = edge.requirement
            if requirement.optional:
                continue

            installed = graph.versions_of(requirement.name)
            if not installed:
                missing.setdefault(requirement.name, []).append(edge)
                continue

            if parse_range(requirement.range) is None:
                logger.debug(
                    "Skipping unparseable peer range %r on %s",
                    requirement.range,
                    requirement.name,
                )
                continue
            if not any(satisfies(v, requirement.range) for v in installed):
                unmet.setdefault(requirement.name, []).append(edge)

        records: List[ConflictRecord] = []

        for name, edges in unmet.items():
            installed = graph.versions_of(name)
            first = edges[0]
            records.append(
                ConflictRecord(
                    type=ConflictType.PEER_DEPENDENCY,
                    severity=Severity.WARNING,
                    package=name,
                    message=(
                        f"{first.source_label} requires peer {name}@{first.requirement.range}, "
                        f"installed: {', '.join(installed)}"
                    ),
                    evidence={
                        "installed": installed,
                        "requiredBy": _requirers(edges),
                    },
                    affected_locations=tuple(e.location for e in edges),
                    suggested_action=(
                        f"Install a version of {name} that satisfies "
                        f"{first.requirement.range}"
                    ),
                )
            )

        for name, edges in missing.items():
            first = edges[0]
            records.append(
                ConflictRecord(
                    type=ConflictType.MISSING_DEPENDENCY,
                    severity=Severity.ERROR,
                    package=name,
                    message=(
                        f"{first.source_label} requires peer {name}@{first.requirement.range}, "
                        f"but {name} is not installed"
                    ),
                    evidence={"requiredBy": _requirers(edges)},
                    affected_locations=tuple(e.location for e in edges),
                    suggested_action=f"Add {name}@{first.requirement.range} to your dependencies",
                )
            )

        return records

    # ------------------------------------------------------------------
    # multiple_versions
    # ------------------------------------------------------------------

    def _check_multiple_versions(self, graph: DependencyGraph) -> List[ConflictRecord]:
        records = []
        for name, record in graph.records.items():
            if record.multiplicity < 2:
                continue
            versions = list(record.versions)
            records.append(
                ConflictRecord(
                    type=ConflictType.MULTIPLE_VERSIONS,
                    severity=Severity.WARNING if len(versions) > 2 else Severity.INFO,
                    package=name,
                    message=f"{name} is installed at {len(versions)} versions: {', '.join(versions)}",
                    evidence={
                        "versions": [
                            {"version": v, "paths": record.locations_of(v)}
                            for v in versions
                        ]
                    },
                    affected_locations=tuple(o.location for o in record.occurrences),
                    suggested_action=(
                        f"Unify {name} with an override or by upgrading its dependents"
                    ),
                )
            )
        return records

    # ------------------------------------------------------------------
    # workspace_mismatch
    # ------------------------------------------------------------------

    def _check_workspace_mismatch(self, graph: DependencyGraph) -> List[ConflictRecord]:
        by_package: Dict[str, Dict[str, List[str]]] = {}
        for member in graph.workspaces:
            for name, spec in member.requirements.items():
                by_package.setdefault(name, {}).setdefault(spec, []).append(member.name)

        records = []
        for name, by_spec in by_package.items():
            if len(by_spec) < 2:
                continue
            pairs = [
                {"workspace": member, "requirement": spec}
                for spec, members in by_spec.items()
                for member in members
            ]
            records.append(
                ConflictRecord(
                    type=ConflictType.WORKSPACE_MISMATCH,
                    severity=Severity.WARNING,
                    package=name,
                    message=(
                        f"{name} is declared with {len(by_spec)} different ranges "
                        f"across workspaces: {', '.join(by_spec)}"
                    ),
                    evidence={"members": pairs},
                    affected_locations=tuple(p["workspace"] for p in pairs),
                    suggested_action=f"Use one range for {name} in every workspace",
                )
            )
        return records

    # ------------------------------------------------------------------
    # override_risk
    # ------------------------------------------------------------------

    def _check_override_risk(self, graph: DependencyGraph) -> List[ConflictRecord]:
        records = []
        for directive in graph.overrides:
            name = directive.package
            ancestors = directive.ancestors
            scoped_to = ancestors[-1] if ancestors else None

            original = [
                e
                for e in graph.requirements_on(name)
                if scoped_to is None or e.source == scoped_to
            ]

            forced = directive.forced_version
            concrete = parse_version(forced) is not None
            breaking = not concrete or any(
                not satisfies(forced, e.requirement.range) for e in original
            )

            records.append(
                ConflictRecord(
                    type=ConflictType.OVERRIDE_RISK,
                    severity=Severity.INFO,
                    package=name,
                    message=f"{name} is forced to {forced} by override '{directive.path}'",
                    evidence={
                        "path": directive.path,
                        "forcedVersion": forced,
                        "originalRequirements": _requirers(original),
                        "potentialBreaking": breaking,
                    },
                    affected_locations=(directive.path,),
                    suggested_action=f"Check periodically whether the {name} override is still needed",
                )
            )
        return records

    # ------------------------------------------------------------------
    # engine_mismatch
    # ------------------------------------------------------------------

    def _check_engines(self, graph: DependencyGraph) -> List[ConflictRecord]:
        runtime = self.runtime_version or graph.runtime_version
        if not runtime:
            logger.debug("No runtime version known, skipping engine checks")
            return []

        records = []
        required = graph.engines.get(RUNTIME_PACKAGE)
        if required and not engine_satisfied(runtime, required):
            records.append(
                ConflictRecord(
                    type=ConflictType.ENGINE_MISMATCH,
                    severity=Severity.ERROR,
                    package=RUNTIME_PACKAGE,
                    message=f"Node.js {runtime} does not satisfy the required {required}",
                    evidence={
                        "field": RUNTIME_PACKAGE,
                        "required": required,
                        "current": runtime,
                    },
                    suggested_action=f"Upgrade Node.js to a version matching {required}",
                )
            )

        for name, record in graph.records.items():
            package = self.metadata.get(name)
            if package is None:
                continue
            failing: List[Dict[str, Any]] = []
            for version in record.versions:
                facts = package.version(version)
                needed = facts.engines.get(RUNTIME_PACKAGE) if facts else None
                if needed and not engine_satisfied(runtime, needed):
                    failing.append({"version": version, "required": needed})
            if not failing:
                continue
            records.append(
                ConflictRecord(
                    type=ConflictType.ENGINE_MISMATCH,
                    severity=Severity.WARNING,
                    package=name,
                    message=(
                        f"{name}@{failing[0]['version']} requires Node.js "
                        f"{failing[0]['required']}, running {runtime}"
                    ),
                    evidence={"current": runtime, "versions": failing},
                    affected_locations=tuple(
                        loc for f in failing for loc in record.locations_of(f["version"])
                    ),
                    suggested_action=f"Upgrade Node.js or pick a version of {name} that supports it",
                )
            )

        return records

    # ------------------------------------------------------------------
    # deprecated
    # ------------------------------------------------------------------

    def _check_deprecated(self, graph: DependencyGraph) -> List[ConflictRecord]:
        records = []
        for name, record in graph.records.items():
            package = self.metadata.get(name)
            if package is None:
                continue
            notices = []
            for version in record.versions:
                facts = package.version(version)
                if facts is not None and facts.deprecated:
                    notices.append({"version": version, "reason": facts.deprecated})
            if not notices:
                continue
            records.append(
                ConflictRecord(
                    type=ConflictType.DEPRECATED,
                    severity=Severity.WARNING,
                    package=name,
                    message=f"{name}@{notices[0]['version']} is deprecated: {notices[0]['reason']}",
                    evidence={"deprecated": notices, "latest": package.latest_version},
                    affected_locations=tuple(
                        loc for n in notices for loc in record.locations_of(n["version"])
                    ),
                    suggested_action=f"Move {name} to a maintained release",
                )
            )
        return records


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _enabled_types(check_types: CheckTypes) -> Set[ConflictType]:
    if check_types is None:
        return set(ConflictType)
    enabled = set()
    for item in check_types:
        enabled.add(item if isinstance(item, ConflictType) else ConflictType(item))
    return enabled


def _requirers(edges: Iterable[RequirementEdge]) -> List[Dict[str, str]]:
    return [{"from": e.source_label, "requirement": e.requirement.range} for e in edges]
