"""Graph normalization for depdoctor.

Turns a raw :class:`~depdoctor.models.project.ProjectSnapshot` into one
canonical :class:`DependencyGraph`:

* a flat ``name → FlatDependencyRecord`` map of every installed copy,
  distinct versions kept in discovery order;
* every declared requirement edge (parent → child, and peer ranges);
* the root's direct dependencies and the per-workspace requirement view;
* the root's override directives, normalized from whichever of the three
  on-disk shapes (``overrides``, ``pnpm.overrides``, ``resolutions``) the
  manifest carries.

The walk is a plain pre-order traversal of the installed tree. Installed
trees are acyclic, so no cycle detection is needed.

Typical usage::

    snapshot = ProjectSnapshot.from_dict(json.loads(text))
    graph = GraphNormalizer().normalize(snapshot)
    graph.versions_of("lodash")      # ['4.17.21', '4.17.15']
    graph.trace("lodash").estimated_impact
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from depdoctor.utils.logger import get_logger
from depdoctor.constants import OVERRIDE_PATH_SEPARATOR
from depdoctor.models.project import (
    PackageManager,
    ProjectSnapshot,
    RootManifest,
    WorkspaceMember,
)
from depdoctor.models.graph import (
    DependencyKind,
    DependencyNode,
    DependencyStats,
    FlatDependencyRecord,
    OverrideDirective,
    RequirementEdge,
    ResolvedVersion,
    VersionRequirement,
)
from depdoctor.models.trace import (
    ChainLink,
    DependencyPath,
    DependencyTrace,
    InstalledCopy,
)

logger = get_logger("normalizer")

__all__ = ["DependencyGraph", "GraphNormalizer", "normalize_overrides"]


# ---------------------------------------------------------------------------
# Canonical graph
# ---------------------------------------------------------------------------


@dataclass
class DependencyGraph:
    """Canonical, package-manager-neutral view of one project.

    Attributes:
        root_name: Root project name.
        root_version: Root project version.
        package_manager: Package manager in use.
        nodes: Top-level nodes of the installed tree.
        records: Installed copies per package, in discovery order.
        edges: Parent → child requirement edges (root edges have
            ``source=None``).
        peer_edges: Peer requirements declared by installed packages.
        direct_dependencies: Root ``dependencies`` and ``devDependencies``.
        workspaces: Monorepo members.
        overrides: Root override directives.
        engines: Root ``engines`` section.
        runtime_version: Current runtime version, if known.
        stats: Tree size figures.
    """

    root_name: str = ""
    root_version: str = ""
    package_manager: PackageManager = PackageManager.NPM
    nodes: List[DependencyNode] = field(default_factory=list)
    records: Dict[str, FlatDependencyRecord] = field(default_factory=dict)
    edges: List[RequirementEdge] = field(default_factory=list)
    peer_edges: List[RequirementEdge] = field(default_factory=list)
    direct_dependencies: Dict[str, VersionRequirement] = field(default_factory=dict)
    workspaces: List[WorkspaceMember] = field(default_factory=list)
    overrides: List[OverrideDirective] = field(default_factory=list)
    engines: Dict[str, str] = field(default_factory=dict)
    runtime_version: Optional[str] = None
    stats: DependencyStats = field(default_factory=DependencyStats)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def versions_of(self, name: str) -> List[str]:
        """Distinct installed versions of *name* (empty if not installed)."""
        record = self.records.get(name)
        return list(record.versions) if record else []

    def is_installed(self, name: str) -> bool:
        return name in self.records

    def is_direct(self, name: str) -> bool:
        """True if the root manifest declares *name* (prod or dev)."""
        return name in self.direct_dependencies

    def member_requirements(self) -> Dict[str, Dict[str, str]]:
        """Per-workspace requirement view: ``member → {package: range}``."""
        return {m.name: dict(m.requirements) for m in self.workspaces}

    def members_declaring(self, name: str) -> List[WorkspaceMember]:
        return [m for m in self.workspaces if name in m.requirements]

    def requirements_on(self, name: str) -> List[RequirementEdge]:
        """Every declared requirement targeting *name* (tree edges, then peers)."""
        matching = [e for e in self.edges if e.requirement.name == name]
        matching.extend(e for e in self.peer_edges if e.requirement.name == name)
        return matching

    @property
    def duplicated(self) -> List[FlatDependencyRecord]:
        """Records installed at more than one version, in discovery order."""
        return [r for r in self.records.values() if r.multiplicity > 1]

    @property
    def has_signal(self) -> bool:
        """False when there is nothing at all to analyse."""
        return bool(
            self.records
            or self.direct_dependencies
            or self.workspaces
            or self.overrides
            or self.engines
        )

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def trace(self, name: str) -> DependencyTrace:
        """Explain where *name* is installed and how far a change would reach.

        Impact is ``high`` with more than two installed versions or more
        than five direct dependents, ``medium`` with more than one version
        or more than two dependents, and ``low`` otherwise.
        """
        result = DependencyTrace(package=name, is_direct_dependency=self.is_direct(name))

        record = self.records.get(name)
        if record is not None:
            for version in record.versions:
                result.installed_versions.append(
                    InstalledCopy(
                        version=version,
                        locations=record.locations_of(version),
                        used_by=record.requesters_of(version),
                    )
                )

        for top in self.nodes:
            for node, ancestors in top.walk():
                if node.name != name:
                    continue
                chain = [
                    ChainLink(a.name, a.version, a.requirement)
                    for a in ancestors
                ]
                chain.append(ChainLink(node.name, node.version, node.requirement))
                result.paths.append(
                    DependencyPath(
                        chain=chain,
                        is_direct_dependency=not ancestors,
                        dependency_type=node.kind.value,
                    )
                )
                if ancestors and ancestors[-1].name not in result.direct_dependents:
                    result.direct_dependents.append(ancestors[-1].name)

        result.affected_workspaces = [m.name for m in self.members_declaring(name)]

        version_count = len(result.installed_versions)
        dependents = len(result.direct_dependents)
        if version_count > 2 or dependents > 5:
            result.estimated_impact = "high"
        elif version_count > 1 or dependents > 2:
            result.estimated_impact = "medium"

        result.recommendation = _trace_advice(result)
        return result

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_json(self) -> Dict[str, Any]:
        """Return the analysis view: root, stats, flat list and workspaces."""
        member_requirements = self.member_requirements()
        return {
            "root": {"name": self.root_name, "version": self.root_version},
            "packageManager": self.package_manager.value,
            "stats": self.stats.to_json(),
            "flatList": [r.to_json() for r in self.records.values()],
            "directDependencies": [
                r.to_json() for r in self.direct_dependencies.values()
            ],
            "workspacePackages": [
                {
                    "name": m.name,
                    "version": m.version,
                    "relativePath": m.relative_path,
                    "requirements": member_requirements.get(m.name, {}),
                }
                for m in self.workspaces
            ],
            "overrides": [o.to_json() for o in self.overrides],
        }


def _trace_advice(trace: DependencyTrace) -> List[str]:
    lines: List[str] = []

    if not trace.found:
        lines.append(f"{trace.package} is not installed")
        return lines

    if len(trace.installed_versions) > 1:
        versions = ", ".join(c.version for c in trace.installed_versions)
        lines.append(
            f"{trace.package} is installed at {len(trace.installed_versions)} "
            f"versions ({versions}); consider unifying them with an override"
        )

    if trace.is_direct_dependency:
        lines.append(
            f"{trace.package} is a direct dependency; adjust its range in package.json"
        )
    elif trace.direct_dependents:
        shown = ", ".join(trace.direct_dependents[:3])
        extra = len(trace.direct_dependents) - 3
        suffix = f" and {extra} more" if extra > 0 else ""
        lines.append(f"{trace.package} is a transitive dependency of {shown}{suffix}")

    if trace.estimated_impact == "high":
        lines.append("Changes to this package have a wide reach; test thoroughly")

    return lines


# ---------------------------------------------------------------------------
# Override normalization
# ---------------------------------------------------------------------------


def _flatten_nested(
    overrides: Mapping[str, Any],
    result: Dict[str, str],
    prefix: str = "",
) -> None:
    """Flatten npm-style nested overrides into ``>``-joined keys.

    A ``"."`` key inside a nested map overrides the parent package itself.
    """
    for key, value in overrides.items():
        if key == ".":
            full_key = prefix
        else:
            full_key = f"{prefix}{OVERRIDE_PATH_SEPARATOR}{key}" if prefix else key

        if isinstance(value, str):
            if full_key:
                result.setdefault(full_key, value)
        elif isinstance(value, Mapping):
            _flatten_nested(value, result, full_key)
        else:
            logger.debug("Skipping override %r with unsupported value %r", key, value)


def _yarn_path_key(key: str) -> str:
    """Turn a yarn resolution glob (``a/**/@s/b``) into a ``>``-joined path."""
    segments: List[str] = []
    pending_scope: Optional[str] = None
    for part in key.split("/"):
        if not part or part == "**":
            continue
        if pending_scope is not None:
            segments.append(f"{pending_scope}/{part}")
            pending_scope = None
        elif part.startswith("@"):
            pending_scope = part
        else:
            segments.append(part)
    if pending_scope is not None:
        segments.append(pending_scope)
    return OVERRIDE_PATH_SEPARATOR.join(segments)


def _resolve_reference(value: str, manifest: RootManifest) -> str:
    """Resolve npm's ``"$name"`` shorthand to the root's own range for *name*."""
    if not value.startswith("$"):
        return value
    referenced = manifest.requirement_for(value[1:])
    return referenced or value


def normalize_overrides(
    manifest: RootManifest,
    package_manager: PackageManager = PackageManager.NPM,
) -> Dict[str, str]:
    """Flatten every override shape in *manifest* to ``path → forced version``.

    All three shapes are accepted whatever the package manager; on a key
    collision the package manager's own field wins.

    Examples::

        >>> m = RootManifest(overrides={"react": {"classnames": "2.3.0"}})
        >>> normalize_overrides(m)
        {'react>classnames': '2.3.0'}
        >>> m = RootManifest(resolutions={"**/lodash": "4.17.21"})
        >>> normalize_overrides(m, PackageManager.YARN)
        {'lodash': '4.17.21'}
    """
    npm_shape: Dict[str, str] = {}
    _flatten_nested(manifest.overrides, npm_shape)

    pnpm_shape: Dict[str, str] = {}
    _flatten_nested(manifest.pnpm_overrides, pnpm_shape)

    yarn_shape: Dict[str, str] = {}
    for key, value in manifest.resolutions.items():
        if isinstance(value, str):
            path = _yarn_path_key(key)
            if path:
                yarn_shape.setdefault(path, value)

    shapes = {
        PackageManager.NPM: npm_shape,
        PackageManager.PNPM: pnpm_shape,
        PackageManager.YARN: yarn_shape,
    }
    ordered = [shapes[package_manager]] + [
        shape for manager, shape in shapes.items() if manager is not package_manager
    ]

    result: Dict[str, str] = {}
    for shape in ordered:
        for path, version in shape.items():
            result.setdefault(path, _resolve_reference(version, manifest))
    return result


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class GraphNormalizer:
    """Build a :class:`DependencyGraph` from a :class:`ProjectSnapshot`."""

    def normalize(self, snapshot: ProjectSnapshot) -> DependencyGraph:
        manifest = snapshot.manifest

        graph = DependencyGraph(
            root_name=manifest.name,
            root_version=manifest.version,
            package_manager=snapshot.package_manager,
            nodes=list(snapshot.tree),
            workspaces=list(snapshot.workspaces),
            engines=dict(manifest.engines),
            runtime_version=snapshot.runtime_version,
        )

        # Production entries win over dev entries for the same name
        for name in {**manifest.dev_dependencies, **manifest.dependencies}:
            dev = manifest.is_dev_dependency(name)
            graph.direct_dependencies[name] = VersionRequirement(
                name,
                manifest.dev_dependencies[name] if dev else manifest.dependencies[name],
                DependencyKind.DEV if dev else DependencyKind.PROD,
            )

        for top in snapshot.tree:
            self._walk(top, manifest, graph)

        root_label = manifest.name or None
        for peer, spec in manifest.peer_dependencies.items():
            graph.peer_edges.append(
                RequirementEdge(
                    source=root_label,
                    source_version=manifest.version or None,
                    location=".",
                    requirement=VersionRequirement(peer, spec, DependencyKind.PEER),
                )
            )

        graph.overrides = [
            OverrideDirective(path=path, forced_version=version)
            for path, version in normalize_overrides(
                manifest, snapshot.package_manager
            ).items()
        ]

        stats = graph.stats
        stats.unique_packages = len(graph.records)
        stats.total_packages = sum(
            len(r.occurrences) for r in graph.records.values()
        )
        stats.duplicate_packages = len(graph.duplicated)

        logger.debug(
            "Normalized graph: %d packages (%d duplicated), %d edges, "
            "%d peer edges, %d overrides, %d workspace members",
            stats.unique_packages,
            stats.duplicate_packages,
            len(graph.edges),
            len(graph.peer_edges),
            len(graph.overrides),
            len(graph.workspaces),
        )
        return graph

    def _walk(
        self,
        top: DependencyNode,
        manifest: RootManifest,
        graph: DependencyGraph,
    ) -> None:
        stats = graph.stats

        for node, ancestors in top.walk():
            stats.max_depth = max(stats.max_depth, len(ancestors))

            if node.version is None:
                logger.debug("Skipping %s at %s: no installed version", node.name, node.location)
                continue

            parent = ancestors[-1] if ancestors else None
            requirement = node.requirement
            if parent is None and requirement is None:
                requirement = manifest.requirement_for(node.name)

            graph.records.setdefault(node.name, FlatDependencyRecord(node.name)).add(
                ResolvedVersion(
                    name=node.name,
                    version=node.version,
                    location=node.location,
                    requested_by=parent.name if parent else None,
                    requirement=requirement,
                )
            )

            if node.kind is DependencyKind.DEV:
                stats.dev_dependencies += 1
            else:
                stats.prod_dependencies += 1

            if requirement:
                graph.edges.append(
                    RequirementEdge(
                        source=parent.name if parent else None,
                        source_version=parent.version if parent else None,
                        location=node.location,
                        requirement=VersionRequirement(node.name, requirement, node.kind),
                        resolved_version=node.version,
                    )
                )

            for peer in node.peer_requirements():
                graph.peer_edges.append(
                    RequirementEdge(
                        source=node.name,
                        source_version=node.version,
                        location=node.location,
                        requirement=peer,
                    )
                )
