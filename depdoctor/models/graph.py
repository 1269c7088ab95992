"""
Dependency graph data models for depdoctor.

This module defines the canonical, package-manager-neutral view of an
installed dependency graph: requirement edges, installed tree nodes, the
flat ``name → versions`` record used for duplicate detection, and root
override directives.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from depdoctor.constants import INSTALL_DIR, OVERRIDE_PATH_SEPARATOR


class DependencyKind(Enum):
    """Which manifest section a requirement comes from."""

    PROD = "prod"
    DEV = "dev"
    PEER = "peer"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class VersionRequirement:
    """A version range declared for one package.

    Attributes:
        name: Package the range applies to.
        range: Raw npm range expression, e.g. ``"^4.17.0"``.
        kind: Manifest section the requirement was declared in.
        optional: Peer requirement marked optional in ``peerDependenciesMeta``.
    """

    name: str
    range: str
    kind: DependencyKind = DependencyKind.PROD
    optional: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "range": self.range,
            "kind": self.kind.value,
            "optional": self.optional,
        }


@dataclass(frozen=True)
class ResolvedVersion:
    """A concrete version materialized at one location of the installed tree.

    Attributes:
        name: Package name.
        version: Installed version string.
        location: Install path, e.g. ``node_modules/a/node_modules/b``.
        requested_by: Name of the parent package, or ``None`` at top level.
        requirement: Range the parent declared for this package, if known.
    """

    name: str
    version: str
    location: str
    requested_by: Optional[str] = None
    requirement: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "location": self.location,
            "requestedBy": self.requested_by,
            "requirement": self.requirement,
        }


@dataclass
class DependencyNode:
    """One node of the installed dependency tree.

    Attributes:
        name: Package name.
        version: Installed version, or ``None`` when the listing omitted it.
        location: Install path of this copy.
        requirement: Range declared by the parent for this package.
        kind: Dependency kind of the edge leading to this node.
        children: Installed dependencies of this copy.
        peer_dependencies: Peer ranges this package declares.
        peer_dependencies_meta: Peer name → ``True`` when optional.
    """

    name: str
    version: Optional[str]
    location: str
    requirement: Optional[str] = None
    kind: DependencyKind = DependencyKind.PROD
    children: List["DependencyNode"] = field(default_factory=list)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies_meta: Dict[str, bool] = field(default_factory=dict)

    def peer_requirements(self) -> List[VersionRequirement]:
        """Return this node's peer ranges as :class:`VersionRequirement` objects."""
        return [
            VersionRequirement(
                name=peer,
                range=spec,
                kind=DependencyKind.PEER,
                optional=self.peer_dependencies_meta.get(peer, False),
            )
            for peer, spec in self.peer_dependencies.items()
        ]

    def walk(
        self,
        ancestors: Tuple["DependencyNode", ...] = (),
    ) -> Iterator[Tuple["DependencyNode", Tuple["DependencyNode", ...]]]:
        """Yield ``(node, ancestors)`` pairs in pre-order, starting at self."""
        yield self, ancestors
        for child in self.children:
            yield from child.walk(ancestors + (self,))


def child_location(parent_location: Optional[str], name: str) -> str:
    """Return the npm-style install path of *name* below *parent_location*."""
    if not parent_location:
        return f"{INSTALL_DIR}/{name}"
    return f"{parent_location}/{INSTALL_DIR}/{name}"


@dataclass
class FlatDependencyRecord:
    """Every installed copy of one package, flattened across the tree.

    ``versions`` keeps distinct versions in discovery order; its length
    (the multiplicity) is always at least one for a tracked package.
    """

    name: str
    versions: List[str] = field(default_factory=list)
    occurrences: List[ResolvedVersion] = field(default_factory=list)

    def add(self, occurrence: ResolvedVersion) -> None:
        """Record one installed copy."""
        if occurrence.version not in self.versions:
            self.versions.append(occurrence.version)
        self.occurrences.append(occurrence)

    @property
    def multiplicity(self) -> int:
        return len(self.versions)

    def locations_of(self, version: str) -> List[str]:
        """Return install paths of every copy at *version*."""
        return [o.location for o in self.occurrences if o.version == version]

    def requesters_of(self, version: str) -> List[str]:
        """Return names of the packages that pulled in *version*."""
        result: List[str] = []
        for occurrence in self.occurrences:
            if occurrence.version != version:
                continue
            requester = occurrence.requested_by or "(root)"
            if requester not in result:
                result.append(requester)
        return result

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "versions": list(self.versions),
            "locations": [o.location for o in self.occurrences],
            "requestedBy": [
                {
                    "name": o.requested_by,
                    "version": o.version,
                    "requirement": o.requirement,
                }
                for o in self.occurrences
                if o.requested_by
            ],
        }


@dataclass(frozen=True)
class RequirementEdge:
    """A declared requirement from one installed package on another.

    Attributes:
        source: Package declaring the requirement (``None`` for the root).
        source_version: Installed version of the source package.
        location: Install path of the source (or of the target for tree edges).
        requirement: The declared range.
        resolved_version: Version installed to satisfy this edge, when the
            edge is a parent → child tree edge; ``None`` for peer edges.
    """

    source: Optional[str]
    source_version: Optional[str]
    location: str
    requirement: VersionRequirement
    resolved_version: Optional[str] = None

    @property
    def source_label(self) -> str:
        if self.source is None:
            return "(root)"
        if self.source_version:
            return f"{self.source}@{self.source_version}"
        return self.source


@dataclass(frozen=True)
class OverrideDirective:
    """A forced version declared by the root manifest.

    Attributes:
        path: Override key; nested ancestor chains are ``>``-joined
            (``"react>classnames"``).
        forced_version: Version (or range) every consumer is forced to.
    """

    path: str
    forced_version: str

    @property
    def package(self) -> str:
        """Name of the package being forced (last path segment, spec stripped)."""
        last = self.path.split(OVERRIDE_PATH_SEPARATOR)[-1].strip()
        return strip_version_suffix(last)

    @property
    def ancestors(self) -> List[str]:
        """Packages the override is scoped below, outermost first."""
        parts = self.path.split(OVERRIDE_PATH_SEPARATOR)[:-1]
        return [strip_version_suffix(p.strip()) for p in parts]

    def to_json(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "package": self.package,
            "forcedVersion": self.forced_version,
        }


def strip_version_suffix(key: str) -> str:
    """Drop an ``@range`` suffix from a package key, keeping scoped names.

    Examples:
        >>> strip_version_suffix("lodash@^4")
        'lodash'
        >>> strip_version_suffix("@babel/core@7")
        '@babel/core'
    """
    start = 1 if key.startswith("@") else 0
    at = key.find("@", start)
    return key[:at] if at > 0 else key


@dataclass
class DependencyStats:
    """Size figures for an installed tree."""

    total_packages: int = 0
    unique_packages: int = 0
    duplicate_packages: int = 0
    max_depth: int = 0
    prod_dependencies: int = 0
    dev_dependencies: int = 0

    def to_json(self) -> Dict[str, int]:
        return {
            "totalPackages": self.total_packages,
            "uniquePackages": self.unique_packages,
            "duplicatePackages": self.duplicate_packages,
            "maxDepth": self.max_depth,
            "prodDependencies": self.prod_dependencies,
            "devDependencies": self.dev_dependencies,
        }
