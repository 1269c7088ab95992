"""
Dependency trace models for depdoctor.

A :class:`DependencyTrace` answers "why is this package installed, where,
and how far would a change to it reach?" for a single package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ChainLink:
    package: str
    version: Optional[str]
    requirement: Optional[str]

    def to_json(self) -> Dict[str, Any]:
        return {
            "package": self.package,
            "version": self.version,
            "requirement": self.requirement,
        }


@dataclass
class DependencyPath:
    """One ancestor chain from a top-level dependency down to the package.

    Attributes:
        chain: Links from the outermost ancestor to the package itself.
        is_direct_dependency: The package sits at the top of the tree.
        dependency_type: Kind of the edge leading to the package.
    """

    chain: List[ChainLink] = field(default_factory=list)
    is_direct_dependency: bool = False
    dependency_type: str = "prod"

    @property
    def depth(self) -> int:
        return len(self.chain)

    def to_json(self) -> Dict[str, Any]:
        return {
            "chain": [link.to_json() for link in self.chain],
            "depth": self.depth,
            "isDirectDependency": self.is_direct_dependency,
            "dependencyType": self.dependency_type,
        }


@dataclass
class InstalledCopy:
    version: str
    locations: List[str] = field(default_factory=list)
    used_by: List[str] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "locations": list(self.locations),
            "usedBy": list(self.used_by),
        }


@dataclass
class DependencyTrace:
    """Everything known about where one package is installed and why.

    Attributes:
        package: Package name.
        is_direct_dependency: The root manifest declares the package.
        installed_versions: Distinct installed versions with locations.
        paths: Every ancestor chain leading to an installed copy.
        direct_dependents: Packages that directly require it.
        affected_workspaces: Workspace members declaring it.
        estimated_impact: ``low``, ``medium`` or ``high``.
        recommendation: Human-readable advice lines.
    """

    package: str
    is_direct_dependency: bool = False
    installed_versions: List[InstalledCopy] = field(default_factory=list)
    paths: List[DependencyPath] = field(default_factory=list)
    direct_dependents: List[str] = field(default_factory=list)
    affected_workspaces: List[str] = field(default_factory=list)
    estimated_impact: str = "low"
    recommendation: List[str] = field(default_factory=list)

    @property
    def transitive_depth(self) -> int:
        return max((p.depth for p in self.paths), default=0)

    @property
    def found(self) -> bool:
        return bool(self.installed_versions)

    def to_json(self) -> Dict[str, Any]:
        return {
            "package": self.package,
            "isDirectDependency": self.is_direct_dependency,
            "installedVersions": [c.to_json() for c in self.installed_versions],
            "allPaths": [p.to_json() for p in self.paths],
            "impactAnalysis": {
                "directDependents": list(self.direct_dependents),
                "transitiveDepth": self.transitive_depth,
                "affectedWorkspaces": list(self.affected_workspaces),
                "estimatedImpact": self.estimated_impact,
            },
            "recommendation": list(self.recommendation),
        }
