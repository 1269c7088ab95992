"""
Unified data model exports for depdoctor.

This module re-exports the core data models so callers can import them
directly from ``depdoctor.models`` instead of individual submodules.

Example:
    >>> from depdoctor.models import ProjectSnapshot, ConflictRecord
"""

from __future__ import annotations

from depdoctor.models.trace import DependencyPath, DependencyTrace, InstalledCopy
from depdoctor.models.project import (
    PackageManager,
    ProjectSnapshot,
    RootManifest,
    WorkspaceMember,
)
from depdoctor.models.graph import (
    DependencyKind,
    DependencyNode,
    FlatDependencyRecord,
    OverrideDirective,
    RequirementEdge,
    ResolvedVersion,
    VersionRequirement,
)
from depdoctor.models.conflict import (
    ConflictRecord,
    ConflictType,
    DetectionReport,
    DetectionSummary,
    Severity,
)
from depdoctor.models.solution import (
    CandidateKind,
    Comparison,
    ConflictResolution,
    EffortLevel,
    RiskLevel,
    SolutionAction,
    SolutionCandidate,
    SolutionReport,
    SolutionStep,
)

__all__ = [
    # Project
    "PackageManager",
    "ProjectSnapshot",
    "RootManifest",
    "WorkspaceMember",
    # Graph
    "DependencyKind",
    "DependencyNode",
    "FlatDependencyRecord",
    "OverrideDirective",
    "RequirementEdge",
    "ResolvedVersion",
    "VersionRequirement",
    # Conflicts
    "ConflictRecord",
    "ConflictType",
    "DetectionReport",
    "DetectionSummary",
    "Severity",
    # Solutions
    "CandidateKind",
    "Comparison",
    "ConflictResolution",
    "EffortLevel",
    "RiskLevel",
    "SolutionAction",
    "SolutionCandidate",
    "SolutionReport",
    "SolutionStep",
    # Tracing
    "DependencyPath",
    "DependencyTrace",
    "InstalledCopy",
]
