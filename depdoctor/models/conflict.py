"""
Conflict data models for depdoctor.

A :class:`ConflictRecord` is one typed, severity-tagged finding about one
package. Records are created once per classification pass and never
modified; the classifier guarantees at most one record per
``(type, package)`` pair.
"""

from __future__ import annotations

import copy
import uuid
from enum import Enum
from types import MappingProxyType
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from depdoctor.models.solution import ConflictResolution


def new_id() -> str:
    """Return a short random identifier for records and candidates."""
    return uuid.uuid4().hex[:8]


class ConflictType(Enum):
    """Kinds of dependency problems the classifier can report."""

    VERSION_CONFLICT = "version_conflict"
    PEER_DEPENDENCY = "peer_dependency"
    MULTIPLE_VERSIONS = "multiple_versions"
    WORKSPACE_MISMATCH = "workspace_mismatch"
    OVERRIDE_RISK = "override_risk"
    ENGINE_MISMATCH = "engine_mismatch"
    DEPRECATED = "deprecated"
    MISSING_DEPENDENCY = "missing_dependency"


class Severity(Enum):
    """How urgently a conflict needs attention."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """0 for errors, 2 for infos; lower sorts first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


@dataclass(frozen=True)
class ConflictRecord:
    """One finding about one package.

    Equality and hashing ignore ``id`` so that two passes over the same
    snapshot compare equal record by record, and as sets. ``evidence`` is
    stored as a read-only copy and left out of the hash.

    Attributes:
        type: Conflict type.
        severity: Severity level.
        package: Affected package name.
        message: One-line human-readable description.
        evidence: Type-specific structured facts backing the finding.
        affected_locations: Install paths, workspace members or manifest
            keys the finding concerns.
        suggested_action: Short remediation hint.
        id: Random identifier, unique within a pass.
    """

    type: ConflictType
    severity: Severity
    package: str
    message: str
    evidence: Mapping[str, Any] = field(default_factory=dict, hash=False)
    affected_locations: Tuple[str, ...] = ()
    suggested_action: str = ""
    id: str = field(default_factory=new_id, compare=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(copy.deepcopy(dict(self.evidence)))
        object.__setattr__(self, "evidence", frozen)
        object.__setattr__(self, "affected_locations", tuple(self.affected_locations))

    @property
    def key(self) -> Tuple[ConflictType, str]:
        """Deduplication key."""
        return self.type, self.package

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "package": self.package,
            "message": self.message,
            "evidence": copy.deepcopy(dict(self.evidence)),
            "affectedLocations": list(self.affected_locations),
            "suggestedAction": self.suggested_action,
        }

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.type.value}: {self.message}"


@dataclass
class DetectionSummary:
    """Counts of records by severity and type."""

    total: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: List[ConflictRecord]) -> "DetectionSummary":
        summary = cls(total=len(records))
        for record in records:
            if record.severity is Severity.ERROR:
                summary.errors += 1
            elif record.severity is Severity.WARNING:
                summary.warnings += 1
            else:
                summary.infos += 1
            key = record.type.value
            summary.by_type[key] = summary.by_type.get(key, 0) + 1
        return summary

    def to_json(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "errors": self.errors,
            "warnings": self.warnings,
            "infos": self.infos,
            "byType": dict(self.by_type),
        }


@dataclass
class DetectionReport:
    """Result of one conflict detection request.

    Attributes:
        issues: Records that passed the severity filter, most severe first.
        summary: Counts over ``issues``.
        warnings: Explanations when little or no signal could be extracted.
        analysis_timestamp: UTC time the report was produced.
        resolutions: Ranked candidates per issue, or ``None`` when they
            were not requested.
    """

    issues: List[ConflictRecord] = field(default_factory=list)
    summary: DetectionSummary = field(default_factory=DetectionSummary)
    warnings: List[str] = field(default_factory=list)
    analysis_timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    resolutions: Optional[List["ConflictResolution"]] = None

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    @property
    def has_errors(self) -> bool:
        return self.summary.errors > 0

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "hasIssues": self.has_issues,
            "summary": self.summary.to_json(),
            "issues": [r.to_json() for r in self.issues],
            "warnings": list(self.warnings),
            "analysisTimestamp": self.analysis_timestamp.isoformat(),
        }
        if self.resolutions is not None:
            data["resolutions"] = [r.to_json() for r in self.resolutions]
        return data


def filter_by_severity(
    records: List[ConflictRecord],
    severity: Optional[str],
) -> List[ConflictRecord]:
    """Apply a report severity filter (``all``, ``error`` or ``warning``).

    ``warning`` keeps warnings and errors; ``error`` keeps errors only.
    """
    if severity == "error":
        return [r for r in records if r.severity is Severity.ERROR]
    if severity == "warning":
        return [r for r in records if r.severity is not Severity.INFO]
    return list(records)
