"""
Remediation data models for depdoctor.

A :class:`SolutionCandidate` is one proposed way to fix a problem, made of
atomic :class:`SolutionStep` objects and annotated with risk, effort and a
recommendation score. :class:`Comparison` summarizes a set of candidates
competing for the same decision.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from depdoctor.models.conflict import new_id


class SolutionAction(Enum):
    """Kind of change a step makes."""

    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    ADD = "add"
    REMOVE = "remove"
    OVERRIDE = "override"
    DEDUPE = "dedupe"
    REGENERATE_LOCK = "regenerate_lock"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def ordinal(self) -> int:
        return _RISK_ORDINALS[self]


class EffortLevel(Enum):
    TRIVIAL = "trivial"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"

    @property
    def ordinal(self) -> int:
        return _EFFORT_ORDINALS[self]


_RISK_ORDINALS = {RiskLevel.LOW: 1, RiskLevel.MEDIUM: 2, RiskLevel.HIGH: 3}
_EFFORT_ORDINALS = {
    EffortLevel.TRIVIAL: 1,
    EffortLevel.MINOR: 2,
    EffortLevel.MODERATE: 3,
    EffortLevel.MAJOR: 4,
}


class CandidateKind(Enum):
    """Which remediation template produced a candidate."""

    UPGRADE_LATEST = "upgrade_latest"
    UPGRADE_TARGET = "upgrade_target"
    FORCE_PIN = "force_pin"
    WORKSPACE_UNIFY = "workspace_unify"
    DEDUPE = "dedupe"
    REGENERATE_LOCK = "regenerate_lock"
    UPDATE_ALL = "update_all"


@dataclass(frozen=True)
class SolutionStep:
    """One atomic proposed change.

    Attributes:
        action: Kind of change.
        target: Package name, or a description such as ``"lock file"``.
        file: Artifact the step touches.
        from_version: Version being replaced, if known.
        to_version: Version being introduced, if any.
        field: Manifest field the step edits (``"overrides"``).
        command: Shell command that performs the step, if one exists.
        manual: ``True`` when a human must edit a file by hand.
    """

    action: SolutionAction
    target: str
    file: str
    from_version: Optional[str] = None
    to_version: Optional[str] = None
    field: Optional[str] = None
    command: Optional[str] = None
    manual: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "target": self.target,
            "from": self.from_version,
            "to": self.to_version,
            "file": self.file,
            "field": self.field,
            "command": self.command,
            "manual": self.manual,
        }


@dataclass
class RiskAssessment:
    level: RiskLevel = RiskLevel.LOW
    factors: List[str] = field(default_factory=list)
    mitigations: List[str] = field(default_factory=list)


@dataclass
class CompatibilityNotes:
    breaking_changes: bool = False
    affected_packages: List[str] = field(default_factory=list)
    testing_required: List[str] = field(default_factory=list)


@dataclass
class Recommendation:
    score: int = 0
    reasons: List[str] = field(default_factory=list)


@dataclass
class SolutionCandidate:
    """A proposed remediation.

    ``risk``, ``recommendation`` and ``estimated_effort`` are filled in by
    :func:`depdoctor.core.ranker.assess`; the generator only decides kind,
    steps and compatibility.

    Attributes:
        for_issue: Package name the candidate addresses, or ``"general"``.
        kind: Template that produced the candidate.
        title: Short title.
        description: One-sentence description.
        steps: Ordered steps.
        risk: Risk level with factors and mitigations.
        compatibility: Breaking-change flag and blast radius.
        recommendation: 0-100 score with reasons.
        estimated_effort: Effort level.
        id: Random identifier.
    """

    for_issue: str
    kind: CandidateKind
    title: str
    description: str
    steps: List[SolutionStep] = field(default_factory=list)
    risk: RiskAssessment = field(default_factory=RiskAssessment)
    compatibility: CompatibilityNotes = field(default_factory=CompatibilityNotes)
    recommendation: Recommendation = field(default_factory=Recommendation)
    estimated_effort: EffortLevel = EffortLevel.MINOR
    id: str = field(default_factory=new_id)

    @property
    def score(self) -> int:
        return self.recommendation.score

    @property
    def is_breaking(self) -> bool:
        return self.compatibility.breaking_changes

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "forIssue": self.for_issue,
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "steps": [s.to_json() for s in self.steps],
            "risk": {
                "level": self.risk.level.value,
                "factors": list(self.risk.factors),
                "mitigations": list(self.risk.mitigations),
            },
            "compatibility": {
                "breakingChanges": self.compatibility.breaking_changes,
                "affectedPackages": list(self.compatibility.affected_packages),
                "testingRequired": list(self.compatibility.testing_required),
            },
            "recommendation": {
                "score": self.recommendation.score,
                "reasons": list(self.recommendation.reasons),
            },
            "estimatedEffort": self.estimated_effort.value,
        }


@dataclass(frozen=True)
class ComparisonRow:
    id: str
    title: str
    risk_ordinal: int
    effort_ordinal: int
    score: int

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "riskOrdinal": self.risk_ordinal,
            "effortOrdinal": self.effort_ordinal,
            "score": self.score,
        }


@dataclass
class Comparison:
    """Side-by-side view of candidates for one decision.

    Attributes:
        matrix: One row per candidate, in generation order.
        recommended_id: Id of the top-ranked candidate, or ``None``.
        reason: Why that candidate was picked.
    """

    matrix: List[ComparisonRow] = field(default_factory=list)
    recommended_id: Optional[str] = None
    reason: str = ""

    def to_json(self) -> Dict[str, Any]:
        return {
            "matrix": [row.to_json() for row in self.matrix],
            "recommendedId": self.recommended_id,
            "reason": self.reason,
        }


@dataclass
class SolutionReport:
    """Result of one solution request.

    Attributes:
        target_package: Package the request focused on, or ``None`` for
            graph-wide suggestions.
        solutions: Candidates, ranked best first.
        comparison: Comparison over ``solutions``.
        warnings: Explanations when no candidate could be produced.
    """

    target_package: Optional[str] = None
    solutions: List[SolutionCandidate] = field(default_factory=list)
    comparison: Comparison = field(default_factory=Comparison)
    warnings: List[str] = field(default_factory=list)

    @property
    def recommended(self) -> Optional[SolutionCandidate]:
        for candidate in self.solutions:
            if candidate.id == self.comparison.recommended_id:
                return candidate
        return None

    def to_json(self) -> Dict[str, Any]:
        return {
            "targetPackage": self.target_package,
            "solutions": [s.to_json() for s in self.solutions],
            "comparison": self.comparison.to_json(),
            "warnings": list(self.warnings),
        }


@dataclass
class ConflictResolution:
    """Ranked candidates for one detected conflict.

    Attributes:
        issue_id: Id of the :class:`~depdoctor.models.conflict.ConflictRecord`.
        issue_type: Conflict type value, e.g. ``multiple_versions``.
        package: Package the conflict concerns.
        solutions: Candidates, ranked best first.
        comparison: Comparison over ``solutions``.
    """

    issue_id: str
    issue_type: str
    package: str
    solutions: List[SolutionCandidate] = field(default_factory=list)
    comparison: Comparison = field(default_factory=Comparison)

    @property
    def recommended(self) -> Optional[SolutionCandidate]:
        for candidate in self.solutions:
            if candidate.id == self.comparison.recommended_id:
                return candidate
        return None

    def to_json(self) -> Dict[str, Any]:
        return {
            "issueId": self.issue_id,
            "issueType": self.issue_type,
            "package": self.package,
            "solutions": [s.to_json() for s in self.solutions],
            "comparison": self.comparison.to_json(),
        }
