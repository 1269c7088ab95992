"""Risk, effort and score assignment for remediation candidates.

Scores come from a fixed table keyed by candidate kind and whether the
candidate is breaking:

======================  ========  =========  ===========
Kind                    Score     Risk       Effort
======================  ========  =========  ===========
upgrade_latest          90 / 60   low/high   minor/moderate
upgrade_target          75        low/medium minor
force_pin               65        medium     minor
workspace_unify         85        low/medium moderate (major above 3 members)
dedupe                  95        medium     trivial
regenerate_lock         70        medium     moderate
update_all              40        high       major
======================  ========  =========  ===========

(pairs read non-breaking / breaking)

Ranking sorts by score descending. Ties go to the cheaper candidate
(effort ascending), then the safer one (risk ascending), then generation
order.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from depdoctor.constants import (
    SCORE_DEDUPE,
    SCORE_FORCE_PIN,
    SCORE_REGENERATE_LOCK,
    SCORE_UPDATE_ALL,
    SCORE_UPGRADE_LATEST,
    SCORE_UPGRADE_LATEST_BREAKING,
    SCORE_UPGRADE_TARGET,
    SCORE_WORKSPACE_UNIFY,
    WORKSPACE_UNIFY_MAJOR_THRESHOLD,
)
from depdoctor.models.solution import (
    CandidateKind,
    Comparison,
    ComparisonRow,
    EffortLevel,
    RiskLevel,
    SolutionCandidate,
)

__all__ = ["assess", "compare", "rank", "score_for"]


# (kind, breaking) -> (score, risk, effort, reasons)
_TABLE: Dict[Tuple[CandidateKind, bool], Tuple[int, RiskLevel, EffortLevel, List[str]]] = {
    (CandidateKind.UPGRADE_LATEST, False): (
        SCORE_UPGRADE_LATEST,
        RiskLevel.LOW,
        EffortLevel.MINOR,
        ["Latest release", "Non-breaking upgrade"],
    ),
    (CandidateKind.UPGRADE_LATEST, True): (
        SCORE_UPGRADE_LATEST_BREAKING,
        RiskLevel.HIGH,
        EffortLevel.MODERATE,
        ["Latest release", "Crosses a major version"],
    ),
    (CandidateKind.UPGRADE_TARGET, False): (
        SCORE_UPGRADE_TARGET,
        RiskLevel.LOW,
        EffortLevel.MINOR,
        ["Explicit target version", "Controlled upgrade"],
    ),
    (CandidateKind.UPGRADE_TARGET, True): (
        SCORE_UPGRADE_TARGET,
        RiskLevel.MEDIUM,
        EffortLevel.MINOR,
        ["Explicit target version", "Crosses a major version"],
    ),
    (CandidateKind.FORCE_PIN, False): (
        SCORE_FORCE_PIN,
        RiskLevel.MEDIUM,
        EffortLevel.MINOR,
        ["Resolves duplicate copies quickly", "Override needs ongoing upkeep"],
    ),
    (CandidateKind.WORKSPACE_UNIFY, False): (
        SCORE_WORKSPACE_UNIFY,
        RiskLevel.LOW,
        EffortLevel.MODERATE,
        ["One version across the monorepo", "Simpler dependency management"],
    ),
    (CandidateKind.WORKSPACE_UNIFY, True): (
        SCORE_WORKSPACE_UNIFY,
        RiskLevel.MEDIUM,
        EffortLevel.MODERATE,
        ["One version across the monorepo", "Some members cross a major version"],
    ),
    (CandidateKind.DEDUPE, False): (
        SCORE_DEDUPE,
        RiskLevel.MEDIUM,
        EffortLevel.TRIVIAL,
        ["Single package-manager command", "May shrink the install tree"],
    ),
    (CandidateKind.REGENERATE_LOCK, False): (
        SCORE_REGENERATE_LOCK,
        RiskLevel.MEDIUM,
        EffortLevel.MODERATE,
        ["Fixes corrupted lock files", "Resolved versions may shift"],
    ),
    (CandidateKind.UPDATE_ALL, False): (
        SCORE_UPDATE_ALL,
        RiskLevel.HIGH,
        EffortLevel.MAJOR,
        ["Every dependency at its latest release", "High chance of breaking changes"],
    ),
}

_FACTORS: Dict[CandidateKind, List[str]] = {
    CandidateKind.FORCE_PIN: [
        "Forced version may not match every consumer's range",
        "Override must be maintained over time",
    ],
    CandidateKind.DEDUPE: ["Hoisting may change which copy a package resolves"],
    CandidateKind.REGENERATE_LOCK: [
        "Resolved versions may change",
        "New conflicts may appear",
    ],
    CandidateKind.UPDATE_ALL: [
        "Likely includes several breaking changes",
        "Requires extensive testing",
    ],
}

_MITIGATIONS: Dict[CandidateKind, List[str]] = {
    CandidateKind.UPGRADE_LATEST: ["Run the test suite", "Read the changelog"],
    CandidateKind.UPGRADE_TARGET: ["Run the test suite"],
    CandidateKind.FORCE_PIN: [
        "Review periodically whether the override is still needed",
        "Watch for upstream releases",
    ],
    CandidateKind.WORKSPACE_UNIFY: ["Test each workspace individually"],
    CandidateKind.DEDUPE: ["Run the test suite afterwards"],
    CandidateKind.REGENERATE_LOCK: [
        "Back up the current lock file",
        "Diff the old and new lock files",
        "Run the full test suite",
    ],
    CandidateKind.UPDATE_ALL: [
        "Work on a separate branch",
        "Update incrementally rather than all at once",
        "Read every changelog",
    ],
}


def _row(candidate: SolutionCandidate) -> Tuple[int, RiskLevel, EffortLevel, List[str]]:
    breaking = candidate.is_breaking and (candidate.kind, True) in _TABLE
    return _TABLE[(candidate.kind, breaking)]


def score_for(candidate: SolutionCandidate) -> int:
    """Return the table score for *candidate* without mutating it."""
    return _row(candidate)[0]


def assess(candidate: SolutionCandidate) -> SolutionCandidate:
    """Fill in risk, effort and recommendation for *candidate* in place.

    Returns:
        The same candidate, for chaining.
    """
    score, risk, effort, reasons = _row(candidate)

    if (
        candidate.kind is CandidateKind.WORKSPACE_UNIFY
        and len(candidate.steps) > WORKSPACE_UNIFY_MAJOR_THRESHOLD
    ):
        effort = EffortLevel.MAJOR

    factors = list(_FACTORS.get(candidate.kind, []))
    if candidate.is_breaking:
        factors.insert(0, "Major version change may include breaking changes")

    candidate.risk.level = risk
    candidate.risk.factors = factors
    candidate.risk.mitigations = list(_MITIGATIONS.get(candidate.kind, []))
    candidate.estimated_effort = effort
    candidate.recommendation.score = score
    candidate.recommendation.reasons = list(reasons)
    return candidate


def rank(candidates: Sequence[SolutionCandidate]) -> List[SolutionCandidate]:
    """Return *candidates* best first.

    Example::

        >>> [c.kind.value for c in rank([pin, upgrade])]
        ['upgrade_latest', 'force_pin']
    """
    return sorted(
        candidates,
        key=lambda c: (
            -c.score,
            c.estimated_effort.ordinal,
            c.risk.level.ordinal,
        ),
    )


def compare(candidates: Sequence[SolutionCandidate]) -> Comparison:
    """Build the comparison matrix and pick the recommended candidate.

    The matrix keeps the order of *candidates*; the recommendation is the
    first entry of :func:`rank`.
    """
    matrix = [
        ComparisonRow(
            id=c.id,
            title=c.title,
            risk_ordinal=c.risk.level.ordinal,
            effort_ordinal=c.estimated_effort.ordinal,
            score=c.score,
        )
        for c in candidates
    ]

    if not candidates:
        return Comparison(matrix=matrix, recommended_id=None, reason="No candidate solutions")

    best = rank(candidates)[0]
    return Comparison(
        matrix=matrix,
        recommended_id=best.id,
        reason=f'"{best.title}" has the highest overall score ({best.score}/100)',
    )
