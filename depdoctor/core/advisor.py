"""Analysis orchestration for depdoctor.

:class:`DependencyAdvisor` wires the pipeline together:

1. :class:`~depdoctor.core.normalizer.GraphNormalizer` builds the graph.
2. :class:`~depdoctor.core.registry.RegistryMetadataStore` (optional)
   fetches metadata for the packages involved, concurrently.
3. :class:`~depdoctor.core.classifier.ConflictClassifier` emits records.
4. :class:`~depdoctor.core.solutions.SolutionGenerator` and
   :mod:`depdoctor.core.ranker` propose and order fixes.

Without a store (offline mode) every registry fact is "unknown" and the
pipeline falls back to what the snapshot itself says.

Typical usage::

    async with HTTPClient() as http:
        advisor = DependencyAdvisor(RegistryMetadataStore(http))
        report = await advisor.detect_conflicts(snapshot, with_solutions=True)
        plan = await advisor.suggest_solutions(snapshot, package="lodash")
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from depdoctor.utils.logger import get_logger
from depdoctor.core.ranker import compare, rank
from depdoctor.models.project import ProjectSnapshot
from depdoctor.models.trace import DependencyTrace
from depdoctor.core.classifier import RUNTIME_PACKAGE, CheckTypes, ConflictClassifier
from depdoctor.core.registry import PackageMetadata, RegistryMetadataStore
from depdoctor.core.normalizer import DependencyGraph, GraphNormalizer
from depdoctor.core.solutions import SolutionConstraints, SolutionGenerator
from depdoctor.constants import DEFAULT_SEVERITY_FILTER, DEFAULT_STRATEGY
from depdoctor.models.solution import ConflictResolution, SolutionReport
from depdoctor.models.conflict import (
    ConflictRecord,
    DetectionReport,
    DetectionSummary,
    filter_by_severity,
)

logger = get_logger("advisor")

__all__ = ["DependencyAdvisor"]

NO_SIGNAL_WARNING = (
    "No dependency information could be extracted: the snapshot has no "
    "installed tree, no manifest dependencies and no workspaces"
)


class DependencyAdvisor:
    """Run detection, suggestion and tracing over project snapshots.

    Args:
        store: Registry metadata store, or ``None`` to work offline.
        strategy: Default remediation strategy.
        constraints: Default generator constraints.
        normalizer: Graph normalizer to use.
    """

    def __init__(
        self,
        store: Optional[RegistryMetadataStore] = None,
        *,
        strategy: str = DEFAULT_STRATEGY,
        constraints: Optional[SolutionConstraints] = None,
        normalizer: Optional[GraphNormalizer] = None,
    ) -> None:
        self.store = store
        self.strategy = strategy
        self.constraints = constraints or SolutionConstraints()
        self.normalizer = normalizer or GraphNormalizer()

    @property
    def offline(self) -> bool:
        return self.store is None

    async def fetch_metadata(self, names: Iterable[str]) -> Dict[str, PackageMetadata]:
        """Fetch metadata for *names*; empty when offline."""
        if self.store is None:
            return {}
        names = list(names)
        logger.info("Fetching registry metadata for %d package(s)", len(names))
        return await self.store.prefetch(names)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect_conflicts(
        self,
        snapshot: ProjectSnapshot,
        *,
        check_types: CheckTypes = None,
        severity: str = DEFAULT_SEVERITY_FILTER,
        with_solutions: bool = False,
    ) -> DetectionReport:
        """Classify every problem in *snapshot*.

        Args:
            snapshot: Project snapshot to analyse.
            check_types: Conflict types to run, or ``None`` for all.
            severity: Report filter (``all``, ``warning`` or ``error``).
            with_solutions: Also generate and rank candidates for every
                reported issue.

        Returns:
            A report whose issues are filtered by *severity* and ordered
            most severe first (check order within one severity).
        """
        graph = self.normalizer.normalize(snapshot)

        if not graph.has_signal:
            logger.warning(NO_SIGNAL_WARNING)
            return DetectionReport(
                warnings=[NO_SIGNAL_WARNING],
                resolutions=[] if with_solutions else None,
            )

        metadata = await self.fetch_metadata(graph.records)
        classifier = ConflictClassifier(metadata, snapshot.runtime_version)
        records = classifier.classify(graph, check_types)

        issues = sorted(filter_by_severity(records, severity), key=lambda r: r.severity.rank)
        logger.info(
            "Found %d issue(s), %d after severity filter '%s'",
            len(records),
            len(issues),
            severity,
        )

        report = DetectionReport(
            issues=issues,
            summary=DetectionSummary.from_records(issues),
        )
        if with_solutions:
            report.resolutions = await self.resolve_conflicts(graph, issues, metadata)
        return report

    async def resolve_conflicts(
        self,
        graph: DependencyGraph,
        records: List[ConflictRecord],
        metadata: Optional[Dict[str, PackageMetadata]] = None,
    ) -> List[ConflictResolution]:
        """Generate and rank candidates for each of *records*.

        Metadata missing for a record's package (a missing peer, for
        instance) is fetched first. Records without any candidate are left
        out of the result.
        """
        metadata = dict(metadata or {})
        missing = [
            r.package
            for r in records
            if r.package not in metadata and r.package != RUNTIME_PACKAGE
        ]
        if missing:
            metadata.update(await self.fetch_metadata(dict.fromkeys(missing)))

        generator = SolutionGenerator(
            graph,
            metadata,
            strategy=self.strategy,
            constraints=self.constraints,
        )

        resolutions = []
        for record in records:
            candidates = generator.generate_for_conflict(record)
            if not candidates:
                logger.debug("No candidates for %s on %s", record.type.value, record.package)
                continue
            resolutions.append(
                ConflictResolution(
                    issue_id=record.id,
                    issue_type=record.type.value,
                    package=record.package,
                    solutions=rank(candidates),
                    comparison=compare(candidates),
                )
            )

        logger.info("Resolved %d of %d issue(s)", len(resolutions), len(records))
        return resolutions

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    async def suggest_solutions(
        self,
        snapshot: ProjectSnapshot,
        *,
        package: Optional[str] = None,
        target_version: Optional[str] = None,
        strategy: Optional[str] = None,
        constraints: Optional[SolutionConstraints] = None,
    ) -> SolutionReport:
        """Propose ranked fixes for *package*, or graph-wide fixes when ``None``."""
        graph = self.normalizer.normalize(snapshot)
        constraints = constraints or self.constraints
        metadata = await self.fetch_metadata([package]) if package else {}

        generator = SolutionGenerator(
            graph,
            metadata,
            strategy=strategy or self.strategy,
            constraints=constraints,
        )

        if package:
            candidates = generator.generate_for_package(package, target_version)
        else:
            candidates = generator.generate_general()

        report = SolutionReport(
            target_package=package,
            solutions=rank(candidates),
            comparison=compare(candidates),
        )
        if not candidates:
            report.warnings = self._no_solution_warnings(graph, package, constraints, metadata)
            for warning in report.warnings:
                logger.warning(warning)
        return report

    def _no_solution_warnings(
        self,
        graph: DependencyGraph,
        package: Optional[str],
        constraints: SolutionConstraints,
        metadata: Dict[str, PackageMetadata],
    ) -> List[str]:
        if package and package in constraints.exclude_packages:
            return [f"{package} is excluded by configuration"]

        warnings = []
        if package and package not in metadata:
            warnings.append(
                f"No registry metadata for {package}; upgrade candidates need a known latest version"
            )
        if package and not graph.is_installed(package) and not graph.is_direct(package):
            warnings.append(f"{package} is neither installed nor declared by the project")
        warnings.append("No solution could be generated; the project may already be in good shape")
        return warnings

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def trace(self, snapshot: ProjectSnapshot, package: str) -> DependencyTrace:
        """Explain where *package* is installed and why."""
        return self.normalizer.normalize(snapshot).trace(package)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(self, snapshot: ProjectSnapshot) -> DependencyGraph:
        """Normalize *snapshot* for the dependency overview (stats, flat list)."""
        graph = self.normalizer.normalize(snapshot)
        if not graph.has_signal:
            logger.warning(NO_SIGNAL_WARNING)
        return graph
