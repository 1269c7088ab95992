"""
Core functionality exports for depdoctor.

This module provides convenient access to the analysis pipeline:

    from depdoctor.core import GraphNormalizer, ConflictClassifier

New core components should be re-exported here to keep a consistent
public API.
"""

from __future__ import annotations

from depdoctor.core.advisor import DependencyAdvisor
from depdoctor.core.ranker import assess, compare, rank
from depdoctor.core.classifier import ConflictClassifier
from depdoctor.core.solutions import SolutionConstraints, SolutionGenerator
from depdoctor.core.normalizer import DependencyGraph, GraphNormalizer, normalize_overrides
from depdoctor.core.registry import (
    MetadataCache,
    PackageMetadata,
    RegistryMetadataStore,
    VersionMetadata,
)

__all__ = [
    "GraphNormalizer",
    "DependencyGraph",
    "normalize_overrides",
    "ConflictClassifier",
    "SolutionGenerator",
    "SolutionConstraints",
    "assess",
    "rank",
    "compare",
    "MetadataCache",
    "PackageMetadata",
    "VersionMetadata",
    "RegistryMetadataStore",
    "DependencyAdvisor",
]
