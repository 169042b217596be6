"""
Pydantic schemas for distillation artifacts.

All card schemas carry provenance fields (document_id, page, byte span)
so every piece of evidence stays traceable to its source.
"""

from .card import (
    CardClass,
    CardRole,
    CardScores,
    CardSource,
    Confidence,
    ContextCard,
    EvidenceCard,
    FunctionTag,
    SourceType,
    Timeframe,
)
from .chunk import Chunk, SourceDocument
from .profile import (
    DedupThresholds,
    DistillationProfile,
    FilterPatterns,
    ScoringWeights,
    SignalLists,
    ThemeDictionary,
    ThemeHeuristic,
)
from .report import (
    BudgetedPrompt,
    CoverageReport,
    DedupReport,
    DistillationManifest,
    ManifestStats,
    ProcurementMetrics,
    Severity,
    StageResult,
    ThemeCoverage,
    ThemeTargets,
    TieredEvidence,
)

__all__ = [
    "SourceDocument",
    "Chunk",
    "EvidenceCard",
    "ContextCard",
    "CardClass",
    "CardRole",
    "CardScores",
    "CardSource",
    "Confidence",
    "FunctionTag",
    "SourceType",
    "Timeframe",
    "DistillationProfile",
    "ScoringWeights",
    "SignalLists",
    "FilterPatterns",
    "DedupThresholds",
    "ThemeDictionary",
    "ThemeHeuristic",
    "TieredEvidence",
    "CoverageReport",
    "ThemeCoverage",
    "ThemeTargets",
    "DedupReport",
    "DistillationManifest",
    "ManifestStats",
    "ProcurementMetrics",
    "BudgetedPrompt",
    "Severity",
    "StageResult",
]
