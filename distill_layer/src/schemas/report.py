"""
Report and artifact schemas emitted by a distillation run.

- TieredEvidence: high-signal pack + context pack + theme counts
- CoverageReport / DedupReport: per-stage diagnostics
- DistillationManifest: per-run statistics and errors
- BudgetedPrompt: a size-bounded text block for one downstream prompt type
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from .card import ContextCard, EvidenceCard


T = TypeVar("T")


class Severity(str, Enum):
    """Coverage severity of a run or stage."""

    OK = "ok"
    WARN = "warn"
    POOR = "poor"

    @property
    def rank(self) -> int:
        return {"ok": 0, "warn": 1, "poor": 2}[self.value]

    @classmethod
    def worst(cls, *severities: "Severity") -> "Severity":
        return max(severities, key=lambda s: s.rank, default=cls.OK)


@dataclass
class StageResult(Generic[T]):
    """Value returned by every pipeline stage instead of raising."""

    value: T
    severity: Severity = Severity.OK
    notes: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)
    report: Optional[BaseModel] = None

    def to_dict(self) -> dict[str, Any]:
        """Diagnostics only; the value itself is not serialized."""
        result = {
            "severity": self.severity.value,
            "notes": list(self.notes),
            "stats": dict(self.stats),
        }
        if self.report is not None:
            result["report"] = self.report.model_dump(mode="json")
        return result


class ThemeTargets(BaseModel):
    min_per_theme: int = Field(..., ge=0)
    max_per_theme: int = Field(..., ge=1)


class ThemeCoverage(BaseModel):
    candidates: int = Field(0, ge=0, description="Cards carrying the theme before quotas")
    kept: int = Field(0, ge=0, description="Cards kept for the theme after quotas")


class CoverageReport(BaseModel):
    """How well the mandatory themes are represented after quotas."""

    theme_targets: ThemeTargets
    per_theme: dict[str, ThemeCoverage] = Field(default_factory=dict)
    missing_themes: list[str] = Field(default_factory=list)
    weak_themes: list[str] = Field(default_factory=list)
    severity: Severity = Severity.OK
    notes: list[str] = Field(default_factory=list)


class DedupReport(BaseModel):
    """Outcome of the two dedup passes."""

    similarity_threshold: float = Field(..., description="Global (cross-theme) threshold")
    within_theme_threshold: float = Field(..., description="Pass-1 threshold")
    dropped_count: int = 0
    kept_count: int = 0
    exact_duplicates: int = Field(0, description="Drops resolved by fingerprint collision")
    dropped_by_theme: dict[str, int] = Field(default_factory=dict)


class TieredEvidence(BaseModel):
    """Final artifact of the engine."""

    high_signal: list[EvidenceCard] = Field(default_factory=list)
    context: list[ContextCard] = Field(default_factory=list)
    theme_counts: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> "TieredEvidence":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.high_signal and not self.context


class InputFileInfo(BaseModel):
    name: str
    size_mb: float


class ManifestStats(BaseModel):
    chunks_processed: int = 0
    chunks_kept: int = 0
    chunks_dropped: int = 0
    cards_generated: int = 0
    cards_deduplicated: int = 0
    final_card_count: int = 0
    reduction_ratio: float = 0.0
    high_signal_count: int = 0
    context_count: int = 0
    themes_covered: list[str] = Field(default_factory=list)
    dedup_by_theme: dict[str, int] = Field(default_factory=dict)


class DistillationManifest(BaseModel):
    """Per-run statistics and errors."""

    run_id: str
    target_id: str
    target_name: str = ""
    timestamp: datetime
    input_files: list[InputFileInfo] = Field(default_factory=list)
    output_file: str = ""
    stats: ManifestStats = Field(default_factory=ManifestStats)
    top_signals: list[str] = Field(default_factory=list)
    config_version: str = ""
    needs_distillation: bool = True
    errors: list[str] = Field(default_factory=list)


class ProcurementMetrics(BaseModel):
    """Flat procurement metrics record supplied by a table-parsing collaborator."""

    total_value: float = Field(0.0, ge=0.0, description="Total contract value in dollars")
    active_contracts: int = Field(0, ge=0)
    growth_rate: float = 0.0
    small_business_percentage: float = 0.0
    vehicle_distribution: dict[str, float] = Field(default_factory=dict)
    top_vendors: list[str] = Field(default_factory=list)
    source_name: str = "procurement_metrics"


class BudgetedPrompt(BaseModel):
    """A serialized evidence block bounded by a character budget."""

    prompt_type: str
    text: str
    char_count: int
    max_chars: int
    within_budget: bool
    cards_used: int = 0
    context_used: int = 0
    original_char_count: int = 0
    shrunk: bool = Field(False, description="Any shrink step was applied")
    truncated: bool = Field(False, description="Hard truncation was applied")
    shrink_steps: list[str] = Field(default_factory=list)
