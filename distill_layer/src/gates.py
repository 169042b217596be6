"""
Quality gates, coverage banners and the export decision.

The engine never blocks anything itself. These helpers turn the run's
reports into the messages and the block/proceed decision a caller shows
to its user.
"""

import logging
import re
from typing import Optional

from pydantic import BaseModel, Field

from .budget import PLAYS_MD, validate_budgeted_prompts
from .schemas.card import CardRole
from .schemas.report import (
    BudgetedPrompt,
    CoverageReport,
    DedupReport,
    ProcurementMetrics,
    Severity,
    TieredEvidence,
)


logger = logging.getLogger(__name__)

MAX_MISSING_THEMES = 3
MAX_PROMPT_ISSUES = 2
VEHICLE_PATTERN = re.compile(r"8\(a\)|sewp|cio.?sp|oasis|gwac|idiq|bpa", re.IGNORECASE)

BANNER_COLORS = {
    Severity.OK: "green",
    Severity.WARN: "yellow",
    Severity.POOR: "red",
}


class CoverageBanner(BaseModel):
    """User-facing coverage status message."""

    severity: Severity
    title: str
    message: str
    actions: list[str] = Field(default_factory=list)
    diagnostics: str = ""
    color: str = "green"


class ThemeGate(BaseModel):
    passed: bool
    covered: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)


class ProcurementGate(BaseModel):
    passed: bool
    issues: list[str] = Field(default_factory=list)


class QualityGates(BaseModel):
    """Aggregated pass/fail checks of a run."""

    theme_coverage: ThemeGate
    procurement_consistency: ProcurementGate
    prompt_issues: list[str] = Field(default_factory=list)
    overall_passed: bool = False


class ExportDecision(BaseModel):
    blocked: bool
    reason: Optional[str] = None


def generate_coverage_banner(
    coverage: CoverageReport,
    dedup: DedupReport,
    evidence: Optional[TieredEvidence] = None,
    prompts: Optional[dict[str, BudgetedPrompt]] = None,
    target_id: str = "",
) -> CoverageBanner:
    """Build the banner for a run's coverage severity."""
    high = len(evidence.high_signal) if evidence else 0
    context = len(evidence.context) if evidence else 0
    plays = prompts.get(PLAYS_MD) if prompts else None
    diagnostics = (
        f"Target: {target_id or 'N/A'} · High-signal: {high} · Context: {context} · "
        f"Dedup dropped: {dedup.dropped_count} · "
        f"PLAYS block: {plays.char_count if plays else 'N/A'} chars"
    )
    color = BANNER_COLORS[coverage.severity]

    if coverage.severity == Severity.OK:
        return CoverageBanner(
            severity=Severity.OK,
            title="Coverage: Complete",
            message=(
                f"All mandatory themes are represented. "
                f"Dedup removed {dedup.dropped_count} duplicates. Proceed to export."
            ),
            diagnostics=diagnostics,
            color=color,
        )

    if coverage.severity == Severity.WARN:
        weak = coverage.weak_themes
        return CoverageBanner(
            severity=Severity.WARN,
            title="Coverage: Partial",
            message=f"The following themes are below target: {', '.join(weak)}.",
            actions=[
                f'Regenerate with "boost {weak[0]}"' if weak else "Regenerate with more sources",
                "Include additional context cards for weak themes",
            ],
            diagnostics=diagnostics,
            color=color,
        )

    return CoverageBanner(
        severity=Severity.POOR,
        title="Coverage: Insufficient",
        message=(
            f"No evidence found for: {', '.join(coverage.missing_themes) or 'unknown themes'}. "
            f"Distillation produced a thin pack ({high} high-signal / {context} context)."
        ),
        actions=[
            "Add source documents covering the missing themes",
            "Proceed with the partial pack (reduced quality)",
        ],
        diagnostics=diagnostics,
        color=color,
    )


def check_theme_coverage(coverage: CoverageReport) -> ThemeGate:
    """Passes while at most three mandatory themes are missing."""
    covered = [t for t, stats in coverage.per_theme.items() if stats.kept > 0]
    return ThemeGate(
        passed=len(coverage.missing_themes) <= MAX_MISSING_THEMES,
        covered=covered,
        missing=list(coverage.missing_themes),
    )


def check_procurement_consistency(
    metrics: Optional[ProcurementMetrics],
    evidence: TieredEvidence,
) -> ProcurementGate:
    """Procurement data should be echoed by metric and vehicle evidence."""
    issues: list[str] = []
    if metrics is None:
        return ProcurementGate(passed=True)

    metric_cards = [c for c in evidence.high_signal if c.role == CardRole.METRIC]
    if metrics.total_value > 0 and not metric_cards:
        issues.append("No budget evidence despite procurement data")

    if metrics.vehicle_distribution:
        if not any(VEHICLE_PATTERN.search(c.quote) for c in evidence.high_signal):
            issues.append("No vehicle evidence despite procurement data")

    return ProcurementGate(passed=not issues, issues=issues)


def evaluate_quality_gates(
    coverage: CoverageReport,
    evidence: TieredEvidence,
    prompts: Optional[dict[str, BudgetedPrompt]] = None,
    metrics: Optional[ProcurementMetrics] = None,
) -> QualityGates:
    theme_gate = check_theme_coverage(coverage)
    procurement_gate = check_procurement_consistency(metrics, evidence)
    prompt_issues = validate_budgeted_prompts(prompts) if prompts else []

    gates = QualityGates(
        theme_coverage=theme_gate,
        procurement_consistency=procurement_gate,
        prompt_issues=prompt_issues,
        overall_passed=theme_gate.passed and coverage.severity != Severity.POOR,
    )
    logger.info(
        f"QUALITY: themes={'ok' if theme_gate.passed else 'failed'} "
        f"procurement={'ok' if procurement_gate.passed else 'issues'} "
        f"prompts={len(prompt_issues)} issues overall={'PASSED' if gates.overall_passed else 'DEGRADED'}"
    )
    return gates


def should_block_export(
    coverage: CoverageReport,
    gates: Optional[QualityGates] = None,
) -> ExportDecision:
    """Block export on poor coverage or on repeated prompt problems."""
    if coverage.severity == Severity.POOR:
        return ExportDecision(blocked=True, reason="Coverage insufficient. Missing mandatory themes.")
    if gates is not None and len(gates.prompt_issues) > MAX_PROMPT_ISSUES:
        return ExportDecision(blocked=True, reason="Multiple prompt validation issues. Please regenerate.")
    return ExportDecision(blocked=False)
