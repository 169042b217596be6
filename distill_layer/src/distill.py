"""
Distillation pipeline entry point.

Runs the stages in fixed order over one run's documents:

    chunk → filter → build cards → tag themes → dedup → quotas → pack → budget

Each stage returns a StageResult; this module composes them, builds the
manifest and converts any unexpected internal fault into an empty,
poor-severity result so callers always receive a usable artifact.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from ..config.profiles import load_profiles, resolve_profile
from ..config.settings import Settings, get_settings
from .budget import compose_budgeted_prompts
from .cards import build_cards, build_procurement_card
from .chunk_text import chunk_documents
from .dedup import deduplicate
from .gates import (
    CoverageBanner,
    QualityGates,
    evaluate_quality_gates,
    generate_coverage_banner,
)
from .loaders import total_input_bytes
from .manifest import (
    build_error_manifest,
    build_manifest,
    generate_run_id,
    reduction_ratio,
)
from .packing import pack_tiers
from .quotas import enforce_quotas
from .relevance import filter_chunks
from .schemas.chunk import SourceDocument
from .schemas.profile import DistillationProfile
from .schemas.report import (
    BudgetedPrompt,
    CoverageReport,
    DedupReport,
    DistillationManifest,
    ManifestStats,
    ProcurementMetrics,
    Severity,
    ThemeCoverage,
    ThemeTargets,
    TieredEvidence,
)
from .themes import tag_cards


logger = logging.getLogger(__name__)


class DistillationResult(BaseModel):
    """Everything one run hands back to its caller."""

    evidence: TieredEvidence
    manifest: DistillationManifest
    coverage: CoverageReport
    dedup: DedupReport
    prompts: dict[str, BudgetedPrompt] = Field(default_factory=dict)
    banner: CoverageBanner
    gates: Optional[QualityGates] = None
    severity: Severity = Severity.OK
    notes: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.severity == Severity.OK


def resolve_run_clock(created_at: Optional[datetime], settings: Settings) -> datetime:
    """
    Pick the run clock stamped on every card.

    An explicit value wins, then DISTILL_RUN_CLOCK, then the start of the
    current UTC day. Naive values are taken as UTC.
    """
    clock = created_at or settings.run_clock
    if clock is None:
        now = datetime.now(timezone.utc)
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if clock.tzinfo is None:
        clock = clock.replace(tzinfo=timezone.utc)
    return clock


def _empty_coverage(profile: DistillationProfile, note: str) -> CoverageReport:
    return CoverageReport(
        theme_targets=ThemeTargets(
            min_per_theme=profile.min_per_topic,
            max_per_theme=profile.max_per_topic,
        ),
        per_theme={t: ThemeCoverage() for t in profile.mandatory_themes},
        missing_themes=list(profile.mandatory_themes),
        severity=Severity.POOR,
        notes=[note],
    )


def _failed_result(
    profile: DistillationProfile,
    run_id: str,
    created_at: datetime,
    documents: list[SourceDocument],
    errors: list[str],
    notes: list[str],
) -> DistillationResult:
    coverage = _empty_coverage(profile, errors[-1])
    dedup = DedupReport(
        similarity_threshold=profile.dedup.global_threshold,
        within_theme_threshold=profile.dedup.within_theme,
    )
    evidence = TieredEvidence.empty()
    return DistillationResult(
        evidence=evidence,
        manifest=build_error_manifest(
            run_id, profile.target_id, created_at, documents, errors, profile.config_version
        ),
        coverage=coverage,
        dedup=dedup,
        banner=generate_coverage_banner(coverage, dedup, evidence, target_id=profile.target_id),
        severity=Severity.POOR,
        notes=notes + errors,
    )


def _run_pipeline(
    documents: list[SourceDocument],
    profile: DistillationProfile,
    settings: Settings,
    run_id: str,
    created_at: datetime,
    procurement_metrics: Optional[ProcurementMetrics],
    budget: bool,
    errors: list[str],
    notes: list[str],
) -> DistillationResult:
    if not documents:
        errors.append("No documents to distill")
        logger.warning("DISTILL: no input documents")

    chunks = chunk_documents(documents)
    filtered = filter_chunks(chunks, profile)

    built = build_cards(filtered.value, profile, created_at)
    cards = list(built.value)
    cards_generated = built.stats["cards_generated"]
    if procurement_metrics is not None:
        procurement_card = build_procurement_card(procurement_metrics, profile, created_at)
        if procurement_card is not None:
            cards.append(procurement_card)
            cards_generated += 1

    tagged = tag_cards(cards, profile)
    deduped = deduplicate(tagged.value, profile.dedup)
    quota = enforce_quotas(deduped.value, profile)
    packed = pack_tiers(quota.value, profile)

    evidence = packed.value
    coverage = quota.report
    dedup = deduped.report

    prompts = (
        compose_budgeted_prompts(evidence, profile.target_id, procurement_metrics)
        if budget else {}
    )
    gates = evaluate_quality_gates(coverage, evidence, prompts, procurement_metrics)
    banner = generate_coverage_banner(coverage, dedup, evidence, prompts, profile.target_id)

    final_count = len(evidence.high_signal) + len(evidence.context)
    stats = ManifestStats(
        chunks_processed=len(chunks),
        chunks_kept=filtered.stats["chunks_kept"],
        chunks_dropped=filtered.stats["chunks_dropped"],
        cards_generated=cards_generated,
        cards_deduplicated=dedup.dropped_count,
        final_card_count=final_count,
        reduction_ratio=reduction_ratio(len(chunks), final_count),
        high_signal_count=len(evidence.high_signal),
        context_count=len(evidence.context),
        themes_covered=[t for t, n in evidence.theme_counts.items() if n > 0],
        dedup_by_theme=dict(dedup.dropped_by_theme),
    )

    input_bytes = total_input_bytes(documents)
    needs_distillation = input_bytes >= settings.small_input_bytes
    if documents and not needs_distillation:
        notes.append(
            f"Input is small ({input_bytes} bytes < {settings.small_input_bytes}); "
            f"distillation is optional for this run"
        )

    for stage in (filtered, built, tagged, deduped, quota, packed):
        notes.extend(stage.notes)

    severity = Severity.worst(filtered.severity, coverage.severity)
    manifest = build_manifest(
        run_id=run_id,
        profile=profile,
        created_at=created_at,
        documents=documents,
        evidence=evidence,
        stats=stats,
        needs_distillation=needs_distillation,
        errors=errors,
    )

    logger.info(
        f"DISTILL: {profile.target_id} run {run_id}: {len(chunks)} chunks → "
        f"{len(evidence.high_signal)} high-signal + {len(evidence.context)} context, "
        f"severity={severity.value}"
    )

    return DistillationResult(
        evidence=evidence,
        manifest=manifest,
        coverage=coverage,
        dedup=dedup,
        prompts=prompts,
        banner=banner,
        gates=gates,
        severity=severity,
        notes=notes,
    )


def distill_documents(
    documents: list[SourceDocument],
    target: Optional[str] = None,
    procurement_metrics: Optional[ProcurementMetrics] = None,
    profile: Optional[DistillationProfile] = None,
    settings: Optional[Settings] = None,
    run_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
    budget: bool = True,
    load_errors: Optional[list[str]] = None,
) -> DistillationResult:
    """
    Distill documents into tiered evidence packs for one target.

    Args:
        documents: Input documents, in order
        target: Raw target identifier (normalized through the alias map)
        procurement_metrics: Optional metrics record for a synthetic budget card
        profile: Explicit profile; skips target resolution when given
        settings: Engine settings (defaults to environment settings)
        run_id: Run identifier (generated when omitted)
        created_at: Run clock (defaults through resolve_run_clock)
        budget: Whether to compose budgeted prompt blocks
        load_errors: Per-file errors from document loading

    Returns:
        DistillationResult. Never raises for data conditions or internal
        faults; invalid configuration raises before the run starts.
    """
    settings = settings or get_settings()
    created_at = resolve_run_clock(created_at, settings)
    notes: list[str] = []

    if profile is None:
        specs = load_profiles(settings.profiles_path) if settings.has_profile_file() else None
        profile, resolve_notes = resolve_profile(target, default=settings.default_target, specs=specs)
        notes.extend(resolve_notes)

    run_id = run_id or generate_run_id(profile.target_id, created_at)
    errors = list(load_errors or [])

    try:
        return _run_pipeline(
            documents=list(documents),
            profile=profile,
            settings=settings,
            run_id=run_id,
            created_at=created_at,
            procurement_metrics=procurement_metrics,
            budget=budget,
            errors=errors,
            notes=notes,
        )
    except Exception as e:
        logger.exception(f"DISTILL: run {run_id} failed")
        errors.append(f"Distillation failed: {type(e).__name__}: {e}")
        return _failed_result(profile, run_id, created_at, list(documents), errors, notes)
