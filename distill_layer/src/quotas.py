"""
Best-effort per-theme quotas and coverage reporting.

Never raises: a mandatory theme without candidates is reported as
missing, not treated as a failure. Severity:
- poor: any mandatory theme kept zero cards
- warn: more than two mandatory themes kept fewer than the minimum
- ok:   otherwise
"""

import logging

from .schemas.card import EvidenceCard
from .schemas.profile import DistillationProfile
from .schemas.report import (
    CoverageReport,
    Severity,
    StageResult,
    ThemeCoverage,
    ThemeTargets,
)


logger = logging.getLogger(__name__)

MAX_WEAK_THEMES = 2


def rank_cards(cards: list[EvidenceCard]) -> list[EvidenceCard]:
    """Descending total, ties by id."""
    return sorted(cards, key=lambda c: (-c.total, c.id))


def coverage_severity(missing: list[str], weak: list[str]) -> Severity:
    if missing:
        return Severity.POOR
    if len(weak) > MAX_WEAK_THEMES:
        return Severity.WARN
    return Severity.OK


def _cap_total(
    ranked: list[EvidenceCard],
    selected_ids: set[str],
    mandatory_picks: dict[str, list[EvidenceCard]],
    profile: DistillationProfile,
) -> set[str]:
    """Trim the selection to ``max_cards``, reserving each theme's minimum first."""
    if len(selected_ids) <= profile.max_cards:
        return selected_ids

    final_ids: set[str] = set()
    for picks in mandatory_picks.values():
        for card in picks[:profile.min_per_topic]:
            if len(final_ids) >= profile.max_cards:
                break
            final_ids.add(card.id)

    for card in ranked:
        if len(final_ids) >= profile.max_cards:
            break
        if card.id in selected_ids:
            final_ids.add(card.id)
    return final_ids


def enforce_quotas(
    cards: list[EvidenceCard],
    profile: DistillationProfile,
) -> StageResult[list[EvidenceCard]]:
    """
    Select cards per theme and report mandatory theme coverage.

    Each mandatory theme keeps up to ``max_per_topic`` of its cards by
    descending total; non-mandatory themes are capped the same way and
    appended. The union is deduplicated by id and capped at ``max_cards``.

    Returns:
        StageResult with the selected cards (descending total) and a
        CoverageReport
    """
    ranked = rank_cards(cards)
    limit = profile.max_per_topic

    mandatory_picks: dict[str, list[EvidenceCard]] = {}
    candidates_by_theme: dict[str, int] = {}
    selected_ids: set[str] = set()

    for theme in profile.mandatory_themes:
        candidates = [c for c in ranked if theme in c.themes]
        picks = candidates[:limit]
        mandatory_picks[theme] = picks
        candidates_by_theme[theme] = len(candidates)
        selected_ids.update(c.id for c in picks)

    other_themes: list[str] = []
    for card in ranked:
        for theme in card.themes:
            if theme not in profile.mandatory_themes and theme not in other_themes:
                other_themes.append(theme)
    for theme in other_themes:
        picks = [c for c in ranked if theme in c.themes][:limit]
        selected_ids.update(c.id for c in picks)

    combined = len(selected_ids)
    selected_ids = _cap_total(ranked, selected_ids, mandatory_picks, profile)
    selected = [c for c in ranked if c.id in selected_ids]

    per_theme: dict[str, ThemeCoverage] = {}
    missing: list[str] = []
    weak: list[str] = []
    for theme in profile.mandatory_themes:
        kept = sum(1 for c in mandatory_picks[theme] if c.id in selected_ids)
        per_theme[theme] = ThemeCoverage(candidates=candidates_by_theme[theme], kept=kept)
        if kept == 0:
            missing.append(theme)
        elif kept < profile.min_per_topic:
            weak.append(theme)

    severity = coverage_severity(missing, weak)
    notes: list[str] = []
    if missing:
        notes.append(f"Missing themes: {', '.join(missing)}")
    if weak:
        notes.append(f"Weak themes (below {profile.min_per_topic}): {', '.join(weak)}")
    if combined > len(selected):
        notes.append(f"Capped {combined} quota selections to max_cards={profile.max_cards}")

    report = CoverageReport(
        theme_targets=ThemeTargets(min_per_theme=profile.min_per_topic, max_per_theme=limit),
        per_theme=per_theme,
        missing_themes=missing,
        weak_themes=weak,
        severity=severity,
        notes=notes,
    )

    log = logger.warning if severity != Severity.OK else logger.info
    log(
        f"QUOTAS: {len(cards)} → {len(selected)} cards, severity={severity.value}, "
        f"missing={len(missing)}, weak={len(weak)}"
    )

    return StageResult(
        value=selected,
        severity=severity,
        notes=list(notes),
        stats={"candidates": len(cards), "selected": len(selected), "before_cap": combined},
        report=report,
    )
