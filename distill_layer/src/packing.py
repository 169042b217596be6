"""
Two-tier packing.

Cards are ordered by role priority (claim > metric > evidence > context >
counterpoint), then by descending total. The high-signal pack takes the
first ``high_signal_target + tolerance`` citable cards (claim, metric,
evidence); the context pack summarises what is left.
"""

import logging
from collections import Counter

from .schemas.card import CardRole, EvidenceCard
from .schemas.profile import DistillationProfile
from .schemas.report import Severity, StageResult, TieredEvidence


logger = logging.getLogger(__name__)

ROLE_PRIORITY = {
    CardRole.CLAIM: 1,
    CardRole.METRIC: 2,
    CardRole.EVIDENCE: 3,
    CardRole.CONTEXT: 4,
    CardRole.COUNTERPOINT: 5,
}
HIGH_SIGNAL_ROLES = frozenset({CardRole.CLAIM, CardRole.METRIC, CardRole.EVIDENCE})


def pack_order(card: EvidenceCard) -> tuple[int, float, str]:
    return (ROLE_PRIORITY.get(card.role, len(ROLE_PRIORITY) + 1), -card.total, card.id)


def _replaceable_index(high: list[EvidenceCard], mandatory: tuple[str, ...]) -> int:
    """Index of the lowest-ranked card whose mandatory themes are all carried elsewhere."""
    for index in range(len(high) - 1, -1, -1):
        card = high[index]
        others = [c for i, c in enumerate(high) if i != index]
        sole = [
            t for t in card.themes
            if t in mandatory and not any(t in c.themes for c in others)
        ]
        if not sole:
            return index
    return -1


def repair_coverage(
    high: list[EvidenceCard],
    ordered: list[EvidenceCard],
    profile: DistillationProfile,
    limit: int,
) -> tuple[list[EvidenceCard], list[str]]:
    """
    Make sure each mandatory theme with a surviving card is in the pack.

    The best card of an absent theme is promoted, regardless of role if
    needed; when the pack is full it displaces the lowest-ranked card that
    is not the only carrier of another mandatory theme.
    """
    high = list(high)
    promoted: list[str] = []
    for theme in profile.mandatory_themes:
        if any(theme in c.themes for c in high):
            continue
        best = next((c for c in ordered if theme in c.themes), None)
        if best is None:
            continue
        if len(high) >= limit:
            index = _replaceable_index(high, profile.mandatory_themes)
            if index >= 0:
                del high[index]
        high.append(best)
        promoted.append(theme)
    high.sort(key=pack_order)
    return high, promoted


def count_themes(cards: list[EvidenceCard], profile: DistillationProfile) -> dict[str, int]:
    """Theme → card count; mandatory themes first, then others alphabetically."""
    counts: Counter = Counter()
    for card in cards:
        counts.update(card.themes)
    ordered: dict[str, int] = {}
    for theme in profile.mandatory_themes:
        if counts.get(theme):
            ordered[theme] = counts[theme]
    for theme in sorted(counts):
        if theme not in ordered:
            ordered[theme] = counts[theme]
    return ordered


def pack_tiers(
    cards: list[EvidenceCard],
    profile: DistillationProfile,
) -> StageResult[TieredEvidence]:
    """
    Split cards into the high-signal and context packs.

    ``theme_counts`` is derived from the high-signal pack only.
    """
    ordered = sorted(cards, key=pack_order)
    high_limit = profile.high_signal_target + profile.high_signal_tolerance
    context_limit = profile.context_target + profile.context_tolerance

    high = [c for c in ordered if c.role in HIGH_SIGNAL_ROLES][:high_limit]
    high, promoted = repair_coverage(high, ordered, profile, high_limit)

    high_ids = {c.id for c in high}
    remaining = [c for c in ordered if c.id not in high_ids]
    context = [c.to_context_card() for c in remaining[:context_limit]]

    evidence = TieredEvidence(
        high_signal=high,
        context=context,
        theme_counts=count_themes(high, profile),
    )

    notes = []
    if promoted:
        notes.append(f"Promoted cards to cover: {', '.join(promoted)}")
    if len(high) < profile.high_signal_target - profile.high_signal_tolerance:
        notes.append(
            f"High-signal pack below target: {len(high)} < "
            f"{profile.high_signal_target - profile.high_signal_tolerance}"
        )

    logger.info(
        f"PACKS: high_signal={len(high)} context={len(context)} "
        f"themes={len(evidence.theme_counts)} (dropped {max(0, len(remaining) - context_limit)})"
    )

    return StageResult(
        value=evidence,
        severity=Severity.OK,
        notes=notes,
        stats={
            "high_signal_count": len(high),
            "context_count": len(context),
            "promoted_themes": promoted,
        },
    )
