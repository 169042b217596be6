"""
Two-pass near-duplicate removal.

Pass 1 (within-theme): cards grouped by primary theme are compared
against the cards already kept in their group.
Pass 2 (global): the surviving set is compared across themes with a
looser threshold.

Two cards are duplicates when their content fingerprints collide (fast
path, no similarity computed) or their word-set Jaccard similarity
exceeds the threshold. Cards from the same document with overlapping
byte spans use a relaxed threshold.

Tie-break when a new card collides with kept cards, in order:
    higher confidence tier > higher total > different source document
The new card replaces the kept ones only if it wins against all of them.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field

from .schemas.card import EvidenceCard
from .schemas.profile import DedupThresholds
from .schemas.report import DedupReport, Severity, StageResult
from .tokenizers import jaccard_similarity


logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Outcome of one dedup pass."""
    kept: list[EvidenceCard] = field(default_factory=list)
    dropped: list[EvidenceCard] = field(default_factory=list)
    exact_duplicates: int = 0


def effective_threshold(a: EvidenceCard, b: EvidenceCard, threshold: float, relaxation: float) -> float:
    """Relax the threshold for overlapping spans of the same document."""
    if a.source.overlaps(b.source):
        return max(0.0, threshold - relaxation)
    return threshold


def match_kind(
    new: EvidenceCard,
    kept: EvidenceCard,
    threshold: float,
    relaxation: float,
) -> str:
    """Return "exact", "similar" or "" for a pair of cards."""
    if new.content_fingerprint and new.content_fingerprint == kept.content_fingerprint:
        return "exact"
    similarity = jaccard_similarity(new.quote, kept.quote)
    if similarity > effective_threshold(new, kept, threshold, relaxation):
        return "similar"
    return ""


def prefers(new: EvidenceCard, kept: EvidenceCard) -> bool:
    """Whether ``new`` should replace ``kept`` when they collide."""
    if new.confidence.rank != kept.confidence.rank:
        return new.confidence.rank > kept.confidence.rank
    if new.total != kept.total:
        return new.total > kept.total
    return new.document_id != kept.document_id


def dedup_pass(cards: list[EvidenceCard], threshold: float, relaxation: float) -> PassResult:
    """
    Single greedy pass over ``cards`` in order.

    The kept list stays pairwise non-duplicate, so running the pass again
    on its own output drops nothing.
    """
    result = PassResult()

    for card in cards:
        matches: list[int] = []
        exact = False
        for index, kept in enumerate(result.kept):
            kind = match_kind(card, kept, threshold, relaxation)
            if kind:
                matches.append(index)
                exact = exact or kind == "exact"

        if not matches:
            result.kept.append(card)
            continue

        if exact:
            result.exact_duplicates += 1

        if all(prefers(card, result.kept[i]) for i in matches):
            first = matches[0]
            result.dropped.extend(result.kept[i] for i in matches)
            result.kept[first] = card
            for index in reversed(matches[1:]):
                del result.kept[index]
        else:
            result.dropped.append(card)

    return result


def group_by_primary_theme(cards: list[EvidenceCard]) -> dict[str, list[EvidenceCard]]:
    """Group cards by primary theme, in first-seen theme order."""
    groups: dict[str, list[EvidenceCard]] = {}
    for card in cards:
        groups.setdefault(card.primary_theme, []).append(card)
    return groups


def deduplicate(
    cards: list[EvidenceCard],
    thresholds: DedupThresholds,
) -> StageResult[list[EvidenceCard]]:
    """
    Run the within-theme pass followed by the global pass.

    Cards must already carry themes.

    Returns:
        StageResult with surviving cards and a DedupReport
    """
    relaxation = thresholds.same_source_relaxation
    dropped_by_theme: Counter = Counter()
    exact_total = 0

    after_theme_pass: list[EvidenceCard] = []
    for theme, group in group_by_primary_theme(cards).items():
        outcome = dedup_pass(group, thresholds.within_theme, relaxation)
        after_theme_pass.extend(outcome.kept)
        exact_total += outcome.exact_duplicates
        if outcome.dropped:
            dropped_by_theme[theme] += len(outcome.dropped)
        logger.debug(
            f"DEDUP: theme {theme}: {len(group)} → {len(outcome.kept)} "
            f"(dropped {len(outcome.dropped)})"
        )

    global_outcome = dedup_pass(after_theme_pass, thresholds.global_threshold, relaxation)
    exact_total += global_outcome.exact_duplicates
    for card in global_outcome.dropped:
        dropped_by_theme[card.primary_theme] += 1

    kept = global_outcome.kept
    dropped_count = len(cards) - len(kept)
    logger.info(
        f"DEDUP: {len(cards)} → {len(after_theme_pass)} within-theme → {len(kept)} global "
        f"(dropped {dropped_count}, exact {exact_total})"
    )

    report = DedupReport(
        similarity_threshold=thresholds.global_threshold,
        within_theme_threshold=thresholds.within_theme,
        dropped_count=dropped_count,
        kept_count=len(kept),
        exact_duplicates=exact_total,
        dropped_by_theme=dict(sorted(dropped_by_theme.items())),
    )
    return StageResult(
        value=kept,
        severity=Severity.OK,
        stats={
            "before": len(cards),
            "after_within_theme": len(after_theme_pass),
            "after_global": len(kept),
        },
        report=report,
    )
