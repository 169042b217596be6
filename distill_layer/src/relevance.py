"""
Relevance filter for chunks.

Two checks, applied in order:
1. Boilerplate: a chunk under a table-of-contents / glossary / bibliography
   style heading (or opening with one) is dropped, unless it carries an
   always-keep term, a configured mandate phrase or a mandate verb.
2. Relevance: a surviving chunk is kept only if it mentions the target,
   one of its organizational units, a configured signal, a mandatory
   theme anchor, a currency amount or procurement term, or a mandate verb.

Every check is a pure function of (chunk, profile).
"""

import logging
import re
from typing import Optional

from .schemas.chunk import Chunk
from .schemas.profile import DistillationProfile
from .schemas.report import Severity, StageResult
from .tokenizers import contains_term


logger = logging.getLogger(__name__)

MANDATE_VERB_PATTERN = re.compile(r"\b(shall|must|required|mandatory)\b", re.IGNORECASE)
CURRENCY_PATTERN = re.compile(
    r"\$\s*\d[\d,]*(?:\.\d+)?\s*(?:thousand|million|billion|[kmb]\b)?",
    re.IGNORECASE,
)
PROCUREMENT_PATTERN = re.compile(
    r"\b(contract|procurement|acquisition|obligation|award)\b",
    re.IGNORECASE,
)
LEADING_NUMBERING = re.compile(r"^\s*(?:\d+(?:\.\d+)*|[ivxlc]+|[a-z])[.)]\s+", re.IGNORECASE)


def has_mandate_verb(text: str) -> bool:
    return MANDATE_VERB_PATTERN.search(text) is not None


def _matches_skip(text: str, skip: tuple[str, ...], at_start: bool) -> Optional[str]:
    for pattern in skip:
        if at_start:
            if re.match(rf"{re.escape(pattern)}\b", text):
                return pattern
        elif contains_term(text, pattern):
            return pattern
    return None


def is_boilerplate(chunk: Chunk, profile: DistillationProfile) -> Optional[str]:
    """
    Return the skip pattern the chunk's heading or opening text matches.

    The heading is the last heading line carried forward by the chunker;
    the opening text is the chunk's own first line with list numbering
    removed.
    """
    skip = tuple(p.lower() for p in profile.filter_patterns.skip)
    if not skip:
        return None

    heading = (chunk.heading or "").lower()
    if heading:
        matched = _matches_skip(heading, skip, at_start=False)
        if matched:
            return matched

    opening = LEADING_NUMBERING.sub("", chunk.opening_text)
    return _matches_skip(opening, skip, at_start=True)


def has_override(text: str, profile: DistillationProfile) -> bool:
    """
    Always-keep terms, mandate phrases, mandatory theme anchors and mandate
    verbs rescue boilerplate.

    A carried boilerplate heading (APPENDIX, REFERENCES) can span many
    paragraphs.
    """
    for term in profile.filter_patterns.always_keep:
        if contains_term(text, term):
            return True
    for anchors in profile.anchor_terms().values():
        for anchor in anchors:
            if contains_term(text, anchor):
                return True
    for phrase in profile.mandate_phrases:
        if contains_term(text, phrase):
            return True
    return has_mandate_verb(text)


def match_organizational_unit(text: str, profile: DistillationProfile) -> Optional[str]:
    """First configured organizational unit mentioned in the text."""
    for unit in profile.organizational_units:
        if contains_term(text, unit, ignore_case=not unit.isupper()):
            return unit
    return None


def mentions_target(text: str, profile: DistillationProfile) -> bool:
    if contains_term(text, profile.target_id, ignore_case=False):
        return True
    if profile.target_name and contains_term(text, profile.target_name):
        return True
    return False


def relevance_reason(chunk: Chunk, profile: DistillationProfile) -> Optional[str]:
    """Name of the first relevance rule the chunk satisfies, or None."""
    text = chunk.text

    if mentions_target(text, profile):
        return "target"
    if match_organizational_unit(text, profile):
        return "organizational_unit"
    for signal in profile.signals.all_signals():
        if contains_term(text, signal):
            return "signal"
    for anchors in profile.anchor_terms().values():
        for anchor in anchors:
            if contains_term(text, anchor):
                return "theme_anchor"
    if CURRENCY_PATTERN.search(text) or PROCUREMENT_PATTERN.search(text):
        return "budget"
    if has_mandate_verb(text):
        return "mandate_verb"
    return None


def should_keep(chunk: Chunk, profile: DistillationProfile) -> bool:
    """Filter decision for a single chunk."""
    if is_boilerplate(chunk, profile) and not has_override(chunk.text, profile):
        return False
    return relevance_reason(chunk, profile) is not None


def filter_chunks(chunks: list[Chunk], profile: DistillationProfile) -> StageResult[list[Chunk]]:
    """
    Apply the boilerplate and relevance checks to every chunk.

    Returns:
        StageResult with the kept chunks (input order preserved) and
        drop counts by reason in ``stats``.
    """
    kept: list[Chunk] = []
    dropped_boilerplate = 0
    dropped_irrelevant = 0

    for chunk in chunks:
        if is_boilerplate(chunk, profile) and not has_override(chunk.text, profile):
            dropped_boilerplate += 1
            continue
        if relevance_reason(chunk, profile) is None:
            dropped_irrelevant += 1
            continue
        kept.append(chunk)

    stats = {
        "chunks_processed": len(chunks),
        "chunks_kept": len(kept),
        "chunks_dropped": len(chunks) - len(kept),
        "dropped_boilerplate": dropped_boilerplate,
        "dropped_irrelevant": dropped_irrelevant,
    }
    logger.info(
        f"FILTER: kept {len(kept)}/{len(chunks)} chunks "
        f"({dropped_boilerplate} boilerplate, {dropped_irrelevant} irrelevant)"
    )

    notes = []
    severity = Severity.OK
    if chunks and not kept:
        severity = Severity.POOR
        notes.append("No chunk passed the relevance filter")

    return StageResult(value=kept, severity=severity, notes=notes, stats=stats)
