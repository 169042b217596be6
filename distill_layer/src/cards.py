"""
Evidence card builder.

One card per surviving chunk:
1. Pick the quote: the shortest sentence (<= 220 chars) with the most
   scoring keywords; sentences carrying a mandatory theme anchor win
2. Score the chunk and infer class / role / confidence / CSF function
3. Fingerprint the quote for the dedup fast path
4. Cap each document at ``max_per_document`` cards by descending total
"""

import logging
import re
from datetime import datetime
from typing import Optional

from .relevance import mentions_target
from .schemas.card import (
    MAX_CLAIM_CHARS,
    MAX_QUOTE_CHARS,
    CardRole,
    CardSource,
    Confidence,
    EvidenceCard,
)
from .schemas.chunk import Chunk
from .schemas.profile import DistillationProfile
from .schemas.report import ProcurementMetrics, Severity, StageResult
from .scoring import (
    detect_source_type,
    infer_class,
    infer_confidence,
    infer_function_tag,
    infer_role,
    infer_timeframe,
    score_evidence,
)
from .tokenizers import (
    collapse_whitespace,
    contains_term,
    content_fingerprint,
    jaccard_similarity,
    term_pattern,
)


logger = logging.getLogger(__name__)

GENERAL_TARGET = "GENERAL"
PROCUREMENT_DOCUMENT_ID = "procurement_metrics"

SENTENCE_END = re.compile(r"[.!?]+(?=\s|$)")
INITIALISM = re.compile(r"(?:[A-Za-z]\.)+[A-Za-z]")
ABBREVIATIONS = frozenset({
    "mr", "mrs", "ms", "dr", "no", "sec", "secs", "dept", "inc", "corp",
    "co", "vs", "fig", "gen", "gov", "st", "jr", "sr", "approx", "pub",
})
MIN_SENTENCE_CHARS = 20
ANCHOR_LEAD_CHARS = 60

QUOTE_KEYWORD_PATTERNS = (
    re.compile(r"\b(shall|must|required|mandatory)\b", re.IGNORECASE),
    re.compile(r"\$\s*[\d,]+(?:\.\d+)?\s*(million|billion)\b", re.IGNORECASE),
    re.compile(r"\b(critical|priority|essential|key)\b", re.IGNORECASE),
    re.compile(r"\b(gap|weakness|issue|risk|vulnerability)\b", re.IGNORECASE),
    re.compile(r"\b(fy\s*20\d{2}|q[1-4]\s*20\d{2})\b", re.IGNORECASE),
)


def truncate_on_word_boundary(text: str, max_chars: int) -> str:
    """Cut text to at most ``max_chars`` characters, ending in '...'."""
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars - 3]
    last_space = cut.rfind(" ")
    if last_space > max_chars * 0.7:
        cut = cut[:last_space]
    return cut.rstrip() + "..."


def _ends_in_abbreviation(head: str) -> bool:
    words = head.split()
    if not words:
        return False
    token = words[-1].lstrip("([\"'")
    return token.lower() in ABBREVIATIONS or INITIALISM.fullmatch(token) is not None


def split_sentences(text: str) -> list[str]:
    """
    Split text into sentences.

    A sentence ends at '.', '!' or '?' followed by whitespace or the end
    of the text, so decimals ("$2.5 billion") stay whole. Periods closing
    an abbreviation ("U.S.", "Dept.") do not end a sentence. Trailing
    text without closing punctuation is the last sentence.
    """
    sentences: list[str] = []
    start = 0
    for match in SENTENCE_END.finditer(text):
        if match.group() == "." and _ends_in_abbreviation(text[start:match.start()]):
            continue
        sentence = text[start:match.end()].strip()
        if sentence:
            sentences.append(sentence)
        start = match.end()
    tail = text[start:].strip()
    if tail:
        sentences.append(tail)
    return sentences


def _keyword_hits(sentence: str) -> int:
    return sum(1 for pattern in QUOTE_KEYWORD_PATTERNS if pattern.search(sentence))


def _first_anchor(text: str, anchors: tuple[str, ...]) -> Optional[re.Match]:
    found = None
    for anchor in anchors:
        if not anchor.strip():
            continue
        match = term_pattern(anchor).search(text)
        if match and (found is None or match.start() < found.start()):
            found = match
    return found


def extract_quote(
    text: str,
    anchors: tuple[str, ...] = (),
    max_chars: int = MAX_QUOTE_CHARS,
) -> str:
    """
    Extract a short verbatim quote from chunk text.

    Sentences longer than 20 characters that fit in ``max_chars`` compete
    on keyword density (anchor terms first), then on length. When no
    sentence fits, the text is truncated on a word boundary, starting
    just before the first anchor term if there is one.

    Returns:
        Quote of at most ``max_chars`` characters (empty for blank text)
    """
    flat = collapse_whitespace(text)
    if not flat:
        return ""

    sentences = split_sentences(flat) or [flat]

    candidates = [
        s for s in sentences
        if MIN_SENTENCE_CHARS < len(s) <= max_chars
    ]
    if candidates:
        def rank(sentence: str) -> tuple[int, int, int]:
            anchored = 1 if _first_anchor(sentence, anchors) else 0
            return (-anchored, -_keyword_hits(sentence), len(sentence))

        return min(candidates, key=rank)

    anchor = _first_anchor(flat, anchors)
    if anchor and anchor.start() > 0:
        start = max(0, anchor.start() - ANCHOR_LEAD_CHARS)
        space = flat.find(" ", start, anchor.start())
        if start > 0 and space != -1:
            start = space + 1
        return truncate_on_word_boundary(flat[start:], max_chars)

    return truncate_on_word_boundary(flat, max_chars)


def make_claim(quote: str) -> str:
    if len(quote) <= MAX_CLAIM_CHARS:
        return quote
    return quote[:MAX_CLAIM_CHARS - 3] + "..."


def _all_anchors(profile: DistillationProfile) -> tuple[str, ...]:
    anchors: list[str] = []
    for terms in profile.anchor_terms().values():
        anchors.extend(terms)
    return tuple(anchors)


def build_card(
    chunk: Chunk,
    profile: DistillationProfile,
    created_at: datetime,
    anchors: Optional[tuple[str, ...]] = None,
) -> Optional[EvidenceCard]:
    """
    Build one evidence card from a chunk.

    Returns None when the chunk yields no quote.
    """
    if anchors is None:
        anchors = _all_anchors(profile)

    quote = extract_quote(chunk.text, anchors)
    if not quote:
        return None

    text = chunk.text
    breakdown = score_evidence(text, profile)
    target = profile.target_id if mentions_target(text, profile) else GENERAL_TARGET

    return EvidenceCard(
        id=f"{chunk.document_id}:{chunk.page or 0}:{chunk.byte_offset}",
        content_fingerprint=content_fingerprint(quote),
        created_at=created_at,
        target_profile=target,
        organizational_unit=breakdown.organizational_unit,
        quote=quote,
        claim=make_claim(quote),
        function_tag=infer_function_tag(text),
        card_class=infer_class(text),
        role=infer_role(text),
        confidence=infer_confidence(text, chunk.document_id),
        timeframe=infer_timeframe(text, created_at.year),
        source_type=detect_source_type(f"{chunk.document_id} {text}"),
        scores=breakdown.to_scores(),
        source=CardSource(
            document_id=chunk.document_id,
            page=chunk.page,
            section_hint=chunk.heading,
            span_start=chunk.byte_offset,
            span_end=chunk.span_end,
        ),
    )


def novelty_against(card: EvidenceCard, earlier: list[EvidenceCard]) -> float:
    """1 - max similarity against earlier cards of the same document."""
    if not earlier:
        return 1.0
    highest = max(jaccard_similarity(card.quote, other.quote) for other in earlier)
    return round(1.0 - highest, 4)


def cap_per_document(
    cards: list[EvidenceCard],
    profile: DistillationProfile,
) -> list[EvidenceCard]:
    """
    Keep at most ``max_per_document`` cards by descending total.

    The best card quoting each mandatory theme's anchor terms is reserved
    before the remaining slots are filled.
    """
    ranked = sorted(cards, key=lambda c: -c.total)
    limit = profile.max_per_document
    if len(ranked) <= limit:
        return ranked

    reserved: list[EvidenceCard] = []
    for anchors in profile.anchor_terms().values():
        for card in ranked:
            if any(contains_term(card.quote, a) for a in anchors if a.strip()):
                if card.id not in {r.id for r in reserved}:
                    reserved.append(card)
                break

    selected_ids = {c.id for c in reserved[:limit]}
    for card in ranked:
        if len(selected_ids) >= limit:
            break
        selected_ids.add(card.id)

    return [c for c in ranked if c.id in selected_ids]


def build_cards(
    chunks: list[Chunk],
    profile: DistillationProfile,
    created_at: datetime,
) -> StageResult[list[EvidenceCard]]:
    """
    Build, annotate and per-document-cap cards for all kept chunks.

    Documents are processed in first-seen order; card order within a
    document is by descending total.
    """
    anchors = _all_anchors(profile)
    by_document: dict[str, list[EvidenceCard]] = {}

    generated = 0
    for chunk in chunks:
        card = build_card(chunk, profile, created_at, anchors)
        if card is None:
            continue
        earlier = by_document.setdefault(chunk.document_id, [])
        card = card.model_copy(update={"novelty": novelty_against(card, earlier)})
        earlier.append(card)
        generated += 1

    capped: list[EvidenceCard] = []
    capped_out = 0
    for document_id, doc_cards in by_document.items():
        kept = cap_per_document(doc_cards, profile)
        capped_out += len(doc_cards) - len(kept)
        capped.extend(kept)
        logger.debug(f"CARDS: {document_id}: {len(doc_cards)} → {len(kept)}")

    logger.info(f"CARDS: generated {generated}, kept {len(capped)} after per-document cap")

    notes = []
    if capped_out:
        notes.append(f"{capped_out} cards dropped by the per-document cap ({profile.max_per_document})")

    return StageResult(
        value=capped,
        severity=Severity.OK,
        notes=notes,
        stats={"cards_generated": generated, "cards_capped": capped_out},
    )


def build_procurement_card(
    metrics: ProcurementMetrics,
    profile: DistillationProfile,
    created_at: datetime,
) -> Optional[EvidenceCard]:
    """
    Summarise a procurement metrics record as a single metric card.

    Returns None when the record carries no contract value.
    """
    if metrics.total_value <= 0:
        return None

    quote = (
        f"Procurement data shows ${metrics.total_value / 1_000_000:,.1f} million "
        f"across {metrics.active_contracts} active contracts, "
        f"{metrics.growth_rate:+.1f}% growth and "
        f"{metrics.small_business_percentage:.1f}% small business share."
    )
    if metrics.vehicle_distribution:
        top_vehicle = max(metrics.vehicle_distribution.items(), key=lambda kv: (kv[1], kv[0]))[0]
        quote = f"{quote[:-1]}; top vehicle {top_vehicle}."
    quote = truncate_on_word_boundary(quote, MAX_QUOTE_CHARS)

    breakdown = score_evidence(quote, profile)
    document_id = metrics.source_name or PROCUREMENT_DOCUMENT_ID
    return EvidenceCard(
        id=f"{document_id}:0:0",
        content_fingerprint=content_fingerprint(quote),
        created_at=created_at,
        target_profile=profile.target_id,
        quote=quote,
        claim=make_claim(quote),
        function_tag=infer_function_tag(quote),
        card_class=infer_class(quote),
        role=CardRole.METRIC,
        confidence=Confidence.HIGH,
        source_type=detect_source_type(quote),
        scores=breakdown.to_scores(),
        source=CardSource(
            document_id=document_id,
            page=None,
            section_hint="Procurement metrics",
            span_start=0,
            span_end=len(quote.encode("utf-8")),
        ),
    )
