"""
Text normalization for similarity and fingerprinting.

Dedup and novelty compare cards lexically, so both need the same
normalization:
- lowercase, punctuation stripped (not replaced), whitespace collapsed
- word sets ignore tokens of two characters or fewer

Examples:
    "Shall implement MFA, by FY2025." → {"shall", "implement", "mfa", "fy2025"}
    "e-mail" → {"email"}
    content_fingerprint("The agency shall...") → "theag_..._..._N"
"""

import re
from functools import lru_cache


PUNCTUATION_PATTERN = re.compile(r"[^a-z0-9\s]")
NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]")
WHITESPACE_PATTERN = re.compile(r"\s+")

SHINGLE_SIZE = 5
MIN_WORD_LENGTH = 3


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    stripped = PUNCTUATION_PATTERN.sub("", text.lower())
    return WHITESPACE_PATTERN.sub(" ", stripped).strip()


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def word_set(text: str, min_length: int = MIN_WORD_LENGTH) -> frozenset[str]:
    """Set of normalized words of at least ``min_length`` characters."""
    return frozenset(
        word for word in normalize_text(text).split(" ")
        if len(word) >= min_length
    )


def jaccard_similarity(a: str, b: str) -> float:
    """
    Jaccard index of the normalized word sets of two texts.

    Returns 0.0 when either side has no usable words.
    """
    words_a = word_set(a)
    words_b = word_set(b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def shingles(text: str, size: int = SHINGLE_SIZE) -> list[str]:
    """Ordered character shingles over the alphanumeric-only text."""
    compact = NON_ALNUM_PATTERN.sub("", text.lower())
    if len(compact) < size:
        return [compact] if compact else []
    return [compact[i:i + size] for i in range(len(compact) - size + 1)]


def content_fingerprint(text: str) -> str:
    """
    Cheap order-sensitive digest of a text.

    Built from the first, middle and last 5-character shingle plus the
    shingle count. Texts differing only in case, whitespace or punctuation
    share a fingerprint. Not a cryptographic hash; only used as an
    exact-duplicate fast path ahead of similarity comparison.
    """
    compact = NON_ALNUM_PATTERN.sub("", text.lower())
    if len(compact) < SHINGLE_SIZE:
        return compact
    grams = shingles(compact)
    first = grams[0]
    middle = grams[len(grams) // 2]
    last = grams[-1]
    return f"{first}_{middle}_{last}_{len(grams)}"


@lru_cache(maxsize=4096)
def term_pattern(term: str, ignore_case: bool = True) -> re.Pattern:
    """
    Compile a literal term into a regex bounded by non-alphanumerics.

    Unlike ``\\b`` this also works for terms that start or end with
    punctuation, such as "$", "8(a)" or "OMB M-". A boundary is only
    required on a side where the term itself ends in a letter or digit.
    """
    flags = re.IGNORECASE if ignore_case else 0
    term = term.strip()
    head = r"(?<![A-Za-z0-9])" if term[:1].isalnum() else ""
    tail = r"(?![A-Za-z0-9])" if term[-1:].isalnum() else ""
    return re.compile(f"{head}{re.escape(term)}{tail}", flags)


def contains_term(text: str, term: str, ignore_case: bool = True) -> bool:
    if not term.strip():
        return False
    return term_pattern(term, ignore_case).search(text) is not None
