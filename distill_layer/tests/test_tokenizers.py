"""
Tests for text normalization, similarity and fingerprints.

Dedup and novelty depend on:
- punctuation being stripped, not replaced
- short words being ignored by the similarity word sets
- fingerprints being insensitive to case, whitespace and punctuation
"""

from ..src.tokenizers import (
    contains_term,
    content_fingerprint,
    jaccard_similarity,
    normalize_text,
    shingles,
    word_set,
)


class TestNormalization:
    """Tests for normalize_text and word_set."""

    def test_punctuation_is_removed_without_spacing(self):
        """Hyphenated words collapse into one token."""
        assert normalize_text("E-mail  Security,  NOW!") == "email security now"

    def test_short_words_are_ignored(self):
        """Words of two characters or fewer do not count."""
        assert word_set("An IT gap in the SOC") == {"gap", "the", "soc"}


class TestJaccard:
    """Tests for jaccard_similarity."""

    def test_identical_texts(self):
        """Same words give similarity 1."""
        assert jaccard_similarity("Zero trust rollout", "zero TRUST rollout.") == 1.0

    def test_partial_overlap(self):
        """Two shared words out of four distinct ones."""
        assert jaccard_similarity("alpha beta gamma", "beta gamma delta") == 0.5

    def test_empty_side_is_zero(self):
        """No usable words on either side means no similarity."""
        assert jaccard_similarity("", "zero trust") == 0.0
        assert jaccard_similarity("a b", "a b") == 0.0


class TestFingerprint:
    """Tests for content_fingerprint."""

    def test_whitespace_and_punctuation_insensitive(self):
        """Texts differing only by spacing and punctuation collide."""
        a = "The agency shall deploy MFA by FY2025."
        b = "The  agency shall deploy MFA, by FY2025"
        assert content_fingerprint(a) == content_fingerprint(b)

    def test_different_texts_differ(self):
        """Different content gives different fingerprints."""
        assert content_fingerprint("Deploy MFA now") != content_fingerprint("Deploy EDR now")

    def test_format(self):
        """first_middle_last_count over 5-char shingles."""
        fingerprint = content_fingerprint("abcdefg")
        assert fingerprint == "abcde_bcdef_cdefg_3"

    def test_short_text(self):
        """Texts shorter than one shingle fingerprint to themselves."""
        assert content_fingerprint("A.b") == "ab"
        assert shingles("ab") == ["ab"]


class TestContainsTerm:
    """Tests for boundary-aware term matching."""

    def test_word_boundaries(self):
        """A term inside a longer word does not match."""
        assert contains_term("Security Operations Center (SOC)", "SOC")
        assert not contains_term("social engineering", "SOC")

    def test_terms_ending_in_punctuation(self):
        """Terms like 'OMB M-' match a following memo number."""
        assert contains_term("per OMB M-22-09 guidance", "OMB M-")
        assert contains_term("8(a) set-aside awards", "8(a)")

    def test_case_sensitive_mode(self):
        """Uppercase identifiers can be matched case-sensitively."""
        assert contains_term("the DOC CIO", "DOC", ignore_case=False)
        assert not contains_term("see the doc", "DOC", ignore_case=False)

    def test_blank_term(self):
        """Blank terms never match."""
        assert not contains_term("anything", "  ")
