"""Tests for two-pass near-duplicate removal."""

from ..src.cards import build_cards
from ..src.chunk_text import chunk_documents
from ..src.dedup import dedup_pass, deduplicate, prefers
from ..src.loaders import documents_from_texts
from ..src.relevance import filter_chunks
from ..src.themes import tag_cards
from ..src.schemas.card import Confidence
from ..src.schemas.profile import DedupThresholds


WORDS = "alpha bravo charlie delta echo foxtrot golf hotel india juliet".split()
SHORT = "bureau staff must patch critical servers within days"


class TestPrefers:
    """Tests for the collision tie-break."""

    def test_confidence_first(self, card_factory):
        high = card_factory("a.txt:1:0", "x", total=1.0, confidence=Confidence.HIGH)
        medium = card_factory("b.txt:1:0", "x", total=3.0)
        assert prefers(high, medium)
        assert not prefers(medium, high)

    def test_total_second(self, card_factory):
        better = card_factory("a.txt:1:0", "x", total=2.5)
        worse = card_factory("b.txt:1:0", "x", total=2.0)
        assert prefers(better, worse)
        assert not prefers(worse, better)

    def test_different_document_last(self, card_factory):
        """A full tie goes to a card from another document."""
        kept = card_factory("a.txt:1:0", "x")
        assert prefers(card_factory("b.txt:1:0", "x"), kept)
        assert not prefers(card_factory("a.txt:2:500", "x", span=(500, 600)), kept)


class TestDedupPass:
    """Tests for a single greedy pass."""

    def test_replacement_must_beat_every_match(self, card_factory):
        """A card colliding with two kept cards replaces neither unless it wins both."""
        a = card_factory("a.txt:1:0", " ".join(WORDS[:8]), total=1.0)
        b = card_factory("b.txt:1:0", " ".join(WORDS[2:]), total=3.0)
        c = card_factory("c.txt:1:0", " ".join(WORDS), total=2.0)
        result = dedup_pass([a, b, c], threshold=0.7, relaxation=0.0)
        assert [k.id for k in result.kept] == ["a.txt:1:0", "b.txt:1:0"]
        assert [d.id for d in result.dropped] == ["c.txt:1:0"]

    def test_winner_replaces_all_matches(self, card_factory):
        a = card_factory("a.txt:1:0", " ".join(WORDS[:8]), total=1.0)
        b = card_factory("b.txt:1:0", " ".join(WORDS[2:]), total=3.0)
        c = card_factory("c.txt:1:0", " ".join(WORDS), total=4.0)
        result = dedup_pass([a, b, c], threshold=0.7, relaxation=0.0)
        assert [k.id for k in result.kept] == ["c.txt:1:0"]
        assert len(result.dropped) == 2


class TestDeduplicate:
    """Tests for the within-theme and global passes."""

    def test_fingerprint_duplicates(self, card_factory):
        """Identical quotes collide without a similarity check."""
        quote = "Bureaus must deploy EDR on all endpoints."
        cards = [
            card_factory("a.txt:1:0", quote, themes=["IR/SOC"]),
            card_factory("b.txt:1:0", quote.upper(), themes=["IR/SOC"]),
        ]
        result = deduplicate(cards, DedupThresholds())
        assert len(result.value) == 1
        assert result.value[0].id == "b.txt:1:0"
        assert result.report.exact_duplicates == 1
        assert result.report.dropped_count == 1

    def test_higher_confidence_survives(self, card_factory):
        base = " ".join(WORDS)
        cards = [
            card_factory("a.txt:1:0", base, themes=["CDM"]),
            card_factory("b.txt:1:0", base + " kilo", themes=["CDM"], confidence=Confidence.HIGH),
        ]
        result = deduplicate(cards, DedupThresholds())
        assert [c.id for c in result.value] == ["b.txt:1:0"]

    def test_same_source_overlap_is_relaxed(self, card_factory):
        """Similarity 0.8 is a duplicate only for overlapping spans of one document."""
        longer = SHORT + " every quarter"
        overlapping = [
            card_factory("a.txt:1:0", SHORT, themes=["CDM"], span=(0, 100)),
            card_factory("a.txt:1:50", longer, themes=["CDM"], span=(50, 150)),
        ]
        separate = [
            card_factory("a.txt:1:0", SHORT, themes=["CDM"]),
            card_factory("b.txt:1:0", longer, themes=["CDM"]),
        ]
        assert len(deduplicate(overlapping, DedupThresholds()).value) == 1
        assert len(deduplicate(separate, DedupThresholds()).value) == 2

    def test_global_pass_crosses_themes(self, card_factory):
        """Duplicates with different primary themes are caught by pass 2."""
        quote = "Agencies shall report CDM dashboard data to CISA."
        cards = [
            card_factory("a.txt:1:0", quote, themes=["Zero Trust"], total=2.5),
            card_factory("b.txt:1:0", quote, themes=["CDM"], total=2.0),
        ]
        result = deduplicate(cards, DedupThresholds())
        assert [c.id for c in result.value] == ["a.txt:1:0"]
        assert result.stats["after_within_theme"] == 2
        assert result.report.dropped_by_theme == {"CDM": 1}

    def test_idempotent(self, card_factory):
        """Deduplicating the output again drops nothing."""
        cards = [
            card_factory("a.txt:1:0", " ".join(WORDS[:8]), themes=["CDM"], total=1.0),
            card_factory("b.txt:1:0", " ".join(WORDS[2:]), themes=["CDM"], total=3.0),
            card_factory("c.txt:1:0", " ".join(WORDS), themes=["IR/SOC"], total=2.0),
            card_factory("d.txt:1:0", SHORT, themes=["IR/SOC"]),
            card_factory("e.txt:1:0", SHORT, themes=["CDM"]),
        ]
        thresholds = DedupThresholds()
        once = deduplicate(cards, thresholds).value
        twice = deduplicate(once, thresholds)
        assert [c.id for c in twice.value] == [c.id for c in once]
        assert twice.report.dropped_count == 0


class TestChunkDuplicates:
    """Chunks differing only in whitespace or punctuation, run through the stages."""

    def test_reduce_to_the_higher_confidence_card(self, profile, created_at):
        """The authoritative source's card replaces the earlier copy."""
        docs = documents_from_texts({
            "team_notes.txt": "Bureaus must deploy phishing-resistant MFA for all privileged users by FY2025.",
            "DOC_OIG_2025.txt": "Bureaus  must deploy phishing resistant MFA, for all privileged users by FY2025!",
        })
        kept = filter_chunks(chunk_documents(docs), profile).value
        cards = build_cards(kept, profile, created_at).value
        assert len(cards) == 2
        assert cards[0].content_fingerprint == cards[1].content_fingerprint

        tagged = tag_cards(cards, profile).value
        result = deduplicate(tagged, profile.dedup)
        assert len(result.value) == 1
        survivor = result.value[0]
        assert survivor.source.document_id == "DOC_OIG_2025.txt"
        assert survivor.confidence == Confidence.HIGH
        assert result.report.exact_duplicates == 1
