"""Tests for two-tier packing and coverage repair."""

import pytest

from ..src.packing import count_themes, pack_order, pack_tiers
from ..src.schemas.card import CardRole
from ..src.schemas.profile import DistillationProfile


@pytest.fixture
def small_pack() -> DistillationProfile:
    return DistillationProfile(
        target_id="test",
        mandatory_themes=("A", "B"),
        high_signal_target=2,
        high_signal_tolerance=0,
        context_target=5,
        context_tolerance=0,
    )


class TestPackOrder:
    """Tests for role priority ordering."""

    def test_role_before_total(self, card_factory):
        cards = [
            card_factory("e.txt:1:0", "e", role=CardRole.EVIDENCE, total=3.0),
            card_factory("m.txt:1:0", "m", role=CardRole.METRIC, total=1.0),
            card_factory("c.txt:1:0", "c", role=CardRole.CLAIM, total=2.0),
            card_factory("p.txt:1:0", "p", role=CardRole.COUNTERPOINT, total=3.0),
        ]
        ordered = sorted(cards, key=pack_order)
        assert [c.role for c in ordered] == [
            CardRole.CLAIM, CardRole.METRIC, CardRole.EVIDENCE, CardRole.COUNTERPOINT,
        ]


class TestPackTiers:
    """Tests for pack_tiers."""

    def test_high_signal_and_context(self, small_pack, card_factory):
        """The pack takes the first citable cards; the rest become context."""
        cards = [
            card_factory("e.txt:1:0", "evidence", themes=["A"], role=CardRole.EVIDENCE, total=3.0),
            card_factory("m.txt:1:0", "metric", themes=["A"], role=CardRole.METRIC, total=1.0),
            card_factory("c.txt:1:0", "claim", themes=["A"], role=CardRole.CLAIM, total=2.0),
            card_factory("p.txt:1:0", "counter", themes=["A"], role=CardRole.COUNTERPOINT, total=3.0),
        ]
        evidence = pack_tiers(cards, small_pack).value
        assert [c.id for c in evidence.high_signal] == ["c.txt:1:0", "m.txt:1:0"]
        assert [c.id for c in evidence.context] == ["e.txt:1:0", "p.txt:1:0"]
        assert evidence.context[0].theme == "A"
        assert evidence.theme_counts == {"A": 2}

    def test_coverage_repair_displaces_lowest(self, small_pack, card_factory):
        """An absent mandatory theme's best card is promoted into a full pack."""
        cards = [
            card_factory("c1.txt:1:0", "one", themes=["A"], role=CardRole.CLAIM, total=3.0),
            card_factory("c2.txt:1:0", "two", themes=["A"], role=CardRole.CLAIM, total=2.5),
            card_factory("e1.txt:1:0", "three", themes=["B"], role=CardRole.EVIDENCE, total=1.0),
        ]
        result = pack_tiers(cards, small_pack)
        high = result.value.high_signal
        assert [c.id for c in high] == ["c1.txt:1:0", "e1.txt:1:0"]
        assert result.stats["promoted_themes"] == ["B"]
        assert result.value.theme_counts == {"A": 1, "B": 1}
        assert [c.id for c in result.value.context] == ["c2.txt:1:0"]

    def test_counterpoint_promoted_when_only_carrier(self, small_pack, card_factory):
        cards = [
            card_factory("c1.txt:1:0", "one", themes=["A"], role=CardRole.CLAIM, total=3.0),
            card_factory("p1.txt:1:0", "two", themes=["B"], role=CardRole.COUNTERPOINT, total=1.0),
        ]
        high = pack_tiers(cards, small_pack).value.high_signal
        assert {c.id for c in high} == {"c1.txt:1:0", "p1.txt:1:0"}

    def test_sole_carrier_is_not_displaced(self, small_pack, card_factory):
        """Repair never removes the only card of another mandatory theme."""
        profile = small_pack.model_copy(update={"mandatory_themes": ("A", "B", "C")})
        cards = [
            card_factory("a.txt:1:0", "one", themes=["A"], role=CardRole.CLAIM, total=3.0),
            card_factory("b.txt:1:0", "two", themes=["B"], role=CardRole.CLAIM, total=2.0),
            card_factory("c.txt:1:0", "three", themes=["C"], role=CardRole.EVIDENCE, total=1.0),
        ]
        high = pack_tiers(cards, profile).value.high_signal
        assert {"A", "B", "C"} <= {t for c in high for t in c.themes}

    def test_empty(self, small_pack):
        evidence = pack_tiers([], small_pack).value
        assert evidence.is_empty
        assert evidence.theme_counts == {}


class TestCountThemes:
    """Tests for count_themes ordering."""

    def test_mandatory_first(self, small_pack, card_factory):
        cards = [
            card_factory("x.txt:1:0", "x", themes=["Zeta", "B"]),
            card_factory("y.txt:1:0", "y", themes=["Other"]),
            card_factory("z.txt:1:0", "z", themes=["A"]),
        ]
        assert list(count_themes(cards, small_pack)) == ["A", "B", "Other", "Zeta"]
