"""Tests for the deterministic theme tagger."""

import pytest

from ..src.schemas.card import OTHER_THEME
from ..src.schemas.profile import DistillationProfile, ThemeDictionary, ThemeHeuristic
from ..src.themes import (
    build_heuristics,
    build_theme_rules,
    score_themes,
    select_themes,
    tag_cards,
)


@pytest.fixture
def small_profile() -> DistillationProfile:
    return DistillationProfile(
        target_id="test",
        mandatory_themes=("Alpha", "Beta", "Gamma"),
        theme_dictionaries=(
            ThemeDictionary(
                id="alpha",
                name="Alpha",
                exact_phrases=("alpha widget",),
                acronyms=("AW",),
                anchors=("SPEC-1",),
                synonyms=("alphoid",),
                partial_matches=("alp",),
                exclusions=("alpha male",),
            ),
            ThemeDictionary(id="beta", name="Beta", exact_phrases=("beta gadget",), acronyms=("BG",)),
            ThemeDictionary(id="gamma", name="Gamma", exact_phrases=("gamma ray",), anchors=("REF-9",)),
        ),
        theme_heuristics=(ThemeHeuristic(pattern=r"\bwidgets?\b", theme="Beta"),),
    )


@pytest.fixture
def rules(small_profile):
    return build_theme_rules(small_profile)


class TestScoring:
    """Tests for score_themes."""

    def test_weights_add_up(self, rules):
        """exact 3 + acronym 2 + anchor 5 + synonym 1."""
        scores = score_themes("The alpha widget uses AW parts per SPEC-1 and alphoid.", rules)
        assert scores == {"Alpha": 11.0, "Beta": 0.0, "Gamma": 0.0}

    def test_partial_match_needs_word(self, rules):
        """Partial terms match whole words only."""
        assert score_themes("an alp in the hills", rules)["Alpha"] == 0.5
        assert score_themes("alpine hills", rules)["Alpha"] == 0.0

    def test_exclusion_floors_at_zero(self, rules):
        """An exclusion can cancel a match but never go negative."""
        assert score_themes("the alpha widget of the alpha male", rules)["Alpha"] == 0.0

    def test_acronym_is_bounded(self, rules):
        """Acronyms inside longer words do not count."""
        assert score_themes("AWARD season", rules)["Alpha"] == 0.0


class TestSelection:
    """Tests for select_themes."""

    def test_top_two_strict(self, rules):
        """Ties keep dictionary order."""
        text = "alpha widget, beta gadget and gamma ray"
        assert select_themes(text, rules) == ["Alpha", "Beta"]

    def test_anchored_theme_takes_a_slot(self, rules):
        """An anchored theme outside the top two replaces the second pick."""
        text = "alpha widget AW, beta gadget BG, see REF-9"
        assert select_themes(text, rules) == ["Alpha", "Gamma"]

    def test_loose_single_theme(self, rules):
        """A score between 1 and 2 yields exactly one theme."""
        assert select_themes("an alphoid compound", rules) == ["Alpha"]

    def test_heuristic_fallback(self, small_profile, rules):
        """Heuristic regexes tag cards the dictionaries missed."""
        heuristics = build_heuristics(small_profile)
        assert select_themes("spare widgets shipped", rules, heuristics) == ["Beta"]

    def test_other_fallback(self, small_profile, rules):
        """Nothing matching gives the catch-all label."""
        heuristics = build_heuristics(small_profile)
        assert select_themes("nothing relevant here", rules, heuristics) == [OTHER_THEME]


class TestTagCards:
    """Tests for tag_cards with the built-in profile."""

    def test_every_card_gets_a_theme(self, profile, card_factory):
        cards = [
            card_factory("a.txt:1:0", "Agencies must enforce phishing-resistant MFA and PIV under OMB M-19-17."),
            card_factory("a.txt:1:200", "The weather was fine during the visit.", span=(200, 300)),
        ]
        result = tag_cards(cards, profile)
        tagged = result.value
        assert "Identity/ICAM" in tagged[0].themes
        assert tagged[1].themes == [OTHER_THEME]
        assert all(1 <= len(c.themes) <= 2 for c in tagged)
        assert result.stats["untagged_count"] == 1

    def test_inputs_not_modified(self, profile, card_factory):
        """Tagging returns copies."""
        card = card_factory("a.txt:1:0", "The SIEM raised incident response alerts.")
        result = tag_cards([card], profile)
        assert card.themes == []
        assert result.value[0].themes

    def test_missing_themes_reported(self, profile, card_factory):
        """Mandatory themes with no cards are listed, not raised."""
        card = card_factory("a.txt:1:0", "FedRAMP High authorization for the cloud migration.")
        result = tag_cards([card], profile)
        assert "Cloud/FedRAMP" not in result.stats["missing_themes"]
        assert "SBOM/SCRM" in result.stats["missing_themes"]
        assert result.notes
