"""Tests for built-in profiles and target normalization."""

import json

import pytest
from pydantic import ValidationError

from ..config.profiles import (
    MANDATORY_THEMES,
    TARGET_SPECS,
    build_profile,
    known_targets,
    load_profiles,
    match_target,
    normalize_target_id,
    resolve_profile,
    target_full_name,
)


class TestNormalizeTarget:
    """Tests for free-form target normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("  u.s. dept of commerce ", "DOC"),
        ("Army Corps of Engineers", "USACE"),
        ("department of the interior", "DOI"),
        ("Treasury IRS", "IRS"),
        ("hhs", "HHS"),
        ("DOI", "DOI"),
    ])
    def test_aliases(self, raw, expected):
        assert normalize_target_id(raw) == expected

    def test_unknown_uses_default(self):
        assert normalize_target_id("unknown agency") == "DOC"
        assert normalize_target_id("unknown agency", default="HHS") == "HHS"
        assert normalize_target_id(None) == "DOC"

    def test_word_boundaries(self):
        """Aliases do not match inside longer words."""
        assert match_target("doctrine review") is None
        assert match_target("commerce") == "DOC"

    def test_longest_alias_wins(self):
        specs = {
            "ARMY": {"aliases": ("ARMY",)},
            "USACE": {"aliases": ("ARMY CORPS",)},
        }
        assert match_target("the army corps office", specs) == "USACE"


class TestBuildProfile:
    """Tests for build_profile."""

    def test_builtin_targets(self):
        assert known_targets() == ["DOC", "IRS", "HHS", "DOI", "USACE"]
        for target_id in known_targets():
            profile = build_profile(target_id)
            assert profile.target_id == target_id
            assert profile.mandatory_themes == MANDATORY_THEMES
            assert profile.signals.universal

    def test_profile_values(self):
        profile = build_profile("doi")
        assert profile.target_id == "DOI"
        assert profile.max_cards == 60
        assert profile.max_per_document == 12
        assert "BLM" in profile.organizational_units
        assert profile.scoring_weights.budget == 0.3

    def test_profiles_are_fresh(self):
        """Each call builds a new profile object."""
        assert build_profile("DOC") is not build_profile("DOC")
        assert build_profile("DOC") == build_profile("DOC")

    def test_weights_over_one_rejected(self):
        spec = dict(TARGET_SPECS["DOC"])
        spec["scoring_weights"] = {"specificity": 0.6, "compliance": 0.5, "budget": 0.2}
        with pytest.raises(ValidationError):
            build_profile("DOC", spec)

    def test_unknown_target_gets_defaults(self):
        profile = build_profile("XYZ")
        assert profile.max_cards == 80
        assert profile.theme_dictionaries

    def test_full_name(self):
        assert target_full_name("usace") == "U.S. Army Corps of Engineers"
        assert target_full_name("XYZ") == "XYZ"


class TestLoadProfiles:
    """Tests for JSON profile files."""

    def test_override_and_add(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({
            "doc": {"max_cards": 50},
            "GSA": {"target_name": "General Services Administration", "aliases": ["GSA", "GENERAL SERVICES"]},
        }))
        specs = load_profiles(path)
        assert specs["DOC"]["max_cards"] == 50
        assert specs["DOC"]["target_name"] == "Department of Commerce"
        assert match_target("general services administration", specs) == "GSA"
        assert build_profile("GSA", specs["GSA"]).target_name == "General Services Administration"

    def test_builtins_untouched(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({"DOC": {"max_cards": 50}}))
        load_profiles(path)
        assert TARGET_SPECS["DOC"]["max_cards"] == 80

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_profiles(path)

    def test_invalid_values_fail_on_load(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({"DOC": {"min_per_topic": 20, "max_per_topic": 5}}))
        with pytest.raises(ValidationError):
            load_profiles(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_profiles(tmp_path / "nope.json")


class TestResolveProfile:
    """Tests for resolve_profile."""

    def test_match_has_no_notes(self):
        profile, notes = resolve_profile("Department of Health and Human Services")
        assert profile.target_id == "HHS"
        assert notes == []

    def test_blank_uses_default_silently(self):
        profile, notes = resolve_profile("", default="IRS")
        assert profile.target_id == "IRS"
        assert notes == []

    def test_unknown_adds_note(self):
        profile, notes = resolve_profile("Ministry of Magic")
        assert profile.target_id == "DOC"
        assert "not recognized" in notes[0]
