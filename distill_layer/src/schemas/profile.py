"""
Distillation profile schema.

A profile is the immutable configuration of one run. It is built once
(per target) and passed by reference through every stage:
- targeting: target id, organizational units, signal lists, mandate phrases
- limits: card caps, per-theme quotas, pack targets
- scoring weights and dedup thresholds
- theme dictionaries and the mandatory theme list
"""

import re

from pydantic import BaseModel, Field, field_validator, model_validator


class ScoringWeights(BaseModel):
    """Weights applied to the three sub-scores; must sum to <= 1.0."""

    specificity: float = Field(0.4, ge=0.0, le=1.0)
    compliance: float = Field(0.35, ge=0.0, le=1.0)
    budget: float = Field(0.25, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_sum(self) -> "ScoringWeights":
        combined = self.specificity + self.compliance + self.budget
        if combined > 1.0 + 1e-9:
            raise ValueError(f"scoring weights sum to {combined:.3f}, must be <= 1.0")
        return self

    def weighted_total(self, specificity: int, compliance: int, budget: int) -> float:
        return (
            self.specificity * specificity
            + self.compliance * compliance
            + self.budget * budget
        )


class SignalLists(BaseModel):
    """Signal phrases that mark a chunk as relevant to the target."""

    priority_high: tuple[str, ...] = ()
    priority_med: tuple[str, ...] = ()
    universal: tuple[str, ...] = ()

    model_config = {"frozen": True}

    def all_signals(self) -> tuple[str, ...]:
        return self.priority_high + self.priority_med + self.universal


class FilterPatterns(BaseModel):
    """Boilerplate headings to skip and override terms that always keep a chunk."""

    skip: tuple[str, ...] = ()
    always_keep: tuple[str, ...] = ()

    model_config = {"frozen": True}


class DedupThresholds(BaseModel):
    """Similarity thresholds for the two dedup passes."""

    within_theme: float = Field(0.83, gt=0.0, le=1.0)
    global_threshold: float = Field(0.86, gt=0.0, le=1.0)
    same_source_relaxation: float = Field(0.10, ge=0.0, lt=1.0)

    model_config = {"frozen": True}


class ThemeDictionary(BaseModel):
    """Weighted keyword dictionary for one theme."""

    id: str
    name: str
    exact_phrases: tuple[str, ...] = ()
    acronyms: tuple[str, ...] = ()
    anchors: tuple[str, ...] = ()
    synonyms: tuple[str, ...] = ()
    partial_matches: tuple[str, ...] = ()
    exclusions: tuple[str, ...] = ()

    model_config = {"frozen": True}


class ThemeHeuristic(BaseModel):
    """Last-resort regex that maps an untagged card to a theme."""

    pattern: str = Field(..., description="Case-insensitive regular expression")
    theme: str

    model_config = {"frozen": True}

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        re.compile(value)
        return value


class DistillationProfile(BaseModel):
    """Immutable per-run configuration for the distillation engine."""

    target_id: str = Field(..., description="Canonical target identifier, e.g. DOC")
    target_name: str = Field("", description="Display name of the target")
    aliases: tuple[str, ...] = Field(default=(), description="Alternate spellings of the target")

    # Limits
    max_cards: int = Field(80, ge=1)
    min_per_topic: int = Field(2, ge=0)
    max_per_topic: int = Field(12, ge=1)
    max_per_document: int = Field(20, ge=1)
    high_signal_target: int = Field(40, ge=0)
    high_signal_tolerance: int = Field(8, ge=0)
    context_target: int = Field(60, ge=0)
    context_tolerance: int = Field(20, ge=0)

    # Targeting
    signals: SignalLists = Field(default_factory=SignalLists)
    mandate_phrases: tuple[str, ...] = ()
    organizational_units: tuple[str, ...] = ()
    filter_patterns: FilterPatterns = Field(default_factory=FilterPatterns)

    # Scoring / dedup
    scoring_weights: ScoringWeights = Field(default_factory=ScoringWeights)
    dedup: DedupThresholds = Field(default_factory=DedupThresholds)

    # Themes
    mandatory_themes: tuple[str, ...] = ()
    theme_dictionaries: tuple[ThemeDictionary, ...] = ()
    theme_heuristics: tuple[ThemeHeuristic, ...] = ()

    config_version: str = "2.1.0"

    model_config = {"frozen": True}

    @field_validator("target_id")
    @classmethod
    def _upper_target(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _check_limits(self) -> "DistillationProfile":
        if self.min_per_topic > self.max_per_topic:
            raise ValueError("min_per_topic cannot exceed max_per_topic")
        return self

    def anchor_terms(self) -> dict[str, tuple[str, ...]]:
        """Anchor terms of every mandatory theme, keyed by theme name."""
        return {
            d.name: d.anchors
            for d in self.theme_dictionaries
            if d.name in self.mandatory_themes
        }
