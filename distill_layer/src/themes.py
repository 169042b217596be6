"""
Deterministic theme tagger.

Each theme dictionary is flattened into an ordered list of
(predicate, label, weight) rules and evaluated uniformly:

    exact phrase +3 | acronym +2 | anchor +5 | synonym +1
    partial match +0.5 | exclusion -4 (score floored at 0)

Selection is strict → loose → heuristic → catch-all:
1. top two themes scoring >= 2
2. otherwise the single best theme scoring >= 1
3. otherwise the first matching heuristic regex
4. otherwise "Other"

so every card leaves the tagger with at least one label.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable

from .schemas.card import OTHER_THEME, EvidenceCard
from .schemas.profile import DistillationProfile, ThemeDictionary
from .schemas.report import Severity, StageResult
from .tokenizers import term_pattern


logger = logging.getLogger(__name__)

EXACT_PHRASE_WEIGHT = 3.0
ACRONYM_WEIGHT = 2.0
ANCHOR_WEIGHT = 5.0
SYNONYM_WEIGHT = 1.0
PARTIAL_MATCH_WEIGHT = 0.5
EXCLUSION_WEIGHT = -4.0

STRICT_THRESHOLD = 2.0
LOOSE_THRESHOLD = 1.0
MAX_THEMES = 2


@dataclass(frozen=True)
class ThemeRule:
    """One weighted predicate contributing to a theme's score."""
    predicate: Callable[[str], bool]
    label: str
    weight: float
    kind: str
    term: str


def _substring(term: str) -> Callable[[str], bool]:
    needle = term.lower()
    return lambda text: needle in text.lower()


def _bounded(term: str) -> Callable[[str], bool]:
    pattern = term_pattern(term)
    return lambda text: pattern.search(text) is not None


def rules_for_dictionary(dictionary: ThemeDictionary) -> list[ThemeRule]:
    """Flatten one dictionary; exclusions come last so the floor applies after gains."""
    groups = (
        ("exact", dictionary.exact_phrases, EXACT_PHRASE_WEIGHT, _substring),
        ("acronym", dictionary.acronyms, ACRONYM_WEIGHT, _bounded),
        ("anchor", dictionary.anchors, ANCHOR_WEIGHT, _substring),
        ("synonym", dictionary.synonyms, SYNONYM_WEIGHT, _substring),
        ("partial", dictionary.partial_matches, PARTIAL_MATCH_WEIGHT, _bounded),
        ("exclusion", dictionary.exclusions, EXCLUSION_WEIGHT, _substring),
    )
    rules = []
    for kind, terms, weight, factory in groups:
        for term in terms:
            if term.strip():
                rules.append(ThemeRule(factory(term), dictionary.name, weight, kind, term))
    return rules


def build_theme_rules(profile: DistillationProfile) -> tuple[ThemeRule, ...]:
    """Rules for every theme dictionary of the profile, in dictionary order."""
    rules: list[ThemeRule] = []
    for dictionary in profile.theme_dictionaries:
        rules.extend(rules_for_dictionary(dictionary))
    return tuple(rules)


def build_heuristics(profile: DistillationProfile) -> tuple[tuple[re.Pattern, str], ...]:
    return tuple(
        (re.compile(h.pattern, re.IGNORECASE), h.theme)
        for h in profile.theme_heuristics
    )


def score_themes(text: str, rules: tuple[ThemeRule, ...]) -> dict[str, float]:
    """Score every theme for a text. Themes keep dictionary order."""
    scores: dict[str, float] = {}
    for rule in rules:
        current = scores.setdefault(rule.label, 0.0)
        if rule.predicate(text):
            scores[rule.label] = max(0.0, current + rule.weight)
    return scores


def anchored_themes(text: str, rules: tuple[ThemeRule, ...]) -> list[str]:
    """Themes whose anchor terms occur in the text."""
    found: list[str] = []
    for rule in rules:
        if rule.kind == "anchor" and rule.label not in found and rule.predicate(text):
            found.append(rule.label)
    return found


def select_themes(
    text: str,
    rules: tuple[ThemeRule, ...],
    heuristics: tuple[tuple[re.Pattern, str], ...] = (),
) -> list[str]:
    """
    Pick one or two theme labels for a text.

    Ties keep dictionary order. A theme whose anchor term appears in the
    text always takes one of the two slots.
    """
    scores = score_themes(text, rules)
    ranked = sorted(scores.items(), key=lambda kv: -kv[1])

    strict = [theme for theme, score in ranked if score >= STRICT_THRESHOLD]
    if strict:
        selected = strict[:MAX_THEMES]
        anchored = [t for t in anchored_themes(text, rules) if scores.get(t, 0.0) > 0]
        if anchored and not any(t in anchored for t in selected):
            best_anchor = max(anchored, key=lambda t: scores[t])
            selected = selected[:MAX_THEMES - 1] + [best_anchor]
        return selected

    loose = [theme for theme, score in ranked if score >= LOOSE_THRESHOLD]
    if loose:
        return loose[:1]

    for pattern, theme in heuristics:
        if pattern.search(text):
            return [theme]

    return [OTHER_THEME]


def tag_cards(
    cards: list[EvidenceCard],
    profile: DistillationProfile,
) -> StageResult[list[EvidenceCard]]:
    """
    Attach theme labels to every card.

    Returns new card objects; the input cards are not modified.
    """
    rules = build_theme_rules(profile)
    heuristics = build_heuristics(profile)

    tagged: list[EvidenceCard] = []
    distribution: Counter = Counter()
    for card in cards:
        themes = select_themes(f"{card.quote} {card.claim}", rules, heuristics)
        distribution.update(themes)
        tagged.append(card.model_copy(update={"themes": themes}))

    untagged = distribution.get(OTHER_THEME, 0)
    for theme, count in sorted(distribution.items()):
        logger.debug(f"TAGGER:   {theme}: {count} cards")

    missing = [t for t in profile.mandatory_themes if distribution.get(t, 0) == 0]
    covered = len(profile.mandatory_themes) - len(missing)
    logger.info(
        f"TAGGER: tagged {len(tagged)} cards, coverage {covered}/{len(profile.mandatory_themes)} "
        f"mandatory themes, {untagged} untagged"
    )

    notes = []
    if missing:
        notes.append(f"Themes without candidates after tagging: {', '.join(missing)}")
        logger.warning(f"TAGGER: missing themes: {', '.join(missing)}")

    return StageResult(
        value=tagged,
        severity=Severity.OK,
        notes=notes,
        stats={
            "theme_distribution": dict(distribution),
            "untagged_count": untagged,
            "missing_themes": missing,
        },
    )
