"""
Evidence scoring and lexical classification.

Scores a chunk on three axes:
- specificity (1-3): named systems, acronyms, organizational units
- compliance (1-3): mandate verbs and cited regulation identifiers
- budget (0-3): currency magnitude, floored at 1 for procurement language

and infers the derived labels attached to each card: class, role,
confidence, CSF function, timeframe and issuing source type.
All rules are ordered regex families; the first match wins.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .relevance import MANDATE_VERB_PATTERN, has_mandate_verb, match_organizational_unit
from .schemas.card import (
    CardClass,
    CardRole,
    CardScores,
    Confidence,
    FunctionTag,
    SourceType,
    Timeframe,
)
from .schemas.profile import DistillationProfile
from .tokenizers import contains_term


# Specificity
ACRONYM_PATTERN = re.compile(r"\b[A-Z]{3,}\b")
NAMED_SYSTEM_PATTERN = re.compile(r"\b(?:system|platform|application|program)\s+[A-Z]")

# Compliance
STRONG_MANDATE_PATTERN = re.compile(r"\b(shall|must|required by|mandated)\b", re.IGNORECASE)
REGULATION_ID_PATTERN = re.compile(
    r"(?:\bomb\s+m-|\bgao-|\boig-|\bpub\.\s*l\.|\bexecutive order\b)",
    re.IGNORECASE,
)
COMPLIANCE_TERM_PATTERN = re.compile(
    r"\b(shall|must|required|compliance|adherence)\b", re.IGNORECASE
)
POLICY_REF_PATTERN = re.compile(
    r"\b(fisma|fedramp|nist\s+800|hipaa|section\s+508)\b", re.IGNORECASE
)

# Budget
CURRENCY_AMOUNT_PATTERN = re.compile(
    r"\$\s*([\d,]*\d(?:\.\d+)?)\s*(thousand|million|billion)?\b",
    re.IGNORECASE,
)
PROCUREMENT_TERM_PATTERN = re.compile(
    r"\b(contract|procurement|acquisition|award|idiq|gwac|vehicle)\b",
    re.IGNORECASE,
)
MAGNITUDES = {"thousand": 1_000, "million": 1_000_000, "billion": 1_000_000_000}
BUDGET_TIERS = (
    (100_000_000, 3),
    (10_000_000, 2),
    (1_000_000, 1),
)

# Class families, in precedence order
CLASS_RULES: tuple[tuple[re.Pattern, CardClass], ...] = (
    (MANDATE_VERB_PATTERN, CardClass.MANDATE),
    (re.compile(r"\b(priority|critical|essential|key)\b", re.IGNORECASE), CardClass.PRIORITY),
    (re.compile(r"\b(gap|weakness|deficiency|issue|problem)\b", re.IGNORECASE), CardClass.GAP),
    (re.compile(r"\b(trend|emerging|future|evolving)\b", re.IGNORECASE), CardClass.TREND),
)

# Role cues
METRIC_PATTERN = re.compile(
    r"\$\s*\d|\b\d+(?:\.\d+)?\s*(?:%|percent\b)|\b\d+(?:\.\d+)?\s*(?:million|billion)\b",
    re.IGNORECASE,
)
CLAIM_PATTERN = re.compile(r"\b(shall|must|required|mandatory|directive)\b", re.IGNORECASE)
COUNTERPOINT_PATTERN = re.compile(
    r"\b(however|although|despite|challenges?|gaps?|risks?|issues?)\b",
    re.IGNORECASE,
)

# Confidence cues
HEDGING_PATTERN = re.compile(
    r"\b(estimated?|estimates|projected|may|might|could|potentially|approximately)\b",
    re.IGNORECASE,
)
LARGE_AMOUNT = 1_000_000

# NIST CSF 2.0 functions, in precedence order
FUNCTION_RULES: tuple[tuple[re.Pattern, FunctionTag], ...] = (
    (re.compile(
        r"\b(governance|policy|policies|risk management|compliance|oversight|accountability|strategy)\b",
        re.IGNORECASE), FunctionTag.GOVERN),
    (re.compile(
        r"\b(assets?|inventory|data classification|risk assessment|vulnerability assessment|discovery|mapping)\b",
        re.IGNORECASE), FunctionTag.IDENTIFY),
    (re.compile(
        r"\b(access control|authentication|encryption|patch(?:ing)?|hardening|firewall|segmentation|backup|training)\b",
        re.IGNORECASE), FunctionTag.PROTECT),
    (re.compile(
        r"\b(monitor(?:ing)?|detect(?:ion)?|alerts?|siem|logging|audit|anomaly|threats?|visibility)\b",
        re.IGNORECASE), FunctionTag.DETECT),
    (re.compile(
        r"\b(incidents?|response|containment|mitigation|investigation|forensics|escalation)\b",
        re.IGNORECASE), FunctionTag.RESPOND),
    (re.compile(
        r"\b(recovery|restore|resilience|continuity|disaster|lessons learned)\b",
        re.IGNORECASE), FunctionTag.RECOVER),
)

# Issuing bodies, in precedence order
SOURCE_TYPE_RULES: tuple[tuple[re.Pattern, SourceType], ...] = (
    (re.compile(r"\b(office\s+of\s+(the\s+)?inspector\s+general|oig)\b", re.IGNORECASE), SourceType.OIG),
    (re.compile(r"\b(government\s+accountability\s+office|gao-\d)", re.IGNORECASE), SourceType.GAO),
    (re.compile(r"\b(nist|national\s+institute\s+of\s+standards)\b", re.IGNORECASE), SourceType.NIST),
    (re.compile(r"\b(omb|office\s+of\s+management\s+and\s+budget|m-\d{2}-\d{2})\b", re.IGNORECASE), SourceType.OMB),
)
AUTHORITATIVE_SOURCE_PATTERN = re.compile(r"\b(gao|oig|omb|nist|tigta)\b", re.IGNORECASE)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Sub-scores of a chunk plus what triggered them."""
    specificity: int
    compliance: int
    budget: int
    total: float
    amount: Optional[float] = None
    organizational_unit: Optional[str] = None

    def to_scores(self) -> CardScores:
        return CardScores(
            specificity=self.specificity,
            compliance=self.compliance,
            budget=self.budget,
            total=self.total,
        )


def parse_currency_amount(text: str) -> Optional[float]:
    """First dollar amount in the text, scaled by its magnitude suffix."""
    match = CURRENCY_AMOUNT_PATTERN.search(text)
    if not match:
        return None
    amount = float(match.group(1).replace(",", ""))
    suffix = (match.group(2) or "").lower()
    return amount * MAGNITUDES.get(suffix, 1)


def score_specificity(text: str, profile: DistillationProfile) -> tuple[int, Optional[str]]:
    unit = match_organizational_unit(text, profile)
    if ACRONYM_PATTERN.search(text) or NAMED_SYSTEM_PATTERN.search(text) or unit:
        return 3, unit
    if contains_term(text, profile.target_id, ignore_case=False):
        return 2, None
    if profile.target_name and contains_term(text, profile.target_name):
        return 2, None
    if any(contains_term(text, s) for s in profile.signals.priority_high):
        return 2, None
    return 1, None


def score_compliance(text: str) -> int:
    if STRONG_MANDATE_PATTERN.search(text) and REGULATION_ID_PATTERN.search(text):
        return 3
    if COMPLIANCE_TERM_PATTERN.search(text) or POLICY_REF_PATTERN.search(text):
        return 2
    return 1


def score_budget(text: str) -> tuple[int, Optional[float]]:
    amount = parse_currency_amount(text)
    budget = 0
    if amount is not None:
        for threshold, tier in BUDGET_TIERS:
            if amount >= threshold:
                budget = tier
                break
    if budget == 0 and PROCUREMENT_TERM_PATTERN.search(text):
        budget = 1
    return budget, amount


def score_evidence(text: str, profile: DistillationProfile) -> ScoreBreakdown:
    """
    Score a chunk of text against a profile.

    ``total`` is the profile-weighted sum of the three sub-scores and is
    not rounded, so it is exactly reproducible from the sub-scores.
    """
    specificity, unit = score_specificity(text, profile)
    compliance = score_compliance(text)
    budget, amount = score_budget(text)
    total = profile.scoring_weights.weighted_total(specificity, compliance, budget)
    return ScoreBreakdown(
        specificity=specificity,
        compliance=compliance,
        budget=budget,
        total=total,
        amount=amount,
        organizational_unit=unit,
    )


def infer_class(text: str) -> CardClass:
    for pattern, card_class in CLASS_RULES:
        if pattern.search(text):
            return card_class
    return CardClass.PRIORITY


def infer_role(text: str) -> CardRole:
    if METRIC_PATTERN.search(text):
        return CardRole.METRIC
    if CLAIM_PATTERN.search(text):
        return CardRole.CLAIM
    if COUNTERPOINT_PATTERN.search(text):
        return CardRole.COUNTERPOINT
    return CardRole.EVIDENCE


def detect_source_type(text: str) -> SourceType:
    for pattern, source_type in SOURCE_TYPE_RULES:
        if pattern.search(text):
            return source_type
    return SourceType.OTHER


def infer_confidence(text: str, document_id: str = "") -> Confidence:
    """
    High: authoritative issuer in the source name or text, or a mandate
    verb backed by a large dollar amount. Low: hedging language.
    """
    if AUTHORITATIVE_SOURCE_PATTERN.search(document_id.replace("_", " ")):
        return Confidence.HIGH
    if AUTHORITATIVE_SOURCE_PATTERN.search(text):
        return Confidence.HIGH
    amount = parse_currency_amount(text)
    if has_mandate_verb(text) and amount is not None and amount >= LARGE_AMOUNT:
        return Confidence.HIGH
    if HEDGING_PATTERN.search(text):
        return Confidence.LOW
    return Confidence.MEDIUM


def infer_function_tag(text: str) -> FunctionTag:
    for pattern, tag in FUNCTION_RULES:
        if pattern.search(text):
            return tag
    return FunctionTag.PROTECT


def infer_timeframe(text: str, reference_year: int) -> Optional[Timeframe]:
    """
    Bucket fiscal-year / quarter cues relative to the run year.

    near: immediate or first-half of the reference year
    mid:  the reference fiscal year, second half, or early next year
    long: later fiscal years or explicit long-range language
    """
    y = reference_year
    ny = y + 1
    near = re.compile(
        rf"\b(immediate(ly)?|urgent|q[1-2]\s*(fy\s*)?{y}|by\s+(january|february|march|april|may|june)\s+{y})\b",
        re.IGNORECASE,
    )
    mid = re.compile(
        rf"\b(fy\s*{y}|q[3-4]\s*(fy\s*)?{y}|q[1-2]\s*(fy\s*)?{ny}|by\s+(the\s+)?(end\s+of\s+)?{y})\b",
        re.IGNORECASE,
    )
    if near.search(text):
        return Timeframe.NEAR
    if mid.search(text):
        return Timeframe.MID

    for match in re.finditer(r"\b(?:fy\s*)?(20\d{2})\b", text, re.IGNORECASE):
        if int(match.group(1)) > y:
            return Timeframe.LONG
    if re.search(r"\b(multi-year|long[- ]term|strategic|future)\b", text, re.IGNORECASE):
        return Timeframe.LONG
    return None
