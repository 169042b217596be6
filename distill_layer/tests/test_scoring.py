"""
Tests for evidence scoring and lexical classification.

The weighted total is checked against fixed weights so any change to
the formula shows up as a regression.
"""

import pytest

from ..config.profiles import build_profile
from ..src.schemas.card import CardClass, CardRole, Confidence, FunctionTag, SourceType, Timeframe
from ..src.scoring import (
    detect_source_type,
    infer_class,
    infer_confidence,
    infer_function_tag,
    infer_role,
    infer_timeframe,
    parse_currency_amount,
    score_budget,
    score_compliance,
    score_evidence,
    score_specificity,
)


class TestCurrency:
    """Tests for currency parsing and budget tiers."""

    @pytest.mark.parametrize("text,amount", [
        ("$150 million", 150_000_000),
        ("$1.5 billion", 1_500_000_000),
        ("$2,500,000", 2_500_000),
        ("$750 thousand", 750_000),
    ])
    def test_parse_amount(self, text, amount):
        """Magnitude suffixes scale the amount."""
        assert parse_currency_amount(f"Funding of {text} was obligated.") == amount

    @pytest.mark.parametrize("text,tier", [
        ("The program received $150 million.", 3),
        ("The program received $25 million.", 2),
        ("The program received $3 million.", 1),
        ("The program received $500 thousand.", 0),
    ])
    def test_budget_tiers(self, text, tier):
        """Amounts map to 0-3 by magnitude."""
        assert score_budget(text)[0] == tier

    def test_procurement_floor(self):
        """Procurement language floors a zero budget at 1."""
        assert score_budget("The contract was recompeted.")[0] == 1
        assert score_budget("The team met weekly.")[0] == 0


class TestSubScores:
    """Tests for specificity and compliance."""

    def test_specificity_levels(self, profile):
        """Acronyms/units score 3, target name 2, plain text 1."""
        assert score_specificity("The SIEM rollout finished.", profile)[0] == 3
        assert score_specificity("NOAA ships were patched.", profile) == (3, "NOAA")
        assert score_specificity("The Department of Commerce reported.", profile)[0] == 2
        assert score_specificity("the team reported progress.", profile)[0] == 1

    def test_compliance_levels(self):
        """Mandate verb plus regulation id scores 3."""
        assert score_compliance("Agencies shall comply with OMB M-22-09.") == 3
        assert score_compliance("Agencies shall comply.") == 2
        assert score_compliance("FISMA reporting continued.") == 2
        assert score_compliance("Work continued.") == 1


class TestWeightedTotal:
    """Regression tests for the weighted total."""

    def test_fixed_weights(self):
        """total = 0.4*spec + 0.35*comp + 0.25*budget for DOC."""
        profile = build_profile("DOC")
        breakdown = score_evidence(
            "NIST shall implement controls per OMB M-22-09 with $150 million.", profile
        )
        assert (breakdown.specificity, breakdown.compliance, breakdown.budget) == (3, 3, 3)
        assert breakdown.total == pytest.approx(0.4 * 3 + 0.35 * 3 + 0.25 * 3)

    def test_profile_weights_differ(self):
        """HHS weights compliance more heavily than DOC."""
        text = "the team shall comply."
        doc = score_evidence(text, build_profile("DOC"))
        hhs = score_evidence(text, build_profile("HHS"))
        assert doc.total == pytest.approx(0.4 * 1 + 0.35 * 2 + 0.25 * 0)
        assert hhs.total == pytest.approx(0.35 * 1 + 0.45 * 2 + 0.2 * 0)

    def test_total_reproducible_from_sub_scores(self, profile):
        """Card scores reproduce the weighted formula exactly."""
        breakdown = score_evidence("FISMA audit found $12 million in gaps.", profile)
        weights = profile.scoring_weights
        assert breakdown.to_scores().total == weights.weighted_total(
            breakdown.specificity, breakdown.compliance, breakdown.budget
        )


class TestLabels:
    """Tests for class, role, confidence, function and source inference."""

    def test_class_precedence(self):
        """mandate > priority > gap > trend > default priority."""
        assert infer_class("Agencies must address this critical gap.") == CardClass.MANDATE
        assert infer_class("A critical weakness remains.") == CardClass.PRIORITY
        assert infer_class("A weakness in emerging systems.") == CardClass.GAP
        assert infer_class("Emerging threats evolve.") == CardClass.TREND
        assert infer_class("The office met.") == CardClass.PRIORITY

    def test_role_cues(self):
        """metric > claim > counterpoint > evidence."""
        assert infer_role("Spending rose 12% this year.") == CardRole.METRIC
        assert infer_role("Bureaus shall report quarterly.") == CardRole.CLAIM
        assert infer_role("However, staffing lagged.") == CardRole.COUNTERPOINT
        assert infer_role("The office migrated mail.") == CardRole.EVIDENCE

    def test_confidence(self):
        """Authoritative sources high, hedging low."""
        assert infer_confidence("GAO found weaknesses.") == Confidence.HIGH
        assert infer_confidence("Findings follow.", "OIG_report_2024.pdf") == Confidence.HIGH
        assert infer_confidence("Bureaus must spend $5 million.") == Confidence.HIGH
        assert infer_confidence("Costs may reach new highs.") == Confidence.LOW
        assert infer_confidence("The office migrated mail.") == Confidence.MEDIUM

    def test_function_tag(self):
        """CSF functions by ordered rules, default PR."""
        assert infer_function_tag("Policy oversight improved.") == FunctionTag.GOVERN
        assert infer_function_tag("Asset inventory is incomplete.") == FunctionTag.IDENTIFY
        assert infer_function_tag("SIEM alerts increased.") == FunctionTag.DETECT
        assert infer_function_tag("Incident containment took days.") == FunctionTag.RESPOND
        assert infer_function_tag("Disaster recovery plans exist.") == FunctionTag.RECOVER
        assert infer_function_tag("Nothing specific.") == FunctionTag.PROTECT

    def test_source_type(self):
        """Issuing bodies in precedence order."""
        assert detect_source_type("Office of Inspector General review") == SourceType.OIG
        assert detect_source_type("GAO-24-106137 found") == SourceType.GAO
        assert detect_source_type("per NIST guidance") == SourceType.NIST
        assert detect_source_type("memo M-22-09") == SourceType.OMB
        assert detect_source_type("vendor brochure") == SourceType.OTHER


class TestTimeframe:
    """Tests for timeframe inference relative to the run year."""

    def test_near(self):
        assert infer_timeframe("Complete immediately.", 2025) == Timeframe.NEAR
        assert infer_timeframe("Due Q1 FY2025.", 2025) == Timeframe.NEAR

    def test_mid(self):
        assert infer_timeframe("Planned for FY2025.", 2025) == Timeframe.MID

    def test_long(self):
        assert infer_timeframe("Target completion in FY2028.", 2025) == Timeframe.LONG
        assert infer_timeframe("A multi-year effort.", 2025) == Timeframe.LONG

    def test_none(self):
        assert infer_timeframe("Completed in 2019.", 2025) is None
