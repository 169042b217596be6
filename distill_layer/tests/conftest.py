"""Shared fixtures for distillation tests."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from ..config.profiles import build_profile
from ..config.settings import Settings
from ..src.schemas.card import (
    CardClass,
    CardRole,
    CardScores,
    CardSource,
    Confidence,
    EvidenceCard,
    FunctionTag,
)
from ..src.tokenizers import content_fingerprint


RUN_CLOCK = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def created_at() -> datetime:
    return RUN_CLOCK


@pytest.fixture
def profile():
    return build_profile("DOC")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DISTILL_DEFAULT_TARGET="DOC",
        DISTILL_OUTPUT_DIR="distilled",
        DISTILL_SMALL_INPUT_BYTES=300_000,
    )


def make_card(
    card_id: str,
    quote: str,
    themes: Optional[list[str]] = None,
    total: float = 2.0,
    confidence: Confidence = Confidence.MEDIUM,
    role: CardRole = CardRole.EVIDENCE,
    document_id: Optional[str] = None,
    span: tuple[int, int] = (0, 100),
    page: Optional[int] = 1,
) -> EvidenceCard:
    """Build a card directly, bypassing extraction and scoring."""
    document_id = document_id or card_id.split(":")[0]
    return EvidenceCard(
        id=card_id,
        content_fingerprint=content_fingerprint(quote),
        created_at=RUN_CLOCK,
        target_profile="DOC",
        quote=quote,
        claim=quote[:100],
        function_tag=FunctionTag.PROTECT,
        card_class=CardClass.PRIORITY,
        role=role,
        themes=list(themes or []),
        confidence=confidence,
        scores=CardScores(specificity=2, compliance=2, budget=0, total=total),
        source=CardSource(
            document_id=document_id,
            page=page,
            span_start=span[0],
            span_end=span[1],
        ),
    )


@pytest.fixture
def card_factory():
    return make_card
