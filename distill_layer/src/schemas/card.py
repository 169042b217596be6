"""
Evidence card schemas.

Evidence cards are the citable building blocks produced by distillation:
- quote: a short verbatim extract (<= 220 chars)
- scores: specificity / compliance / budget and their weighted total
- source: document, page and byte span for traceability

Context cards are lighter, read-only projections of cards that did not
make the high-signal pack.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


MAX_QUOTE_CHARS = 220
MAX_CLAIM_CHARS = 100
MAX_SUMMARY_CHARS = 100

OTHER_THEME = "Other"


class CardClass(str, Enum):
    """Keyword family of the evidence."""

    MANDATE = "mandate"
    PRIORITY = "priority"
    GAP = "gap"
    TREND = "trend"


class CardRole(str, Enum):
    """How the card is meant to be used in a downstream prompt."""

    CLAIM = "claim"
    METRIC = "metric"
    CONTEXT = "context"
    EVIDENCE = "evidence"
    COUNTERPOINT = "counterpoint"


class Confidence(str, Enum):
    """Confidence tier of a card."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class FunctionTag(str, Enum):
    """NIST CSF 2.0 function (governance lifecycle category)."""

    GOVERN = "GV"
    IDENTIFY = "ID"
    PROTECT = "PR"
    DETECT = "DE"
    RESPOND = "RS"
    RECOVER = "RC"


class Timeframe(str, Enum):
    NEAR = "near"
    MID = "mid"
    LONG = "long"


class SourceType(str, Enum):
    """Issuing body detected from the source text."""

    OIG = "OIG"
    GAO = "GAO"
    NIST = "NIST"
    OMB = "OMB"
    OTHER = "other"


class CardScores(BaseModel):
    """Multi-dimensional score of a card."""

    specificity: int = Field(..., ge=1, le=3, description="1-3: how concrete the text is")
    compliance: int = Field(..., ge=1, le=3, description="1-3: mandate / regulation strength")
    budget: int = Field(..., ge=0, le=3, description="0-3: currency magnitude tier")
    total: float = Field(..., ge=0.0, description="Weighted sum of the three sub-scores")


class CardSource(BaseModel):
    """Provenance of a card."""

    document_id: str = Field(..., description="Source document identifier")
    page: Optional[int] = Field(None, description="Page number if known")
    section_hint: Optional[str] = Field(None, description="Nearest heading if available")
    span_start: int = Field(..., ge=0, description="Byte offset of the chunk start")
    span_end: int = Field(..., ge=0, description="Byte offset of the chunk end")

    def overlaps(self, other: "CardSource") -> bool:
        """Whether both spans come from the same document and intersect."""
        if self.document_id != other.document_id:
            return False
        return not (self.span_end < other.span_start or self.span_start > other.span_end)


class EvidenceCard(BaseModel):
    """
    A scored, attributed unit of extracted text.

    Created once per surviving chunk. Later stages only attach derived
    fields (themes, role, confidence, novelty) through model_copy.
    """

    # Identity
    id: str = Field(
        ...,
        description="Stable identifier: {document_id}:{page}:{byte_offset}",
        examples=["GAO-24-106137.txt:4:10233"]
    )
    content_fingerprint: str = Field(..., description="5-char shingle digest of the quote")
    created_at: datetime = Field(..., description="Run clock at creation")

    # Targeting
    target_profile: str = Field(..., description="Profile id, or GENERAL when untargeted")
    organizational_unit: Optional[str] = Field(None, description="Matched sub-organization")

    # Content
    quote: str = Field(..., max_length=MAX_QUOTE_CHARS, description="Verbatim extract")
    claim: str = Field(..., max_length=MAX_CLAIM_CHARS, description="Short paraphrase")

    # Classification
    function_tag: FunctionTag = Field(..., description="NIST CSF 2.0 function")
    card_class: CardClass = Field(..., alias="class", description="mandate|priority|gap|trend")
    role: CardRole = Field(default=CardRole.EVIDENCE)
    themes: list[str] = Field(default_factory=list, max_length=2, description="0-2 topic labels")
    confidence: Confidence = Field(default=Confidence.MEDIUM)
    novelty: float = Field(default=1.0, ge=0.0, le=1.0)
    timeframe: Optional[Timeframe] = None
    source_type: SourceType = Field(default=SourceType.OTHER)

    scores: CardScores
    source: CardSource

    model_config = {"populate_by_name": True}

    @property
    def primary_theme(self) -> str:
        return self.themes[0] if self.themes else OTHER_THEME

    @property
    def total(self) -> float:
        return self.scores.total

    @property
    def document_id(self) -> str:
        return self.source.document_id

    def to_context_card(self) -> "ContextCard":
        """Project this card into a background context card."""
        return ContextCard(
            id=self.id,
            theme=self.primary_theme,
            summary=self.claim[:MAX_SUMMARY_CHARS],
            source_doc=self.source.document_id,
            page=self.source.page,
            confidence=self.confidence,
        )


class ContextCard(BaseModel):
    """A short background summary; not intended for direct citation."""

    id: str = Field(..., description="Id of the evidence card it was derived from")
    theme: str = Field(..., description="Primary theme of the source card")
    summary: str = Field(..., max_length=MAX_SUMMARY_CHARS)
    source_doc: str
    page: Optional[int] = None
    confidence: Confidence = Confidence.MEDIUM

    model_config = {"frozen": True}
