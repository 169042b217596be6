"""
Chunk schema for distillation units.

Chunks are the atomic text spans cut from each input document:
- one chunk per paragraph / heading block
- page and heading are carried forward from the last marker seen

Every chunk includes provenance (document_id, page, byte span)
so every evidence card can be traced back to its source.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SourceDocument(BaseModel):
    """A raw input document handed to the engine by a collaborator."""

    name: str = Field(..., description="Document name, used as document_id")
    byte_size: int = Field(..., ge=0, description="Size of the original file in bytes")
    text: str = Field(..., description="Decoded document text")

    @classmethod
    def from_text(cls, name: str, text: str) -> "SourceDocument":
        """Build a document record from in-memory text."""
        return cls(name=name, byte_size=len(text.encode("utf-8")), text=text)


class Chunk(BaseModel):
    """
    A contiguous text span of one document.

    Ephemeral: produced and consumed within a single pipeline run.
    """

    chunk_id: str = Field(
        ...,
        description="Unique identifier: {document_id}_chunk_{index}",
        examples=["GAO-24-106137.txt_chunk_0"]
    )
    document_id: str = Field(..., description="Parent document identifier")
    text: str = Field(..., description="Chunk text content")

    # Provenance
    page: Optional[int] = Field(
        None,
        ge=0,
        description="Last page marker seen at or before this chunk"
    )
    heading: Optional[str] = Field(
        None,
        description="Last heading line seen at or before this chunk"
    )
    starts_with_heading: bool = Field(
        default=False,
        description="Whether the chunk's own first line is the heading"
    )
    byte_offset: int = Field(..., ge=0, description="UTF-8 byte offset into the document")
    byte_length: int = Field(..., ge=0, description="UTF-8 byte length of the span")

    @property
    def span_end(self) -> int:
        return self.byte_offset + self.byte_length

    @property
    def opening_text(self) -> str:
        """First line of the chunk, lowercased (used by boilerplate filters)."""
        return self.text.split("\n", 1)[0].strip().lower()

    class Config:
        json_schema_extra = {
            "example": {
                "chunk_id": "DOC_OIG_2025.txt_chunk_4",
                "document_id": "DOC_OIG_2025.txt",
                "text": "The Department shall implement phishing-resistant MFA for all privileged users by FY2025.",
                "page": 12,
                "heading": "IDENTITY MANAGEMENT",
                "starts_with_heading": False,
                "byte_offset": 18231,
                "byte_length": 92,
            }
        }
