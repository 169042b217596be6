"""
Paragraph-based text chunking with provenance.

Each document is split on blank lines. The chunker carries forward:
- the last page marker seen ("Page 12" / "PAGE 12")
- the last heading line seen (all caps, or ending with ':')

Byte offsets are UTF-8 positions into the original document text, so a
card's span can be located in the source file exactly.
"""

import logging
import re
from typing import Optional

from .schemas.chunk import Chunk, SourceDocument


logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r"\n[ \t\r\f\v]*\n\s*")
PAGE_MARKER = re.compile(r"\b(?:page|PAGE|Page)\s+(\d+)\b")
PAGE_ONLY = re.compile(r"^\s*(?:page|PAGE|Page)\s+(\d+)(?:\s+of\s+\d+)?\s*$")

MAX_HEADING_CHARS = 120


def _is_heading_line(line: str) -> bool:
    """Heading lines are short and either all caps or end with a colon."""
    line = line.strip()
    if not line or len(line) > MAX_HEADING_CHARS:
        return False
    if not any(ch.isalpha() for ch in line):
        return False
    return line == line.upper() or line.endswith(":")


def _paragraph_spans(text: str) -> list[tuple[int, int]]:
    """Character spans of non-blank paragraphs, leading/trailing space excluded."""
    spans: list[tuple[int, int]] = []
    start = 0
    for match in PARAGRAPH_BREAK.finditer(text):
        spans.append((start, match.start()))
        start = match.end()
    spans.append((start, len(text)))

    trimmed: list[tuple[int, int]] = []
    for begin, end in spans:
        segment = text[begin:end]
        stripped = segment.strip()
        if not stripped:
            continue
        lead = len(segment) - len(segment.lstrip())
        trimmed.append((begin + lead, begin + lead + len(stripped)))
    return trimmed


def chunk_document(document: SourceDocument, start_chunk_idx: int = 0) -> list[Chunk]:
    """
    Split one document into provenance-tagged chunks.

    Paragraphs that consist only of a page marker update the current page
    and produce no chunk.

    Args:
        document: Input document
        start_chunk_idx: Starting index for chunk IDs

    Returns:
        Chunks in document order
    """
    text = document.text
    chunks: list[Chunk] = []
    chunk_idx = start_chunk_idx

    page: Optional[int] = None
    heading: Optional[str] = None

    char_cursor = 0
    byte_cursor = 0

    for begin, end in _paragraph_spans(text):
        byte_cursor += len(text[char_cursor:begin].encode("utf-8"))
        char_cursor = begin
        paragraph = text[begin:end]
        byte_length = len(paragraph.encode("utf-8"))

        only_marker = PAGE_ONLY.match(paragraph)
        if only_marker:
            page = int(only_marker.group(1))
            continue

        marker = PAGE_MARKER.search(paragraph)
        if marker:
            page = int(marker.group(1))

        first_line = paragraph.split("\n", 1)[0].strip()
        starts_with_heading = _is_heading_line(first_line)
        if starts_with_heading:
            heading = first_line.rstrip(":").strip() or first_line

        chunks.append(Chunk(
            chunk_id=f"{document.name}_chunk_{chunk_idx}",
            document_id=document.name,
            text=paragraph,
            page=page,
            heading=heading,
            starts_with_heading=starts_with_heading,
            byte_offset=byte_cursor,
            byte_length=byte_length,
        ))
        chunk_idx += 1

    logger.debug(f"CHUNKER: {document.name} → {len(chunks)} chunks")
    return chunks


def chunk_documents(documents: list[SourceDocument]) -> list[Chunk]:
    """Chunk every document in input order."""
    chunks: list[Chunk] = []
    for document in documents:
        chunks.extend(chunk_document(document))
    return chunks
