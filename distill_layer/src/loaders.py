"""
Document loading for distillation runs.

Reads plain text / markdown files and PDFs into SourceDocument records.
PDF pages are joined with "Page N" marker lines so the chunker can carry
page numbers. Files are read concurrently in worker threads; failures are
collected per file and never abort the batch.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable

from .schemas.chunk import SourceDocument


logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".text"}
PDF_SUFFIXES = {".pdf"}
SUPPORTED_SUFFIXES = TEXT_SUFFIXES | PDF_SUFFIXES


def _read_pdf_text(path: Path) -> str:
    """Extract page text with a marker line in front of every page."""
    import pdfplumber  # Lazy import

    pages: list[str] = []
    with pdfplumber.open(path) as pdf:
        for page_num, page in enumerate(pdf.pages, start=1):
            text = page.extract_text() or ""
            pages.append(f"Page {page_num}\n\n{text.strip()}")
    return "\n\n".join(pages)


def load_document(path: Path) -> SourceDocument:
    """
    Load one file into a SourceDocument.

    Raises:
        FileNotFoundError: when the path does not exist
        ValueError: for unsupported file types
        UnicodeDecodeError: when a text file is not valid UTF-8
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Document not found: {path}")

    suffix = path.suffix.lower()
    if suffix in PDF_SUFFIXES:
        text = _read_pdf_text(path)
    elif suffix in TEXT_SUFFIXES:
        text = path.read_text(encoding="utf-8")
    else:
        raise ValueError(f"Unsupported document type: {path.name}")

    return SourceDocument(name=path.name, byte_size=path.stat().st_size, text=text)


def expand_paths(paths: Iterable[Path]) -> list[Path]:
    """Expand directories into their supported files, sorted by name."""
    expanded: list[Path] = []
    for path in paths:
        path = Path(path)
        if path.is_dir():
            expanded.extend(
                sorted(p for p in path.iterdir() if p.suffix.lower() in SUPPORTED_SUFFIXES)
            )
        else:
            expanded.append(path)
    return expanded


async def load_documents_async(
    paths: Iterable[Path],
    max_concurrent: int = 4,
) -> tuple[list[SourceDocument], list[str]]:
    """
    Load files concurrently in worker threads.

    Args:
        paths: Files or directories to load
        max_concurrent: Maximum simultaneous reads

    Returns:
        (documents in input order, per-file error messages)
    """
    files = expand_paths(paths)
    if not files:
        return [], []

    semaphore = asyncio.Semaphore(max_concurrent)

    async def load_with_limit(path: Path) -> SourceDocument:
        async with semaphore:
            return await asyncio.to_thread(load_document, path)

    results = await asyncio.gather(
        *(load_with_limit(p) for p in files),
        return_exceptions=True,
    )

    documents: list[SourceDocument] = []
    errors: list[str] = []
    for path, result in zip(files, results):
        if isinstance(result, BaseException):
            message = f"{path.name}: {type(result).__name__}: {result}"
            logger.warning(f"LOAD: failed to read {message}")
            errors.append(message)
        else:
            documents.append(result)

    logger.info(f"LOAD: {len(documents)}/{len(files)} documents loaded")
    return documents, errors


def load_documents(
    paths: Iterable[Path],
    max_concurrent: int = 4,
) -> tuple[list[SourceDocument], list[str]]:
    """Synchronous wrapper around load_documents_async."""
    return asyncio.run(load_documents_async(paths, max_concurrent=max_concurrent))


def documents_from_texts(texts: dict[str, str]) -> list[SourceDocument]:
    """Build in-memory documents, e.g. for callers that already hold the text."""
    return [SourceDocument.from_text(name, text) for name, text in texts.items()]


def total_input_bytes(documents: Iterable[SourceDocument]) -> int:
    return sum(d.byte_size for d in documents)
