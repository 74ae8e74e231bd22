"""
Case Document Parser - Extracts text from case-file documents

Reads PDFs page by page with PyMuPDF and plain-text / markdown files directly.
Detects the document category (police report, medical record, ...) so the
analysis stage can route each document to the right analyzer.
"""

import re
import uuid
import html
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
from datetime import datetime

from .legal_patterns import (
    DOCUMENT_TYPE_PATTERNS,
    MEDICAL_DOCUMENT_TYPES,
    LEGAL_DOCUMENT_TYPES,
)

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"

SUPPORTED_SUFFIXES = {
    ".pdf": "pdf",
    ".txt": "text",
    ".md": "markdown",
    ".markdown": "markdown",
}


@dataclass
class DocumentMetadata:
    """Metadata extracted from a case-file document."""
    document_id: str
    title: str
    document_type: str  # police_report, medical_record, witness_statement, ...
    file_type: str = "text"
    page_count: int = 0
    file_path: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "title": self.title,
            "document_type": self.document_type,
            "file_type": self.file_type,
            "page_count": self.page_count,
            "file_path": self.file_path,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ParsedDocument:
    """Extracted document text with page offsets."""
    metadata: DocumentMetadata
    raw_text: str
    page_ranges: list[tuple[int, int, int]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "metadata": self.metadata.to_dict(),
            "raw_text": self.raw_text,
            "page_ranges": [list(r) for r in self.page_ranges],
        }


def detect_document_type(text: str) -> str:
    """Detect the case-file document category from keyword patterns."""
    sample = text[:5000].lower()
    scores = {}

    for doc_type, patterns in DOCUMENT_TYPE_PATTERNS.items():
        scores[doc_type] = sum(len(re.findall(p, sample)) for p in patterns)

    if scores and max(scores.values()) > 0:
        return max(scores, key=scores.get)
    return "unknown"


def document_family(document_type: str) -> str:
    """Return "medical", "legal" or "other" for a document type."""
    if document_type in MEDICAL_DOCUMENT_TYPES:
        return "medical"
    if document_type in LEGAL_DOCUMENT_TYPES:
        return "legal"
    return "other"


def extract_title(text: str, fallback: str) -> str:
    """Extract document title from content."""
    match = re.search(r'^#+\s*(.+)$', text, re.MULTILINE)
    if match:
        return match.group(1).strip()

    for line in text.strip().split('\n')[:8]:
        clean_line = re.sub(r'[#*`]', '', line).strip()

        if not clean_line or len(clean_line) < 3 or len(clean_line) > 200:
            continue

        letter_count = len(re.findall(r'[A-Za-z]', clean_line))
        if letter_count / len(clean_line) < 0.4:
            continue

        if ' ' not in clean_line and len(clean_line) > 20:
            continue

        if clean_line.endswith('.'):
            continue

        return clean_line

    return fallback


def page_for_offset(page_ranges: list[tuple[int, int, int]], offset: int) -> Optional[int]:
    """Return the 1-indexed page containing a character offset."""
    for page_num, start, end in page_ranges:
        if start <= offset < end:
            return page_num
    return None


class CaseDocumentParser:
    """
    Parses case-file documents into plain text.

    PDFs are read with PyMuPDF (one text block per page, pages joined by a
    blank line so that page breaks are also paragraph breaks). Text and
    markdown files are read as UTF-8.
    """

    def parse(self, file_path: str) -> ParsedDocument:
        """
        Parse a document from file.

        Args:
            file_path: Path to a PDF, .txt or .md file

        Returns:
            ParsedDocument with text and page offsets
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Document not found: {file_path}")

        file_type = SUPPORTED_SUFFIXES.get(path.suffix.lower())
        if file_type is None:
            raise ValueError(
                f"Unsupported file type '{path.suffix}'. "
                f"Supported: {', '.join(sorted(SUPPORTED_SUFFIXES))}"
            )

        logger.info(f"Parsing document: {path.name}")

        if file_type == "pdf":
            raw_text, page_count, page_ranges = self._extract_with_pymupdf(str(path))
            title = extract_title(raw_text, path.stem)
        else:
            source = path.read_text(encoding="utf-8", errors="replace")
            title = extract_title(source, path.stem)
            raw_text = self._markdown_to_text(source) if file_type == "markdown" else source.strip()
            page_count = 1
            page_ranges = [(1, 0, len(raw_text))]

        metadata = DocumentMetadata(
            document_id=str(uuid.uuid4()),
            title=title,
            document_type=detect_document_type(raw_text),
            file_type=file_type,
            page_count=page_count,
            file_path=str(path.absolute()),
        )

        return ParsedDocument(metadata=metadata, raw_text=raw_text, page_ranges=page_ranges)

    def parse_text(
        self,
        text: str,
        title: str,
        document_type: Optional[str] = None,
    ) -> ParsedDocument:
        """Wrap already-extracted text (e.g. a pasted note) as a ParsedDocument."""
        raw_text = (text or "").strip()
        metadata = DocumentMetadata(
            document_id=str(uuid.uuid4()),
            title=title or extract_title(raw_text, "Untitled"),
            document_type=document_type or detect_document_type(raw_text),
            file_type="text",
            page_count=1,
        )
        return ParsedDocument(
            metadata=metadata,
            raw_text=raw_text,
            page_ranges=[(1, 0, len(raw_text))],
        )

    def _extract_with_pymupdf(self, file_path: str) -> tuple[str, int, list[tuple[int, int, int]]]:
        """
        Extract text per page with PyMuPDF.

        Returns:
            tuple: (text, page_count, page_ranges)
                page_ranges is a list of (page_num, start_char, end_char) tuples
        """
        import fitz  # PyMuPDF

        parts = []
        page_ranges = []
        cursor = 0

        with fitz.open(file_path) as doc:
            page_count = len(doc)
            for page_num in range(page_count):
                page_text = doc[page_num].get_text().strip()
                if not page_text:
                    continue
                if parts:
                    cursor += len(PAGE_SEPARATOR)
                parts.append(page_text)
                page_ranges.append((page_num + 1, cursor, cursor + len(page_text)))
                cursor += len(page_text)

        return PAGE_SEPARATOR.join(parts), page_count, page_ranges

    def _markdown_to_text(self, markdown: str) -> str:
        """Convert markdown to plain text."""
        text = re.sub(r'^#+\s*', '', markdown, flags=re.MULTILINE)  # Headers
        text = re.sub(r'\*\*([^*]+)\*\*', r'\1', text)  # Bold
        text = re.sub(r'(?<!\w)\*([^*\n]+)\*', r'\1', text)  # Italic
        text = re.sub(r'!\[([^\]]*)\]\([^)]+\)', '', text)  # Images
        text = re.sub(r'\[([^\]]+)\]\([^)]+\)', r'\1', text)  # Links
        text = re.sub(r'`([^`]+)`', r'\1', text)  # Code
        text = re.sub(r'<!--.*?-->', '', text, flags=re.DOTALL)
        return html.unescape(text).strip()


# CLI for testing
if __name__ == "__main__":
    import sys
    import json

    if len(sys.argv) < 2:
        print("Usage: python document_parser.py <file_path>")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO)

    parser = CaseDocumentParser()
    result = parser.parse(sys.argv[1])

    print(json.dumps(result.to_dict(), indent=2, default=str))
