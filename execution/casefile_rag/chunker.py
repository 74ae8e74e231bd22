"""
Paragraph Chunker

Splits case-file documents into retrieval chunks by greedily packing whole
paragraphs under a character budget. Paragraphs are never split, so a single
paragraph longer than the budget becomes a chunk on its own.

Joining the chunks with the separator reproduces the document's non-empty
paragraphs joined the same way.
"""

import re
import uuid
import logging
from dataclasses import dataclass, field
from typing import Optional

from .document_parser import ParsedDocument, page_for_offset
from .statutes import extract_statute_citations

logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


@dataclass
class Chunk:
    """A chunk of text with metadata for retrieval."""
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str

    # Citation info
    page_numbers: list[int] = field(default_factory=list)
    start_char: int = 0
    end_char: int = 0

    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "page_numbers": self.page_numbers,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "metadata": self.metadata,
        }


@dataclass
class ChunkConfig:
    """Configuration for chunking parameters."""
    max_chars: int = 1000
    separator: str = "\n\n"


def calculate_chunk_quality(text: str) -> float:
    """
    Score how much retrievable content a chunk carries (0-1).

    Weighs the share of meaningful words, sentence count and length.
    """
    if not text or not text.strip():
        return 0.0

    words = text.split()
    meaningful = [
        w for w in words
        if len(w) > 2 and w[0].isalpha() and "@" not in w
    ]
    meaningful_ratio = len(meaningful) / len(words) if words else 0.0
    sentences = [s for s in re.split(r'[.!?]+', text) if s.strip()]

    score = (
        meaningful_ratio * 0.6
        + min(len(sentences) / 5, 0.2)
        + min(len(text) / 1000, 0.3)
    )
    return min(score, 1.0)


class ParagraphChunker:
    """
    Greedy paragraph packer.

    Paragraph boundaries are blank lines (a newline, optional whitespace,
    another newline). Each paragraph is stripped and empty ones are dropped.
    """

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()
        if self.config.max_chars <= 0:
            raise ValueError("max_chars must be positive")

    def paragraphs(self, text: str) -> list[tuple[str, int, int]]:
        """Return (paragraph, start, end) spans of the non-empty paragraphs."""
        spans = []
        if not text:
            return spans

        cursor = 0
        pieces = []
        for match in PARAGRAPH_BREAK.finditer(text):
            pieces.append((cursor, match.start()))
            cursor = match.end()
        pieces.append((cursor, len(text)))

        for start, end in pieces:
            raw = text[start:end]
            stripped = raw.strip()
            if not stripped:
                continue
            lead = len(raw) - len(raw.lstrip())
            spans.append((stripped, start + lead, start + lead + len(stripped)))

        return spans

    def split(self, text: str) -> list[str]:
        """Split text into chunk strings."""
        return [content for content, _, _ in self._pack(self.paragraphs(text))]

    def chunk(self, document: ParsedDocument) -> list[Chunk]:
        """
        Chunk a parsed document.

        Args:
            document: Parsed document to chunk

        Returns:
            Ordered list of Chunk objects with indices 0..n-1
        """
        document_id = document.metadata.document_id
        packed = self._pack(self.paragraphs(document.raw_text))

        chunks = []
        for index, (content, start, end) in enumerate(packed):
            pages = self._pages_for_span(document.page_ranges, start, end)
            chunks.append(Chunk(
                chunk_id=str(uuid.uuid4()),
                document_id=document_id,
                chunk_index=index,
                content=content,
                page_numbers=pages,
                start_char=start,
                end_char=end,
                metadata={
                    "quality_score": round(calculate_chunk_quality(content), 3),
                    "char_count": len(content),
                    "word_count": len(content.split()),
                    "source": document.metadata.title,
                    "document_type": document.metadata.document_type,
                    "legal_references": extract_statute_citations(content),
                },
            ))

        logger.info(f"Created {len(chunks)} chunks from document {document_id}")
        return chunks

    def _pack(self, spans: list[tuple[str, int, int]]) -> list[tuple[str, int, int]]:
        """Greedily pack paragraph spans into chunks under the character budget."""
        sep = self.config.separator
        budget = self.config.max_chars
        packed = []

        current: list[str] = []
        current_len = 0
        current_start = 0
        current_end = 0

        for paragraph, start, end in spans:
            if current and current_len + len(sep) + len(paragraph) > budget:
                packed.append((sep.join(current), current_start, current_end))
                current = []
                current_len = 0

            if not current:
                current_start = start
                current_len = len(paragraph)
            else:
                current_len += len(sep) + len(paragraph)
            current.append(paragraph)
            current_end = end

        if current:
            packed.append((sep.join(current), current_start, current_end))

        return packed

    def _pages_for_span(
        self,
        page_ranges: list[tuple[int, int, int]],
        start: int,
        end: int,
    ) -> list[int]:
        """Pages a character span overlaps (1-indexed)."""
        if not page_ranges:
            return []
        pages = {
            page_num for page_num, page_start, page_end in page_ranges
            if start < page_end and end > page_start
        }
        if not pages:
            first = page_for_offset(page_ranges, start)
            return [first] if first else []
        return sorted(pages)
