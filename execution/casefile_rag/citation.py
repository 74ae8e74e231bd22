"""
Source Citations for Search Results

Formats retrieved chunks with a pointer back to where they came from:
[Document Title, Chunk N, p. X]
"""

import logging
from typing import Optional
from dataclasses import dataclass, field

from .vector_store import SearchResult

logger = logging.getLogger(__name__)


@dataclass
class Citation:
    """A formatted source citation."""
    document_title: str
    chunk_index: int
    page_numbers: list[int]
    chunk_id: str
    document_id: str
    relevance_score: float
    legal_references: list[str] = field(default_factory=list)

    def short_format(self) -> str:
        """Short inline citation format."""
        return f"[{self.document_title}, Chunk {self.chunk_index + 1}, {self._format_pages()}]"

    def long_format(self) -> str:
        """Detailed citation format."""
        parts = [
            self.document_title,
            f"Chunk: {self.chunk_index + 1}",
            self._format_pages(),
            f"Relevance: {self.relevance_score:.0%}",
        ]
        if self.legal_references:
            parts.append(f"Cites: {'; '.join(self.legal_references)}")
        return " | ".join(parts)

    def _format_pages(self) -> str:
        if not self.page_numbers:
            return "p. N/A"

        if len(self.page_numbers) == 1:
            return f"p. {self.page_numbers[0]}"

        if self._is_consecutive(self.page_numbers):
            return f"pp. {self.page_numbers[0]}-{self.page_numbers[-1]}"

        return f"pp. {', '.join(map(str, self.page_numbers))}"

    def _is_consecutive(self, nums: list[int]) -> bool:
        return len(nums) > 1 and nums == list(range(nums[0], nums[-1] + 1))

    def to_dict(self) -> dict:
        return {
            "document_title": self.document_title,
            "chunk_index": self.chunk_index,
            "page_numbers": self.page_numbers,
            "chunk_id": self.chunk_id,
            "document_id": self.document_id,
            "relevance_score": self.relevance_score,
            "legal_references": self.legal_references,
            "short_citation": self.short_format(),
            "long_citation": self.long_format(),
        }


@dataclass
class CitedContent:
    """Content with its citation."""
    content: str
    citation: Citation

    def format_with_citation(self) -> str:
        """Format content with inline citation."""
        return f"{self.content}\n{self.citation.short_format()}"

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "citation": self.citation.to_dict(),
        }


class CitationExtractor:
    """Builds citations for search results."""

    def __init__(self, document_titles: Optional[dict] = None):
        """
        Args:
            document_titles: Optional mapping of document_id to title
        """
        self._document_titles = document_titles or {}

    def extract(
        self,
        results: list[SearchResult],
        document_title: Optional[str] = None,
        document_titles: Optional[dict] = None,
    ) -> list[CitedContent]:
        """
        Extract citations from search results.

        Args:
            results: List of search results
            document_title: Optional title override (single title for all)
            document_titles: Optional mapping of document_id to title

        Returns:
            List of CitedContent objects with formatted citations
        """
        titles = document_titles or self._document_titles
        cited_contents = []

        for result in results:
            title = (
                document_title or
                titles.get(result.document_id) or
                result.metadata.get("source") or
                "Document"
            )

            # Hybrid results carry the cosine score as original_score; ts_rank can exceed 1
            original = result.metadata.get("original_score")
            if original is not None:
                display_score = min(original, 0.99) if original > 1.0 else original
            else:
                display_score = min(result.score, 0.99) if result.score > 1.0 else result.score

            citation = Citation(
                document_title=title,
                chunk_index=result.chunk_index,
                page_numbers=result.page_numbers,
                chunk_id=result.chunk_id,
                document_id=result.document_id,
                relevance_score=display_score,
                legal_references=list(result.metadata.get("legal_references") or []),
            )
            cited_contents.append(CitedContent(content=result.content, citation=citation))

        return cited_contents
