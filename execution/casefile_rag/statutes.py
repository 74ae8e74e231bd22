"""
Statute and Case Citation Handling

Extracts Texas statute references (code sections and DTPA sections) and
case-law citations from text, and validates statute references against the
ingested corpus using keyword search.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .legal_patterns import (
    STATUTE_CODE_PATTERN,
    DTPA_PATTERN,
    STATUTE_PARSE_PATTERN,
    DTPA_PARSE_PATTERN,
    CLOSEST_STATUTE_CODES,
    CASE_NAME_PATTERN,
    REPORTER_CITATION_PATTERN,
)

logger = logging.getLogger(__name__)


@dataclass
class StatuteCitation:
    """A parsed statute reference."""
    raw: str
    code: str          # e.g. "Business & Commerce Code"
    section: str       # e.g. "17.46(b)"
    display_name: str  # e.g. "Business & Commerce Code § 17.46(b)"

    def to_dict(self) -> dict:
        return {
            "raw": self.raw,
            "code": self.code,
            "section": self.section,
            "display_name": self.display_name,
        }


@dataclass
class ValidationResult:
    """Outcome of validating one statute citation."""
    citation: StatuteCitation
    is_valid: bool
    confidence: float
    suggestion: Optional[str] = None
    reference_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "citation": self.citation.to_dict(),
            "is_valid": self.is_valid,
            "confidence": self.confidence,
            "suggestion": self.suggestion,
            "reference_url": self.reference_url,
        }


def _unique(items: list[str]) -> list[str]:
    seen = set()
    ordered = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def extract_statute_citations(text: str) -> list[str]:
    """Return statute citations in order of first appearance, without duplicates."""
    if not text:
        return []

    citations = [m.group(1) for m in STATUTE_CODE_PATTERN.finditer(text)]
    citations.extend(f"{m.group(1)} § {m.group(2)}" for m in DTPA_PATTERN.finditer(text))
    return _unique(citations)


def parse_statute_citation(text: str) -> Optional[StatuteCitation]:
    """Parse a citation string into code and section, or None if unrecognised."""
    if not text:
        return None

    match = DTPA_PARSE_PATTERN.search(text)
    if match:
        section = match.group(1) + (f"({match.group(2)})" if match.group(2) else "")
        return StatuteCitation(
            raw=text,
            code="Texas Deceptive Trade Practices Act",
            section=section,
            display_name=f"DTPA § {section}",
        )

    match = STATUTE_PARSE_PATTERN.search(text)
    if match:
        code = match.group(1).strip()
        section = match.group(2) + (f"({match.group(3)})" if match.group(3) else "")
        return StatuteCitation(
            raw=text,
            code=code,
            section=section,
            display_name=f"{code} § {section}",
        )

    return None


def find_closest_statute(citation: StatuteCitation) -> Optional[str]:
    """Suggest common codes that share a keyword with the citation's code."""
    for keyword, codes in CLOSEST_STATUTE_CODES.items():
        if keyword in citation.code:
            return f"Did you mean one of these: {', '.join(codes)}?"
    return None


def extract_case_citations(text: str) -> list[str]:
    """Return "Party v. Party" names and reporter citations, without duplicates."""
    if not text:
        return []

    citations = [m.group(1).strip() for m in CASE_NAME_PATTERN.finditer(text)]
    citations.extend(m.group(0).strip() for m in REPORTER_CITATION_PATTERN.finditer(text))
    return _unique(citations)


class StatuteValidator:
    """
    Validates statute citations against documents in the vector store.

    An exact display-name hit scores 1.0. Otherwise the best keyword hit for
    "code section" is inspected: both present 0.9, code only 0.6, section
    only 0.5, neither 0.3. A citation is valid above 0.5.
    """

    def __init__(self, store, client_id: Optional[str] = None):
        self.store = store
        self.client_id = client_id

    def validate(self, citation: StatuteCitation) -> ValidationResult:
        try:
            exact = self.store.keyword_search(
                citation.display_name, top_k=1, client_id=self.client_id
            )
            if exact and citation.display_name.lower() in exact[0].content.lower():
                return ValidationResult(
                    citation=citation,
                    is_valid=True,
                    confidence=1.0,
                    reference_url=exact[0].metadata.get("url"),
                )

            fuzzy = self.store.keyword_search(
                f"{citation.code} {citation.section}", top_k=3, client_id=self.client_id
            )
        except Exception as e:
            logger.error(f"Statute validation failed for {citation.display_name}: {e}")
            return ValidationResult(citation=citation, is_valid=False, confidence=0.0)

        if not fuzzy:
            return ValidationResult(
                citation=citation,
                is_valid=False,
                confidence=0.0,
                suggestion=find_closest_statute(citation),
            )

        best = fuzzy[0]
        content = (best.content or "").lower()
        code_present = citation.code.lower() in content
        section_present = citation.section.lower() in content

        if code_present and section_present:
            confidence = 0.9
        elif code_present:
            confidence = 0.6
        elif section_present:
            confidence = 0.5
        else:
            confidence = 0.3

        return ValidationResult(
            citation=citation,
            is_valid=confidence > 0.5,
            confidence=confidence,
            reference_url=best.metadata.get("url"),
        )

    def validate_all(self, text: str) -> list[ValidationResult]:
        """Extract, parse and validate every statute citation in text."""
        results = []
        for raw in extract_statute_citations(text):
            parsed = parse_statute_citation(raw)
            if parsed:
                results.append(self.validate(parsed))
        return results
