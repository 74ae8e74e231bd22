"""
Tests for execution/casefile_rag/statutes.py

Covers: statute citation extraction, citation parsing, closest-code
        suggestions, case-law citation extraction and StatuteValidator
        confidence scoring against a mocked store.
"""

from unittest.mock import MagicMock

import pytest


def _hit(content, url=None):
    from execution.casefile_rag.vector_store import SearchResult
    return SearchResult(
        chunk_id="c1", document_id="d1", chunk_index=0, content=content,
        page_numbers=[1], score=0.5, metadata={"url": url} if url else {},
    )


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class TestExtractStatuteCitations:

    def test_code_sections_in_order(self):
        from execution.casefile_rag.statutes import extract_statute_citations

        text = (
            "See Texas Business & Commerce Code § 17.46(b) and "
            "Texas Civil Practice & Remedies Code § 33.001."
        )
        assert extract_statute_citations(text) == [
            "Texas Business & Commerce Code § 17.46(b)",
            "Texas Civil Practice & Remedies Code § 33.001",
        ]

    def test_dtpa_references(self):
        from execution.casefile_rag.statutes import extract_statute_citations
        assert extract_statute_citations("violates DTPA Section 17.50") == ["DTPA § 17.50"]

    def test_duplicates_removed(self):
        from execution.casefile_rag.statutes import extract_statute_citations
        text = "Texas Family Code § 6.001 ... again Texas Family Code § 6.001"
        assert extract_statute_citations(text) == ["Texas Family Code § 6.001"]

    def test_empty(self):
        from execution.casefile_rag.statutes import extract_statute_citations
        assert extract_statute_citations("") == []
        assert extract_statute_citations("no statutes here") == []


class TestParseStatuteCitation:

    def test_code_with_subsection(self):
        from execution.casefile_rag.statutes import parse_statute_citation

        parsed = parse_statute_citation("Texas Business & Commerce Code § 17.46(b)")
        assert parsed.code == "Business & Commerce Code"
        assert parsed.section == "17.46(b)"
        assert parsed.display_name == "Business & Commerce Code § 17.46(b)"

    def test_dtpa(self):
        from execution.casefile_rag.statutes import parse_statute_citation

        parsed = parse_statute_citation("DTPA § 17.50")
        assert parsed.code == "Texas Deceptive Trade Practices Act"
        assert parsed.display_name == "DTPA § 17.50"

    def test_unrecognised(self):
        from execution.casefile_rag.statutes import parse_statute_citation
        assert parse_statute_citation("nothing to see") is None
        assert parse_statute_citation("") is None


class TestFindClosestStatute:

    def test_suggests_by_keyword(self):
        from execution.casefile_rag.statutes import StatuteCitation, find_closest_statute

        citation = StatuteCitation(raw="x", code="Business Code", section="1.1", display_name="x")
        assert "Texas Business & Commerce Code" in find_closest_statute(citation)

    def test_no_suggestion(self):
        from execution.casefile_rag.statutes import StatuteCitation, find_closest_statute

        citation = StatuteCitation(raw="x", code="Water Code", section="1.1", display_name="x")
        assert find_closest_statute(citation) is None


class TestExtractCaseCitations:

    def test_case_name_and_reporter(self):
        from execution.casefile_rag.statutes import extract_case_citations

        text = "As held in Corbin v. Safeway Stores, 648 S.W.2d 292 (Tex. 1983), the owner is liable."
        citations = extract_case_citations(text)
        assert any(c.startswith("Corbin v. Safeway Stores") for c in citations)
        assert "648 S.W.2d 292 (Tex. 1983)" in citations

    def test_empty(self):
        from execution.casefile_rag.statutes import extract_case_citations
        assert extract_case_citations("") == []


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestStatuteValidator:
    """Confidence tiers of StatuteValidator.validate."""

    def _citation(self):
        from execution.casefile_rag.statutes import parse_statute_citation
        return parse_statute_citation("Texas Business & Commerce Code § 17.46(b)")

    def test_exact_display_name_hit(self):
        from execution.casefile_rag.statutes import StatuteValidator

        store = MagicMock()
        store.keyword_search.return_value = [
            _hit("Under Business & Commerce Code § 17.46(b) false advertising is unlawful", url="https://statutes.example/17.46")
        ]
        result = StatuteValidator(store, client_id="c1").validate(self._citation())
        assert result.is_valid is True
        assert result.confidence == 1.0
        assert result.reference_url == "https://statutes.example/17.46"

    @pytest.mark.parametrize("content,confidence,valid", [
        ("business & commerce code section 17.46(b) text", 0.9, True),
        ("business & commerce code general provisions", 0.6, True),
        ("17.46(b) mentioned alone", 0.5, False),
        ("unrelated text", 0.3, False),
    ])
    def test_fuzzy_tiers(self, content, confidence, valid):
        from execution.casefile_rag.statutes import StatuteValidator

        store = MagicMock()
        store.keyword_search.side_effect = [[], [_hit(content)]]
        result = StatuteValidator(store).validate(self._citation())
        assert result.confidence == confidence
        assert result.is_valid is valid

    def test_no_hits_suggests_code(self):
        from execution.casefile_rag.statutes import StatuteValidator

        store = MagicMock()
        store.keyword_search.return_value = []
        result = StatuteValidator(store).validate(self._citation())
        assert result.is_valid is False
        assert result.confidence == 0.0
        assert result.suggestion is not None

    def test_store_error_is_invalid_not_raised(self):
        from execution.casefile_rag.statutes import StatuteValidator

        store = MagicMock()
        store.keyword_search.side_effect = RuntimeError("db down")
        result = StatuteValidator(store).validate(self._citation())
        assert result.is_valid is False
        assert result.confidence == 0.0

    def test_validate_all(self):
        from execution.casefile_rag.statutes import StatuteValidator

        store = MagicMock()
        store.keyword_search.return_value = []
        results = StatuteValidator(store).validate_all(
            "Texas Family Code § 6.001 and DTPA § 17.50"
        )
        assert [r.citation.display_name for r in results] == ["Family Code § 6.001", "DTPA § 17.50"]
        assert results[0].to_dict()["citation"]["section"] == "6.001"
