"""
Case File RAG - Document retrieval and case analysis for personal-injury files

This module provides:
- Ingesting case-file documents (police reports, medical records, statements)
- Paragraph chunking with page tracking and statute references
- Embedding and cosine similarity search scoped per client and case
- Heuristic medical, legal, timeline and case-strength analysis
- Duplicate detection by content hash
"""

from .document_parser import CaseDocumentParser
from .chunker import ParagraphChunker
from .embeddings import get_embedding_service
from .vector_store import VectorStore
from .retriever import SimilarityRetriever, get_retriever
from .citation import CitationExtractor
from .medical import MedicalDocumentProcessor
from .legal_analysis import LegalDocumentAnalyzer
from .timeline import TimelineReconstructor
from .case_strength import CaseStrengthAnalyzer
from .pipeline import CaseDocumentPipeline, IngestionError

__all__ = [
    "CaseDocumentParser",
    "ParagraphChunker",
    "get_embedding_service",
    "VectorStore",
    "SimilarityRetriever",
    "get_retriever",
    "CitationExtractor",
    "MedicalDocumentProcessor",
    "LegalDocumentAnalyzer",
    "TimelineReconstructor",
    "CaseStrengthAnalyzer",
    "CaseDocumentPipeline",
    "IngestionError",
]

__version__ = "0.1.0"
