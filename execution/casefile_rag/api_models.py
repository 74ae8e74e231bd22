"""
Pydantic models for the Case File RAG FastAPI backend.
"""

from typing import Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for health check."""
    status: str
    version: str
    database: str


# =========================================================================
# Documents
# =========================================================================

class TextDocumentRequest(BaseModel):
    """Request body for ingesting pasted text."""
    title: str = Field(..., min_length=1, max_length=500)
    text: str = Field(..., min_length=1)
    case_id: Optional[str] = None
    document_type: Optional[str] = None


class UploadResponse(BaseModel):
    """Response body for document upload."""
    id: str
    title: str
    document_type: str
    chunks: int
    embedded: int
    skipped: int = 0


class DocumentInfo(BaseModel):
    """Information about a stored document."""
    id: str
    title: str
    document_type: str
    file_type: Optional[str] = None
    case_id: Optional[str] = None
    page_count: int = 0
    created_at: Optional[str] = None


class ChunkInfo(BaseModel):
    """A stored chunk of a document."""
    id: str
    chunk_index: int
    content: str
    page_numbers: list[int] = []
    metadata: dict = {}


# =========================================================================
# Search
# =========================================================================

class SearchRequest(BaseModel):
    """Request body for similarity search."""
    query: str = Field(..., min_length=1, max_length=2000)
    preset: str = Field(default="case", pattern=r"^(case|semantic)$")
    top_k: Optional[int] = Field(default=None, ge=1, le=50)
    min_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    case_id: Optional[str] = None
    document_id: Optional[str] = None


class SearchHit(BaseModel):
    """One cited search result."""
    chunk_id: str
    document_id: str
    document_title: str
    chunk_index: int
    page_numbers: list[int]
    relevance_score: float
    short_citation: str
    long_citation: str
    content: str
    legal_references: list[str] = []


class SearchResponse(BaseModel):
    """Response body for similarity search."""
    results: list[SearchHit]
    latency_ms: float


# =========================================================================
# Analysis
# =========================================================================

class AnalysisRunRequest(BaseModel):
    """Request body for running analysis over a client's documents."""
    case_id: Optional[str] = None


class AnalysisRunResponse(BaseModel):
    client_id: str
    case_id: Optional[str] = None
    documents_analyzed: int
    medical_analyses: int
    legal_analyses: int
    skipped_documents: int
    failures: int
    errors: list[str] = []
    timeline: Optional[dict] = None
    case_strength: Optional[dict] = None


class CaseStrengthResponse(BaseModel):
    """Newest stored case-strength record."""
    id: str
    case_id: Optional[str] = None
    created_at: Optional[str] = None
    metrics: dict


class CleanupResponse(BaseModel):
    duplicates_removed: int


# =========================================================================
# Citations & IRAC
# =========================================================================

class CitationValidationRequest(BaseModel):
    """Request body for statute citation validation."""
    text: str = Field(..., min_length=1, max_length=50000)


class CitationValidationResponse(BaseModel):
    statutes: list[dict]
    case_citations: list[str]


class IracParseRequest(BaseModel):
    """Request body for IRAC parsing."""
    text: str = Field(..., min_length=1, max_length=100000)


class IracParseResponse(BaseModel):
    is_irac: bool
    analysis: Optional[dict] = None
