"""
FastAPI Backend for Case File RAG

REST endpoints for document ingestion, similarity search, case analysis,
statute citation checks and IRAC parsing. Every data endpoint is scoped to
the client that owns the API key.

Run with: uvicorn execution.casefile_rag.api:app --host 0.0.0.0 --port 8000
"""

import os
import time
import uuid
import shutil
import logging
import tempfile
from pathlib import Path
from collections import defaultdict

from fastapi import FastAPI, HTTPException, UploadFile, File, Form, Depends, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .api_models import (
    HealthResponse,
    TextDocumentRequest, UploadResponse, DocumentInfo, ChunkInfo,
    SearchRequest, SearchHit, SearchResponse,
    AnalysisRunRequest, AnalysisRunResponse, CaseStrengthResponse, CleanupResponse,
    CitationValidationRequest, CitationValidationResponse,
    IracParseRequest, IracParseResponse,
)
from .document_parser import SUPPORTED_SUFFIXES
from .pipeline import IngestionError
from .statutes import StatuteValidator, extract_case_citations
from .irac import is_irac_structured, parse_irac_analysis
from .metrics import get_metrics_collector

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

# Persistent storage directory for uploaded document files
DOCUMENT_STORAGE_DIR = Path(os.getenv("DOCUMENT_STORAGE_DIR", "document_files"))
DOCUMENT_STORAGE_DIR.mkdir(parents=True, exist_ok=True)

app = FastAPI(
    title="Case File RAG API",
    description="Document ingestion, similarity search and case analysis for personal-injury files",
    version=API_VERSION,
)

# Configure CORS: use CORS_ORIGINS env var (comma-separated) or default to localhost
_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Rate Limiting
# =============================================================================

class RateLimiter:
    """Simple in-memory rate limiter using sliding window."""

    def __init__(self, max_requests: int = 60, window_seconds: int = 60):
        self._max_requests = max_requests
        self._window = window_seconds
        self._requests: dict[str, list[float]] = defaultdict(list)

    def is_allowed(self, key: str) -> bool:
        """Check if request is allowed for the given key."""
        now = time.time()
        window_start = now - self._window

        self._requests[key] = [t for t in self._requests[key] if t > window_start]

        if len(self._requests[key]) >= self._max_requests:
            return False

        self._requests[key].append(now)
        return True


_rate_limiter = RateLimiter(
    max_requests=int(os.getenv("RATE_LIMIT_RPM", "60")),
    window_seconds=60,
)


async def check_rate_limit(request: Request):
    """FastAPI dependency that enforces rate limiting per API key."""
    host = request.client.host if request.client else "unknown"
    api_key = request.headers.get("x-api-key", host)
    if not _rate_limiter.is_allowed(api_key):
        raise HTTPException(status_code=429, detail="Rate limit exceeded. Try again later.")


# =============================================================================
# Service Container
# =============================================================================

class ServiceContainer:
    """Lazily builds and caches the store and the services that use it."""

    def __init__(self):
        self._embeddings = None
        self._store = None
        self._services = {}

    def get_embeddings(self):
        if self._embeddings is None:
            from .embeddings import get_embedding_service
            self._embeddings = get_embedding_service()
        return self._embeddings

    def get_store(self):
        if self._store is None:
            from .vector_store import VectorStore, VectorStoreConfig
            # Chunk vectors must match the provider's size
            config = VectorStoreConfig(embedding_dimensions=self.get_embeddings().dimensions)
            self._store = VectorStore(config)
            self._store.connect()
            self._store.initialize_schema()
            try:
                self._store.initialize_auth_schema()
            except Exception as e:
                logger.warning(f"Schema init partial: {e}")
        return self._store

    def get_services(self) -> dict:
        if not self._services:
            from .retriever import get_retriever
            from .citation import CitationExtractor
            from .pipeline import CaseDocumentPipeline

            store = self.get_store()
            embeddings = self.get_embeddings()

            self._services = {
                "embeddings": embeddings,
                "pipeline": CaseDocumentPipeline(store, embeddings),
                "retrievers": {
                    "case": get_retriever(store, embeddings, preset="case"),
                    "semantic": get_retriever(store, embeddings, preset="semantic"),
                },
                "citation_extractor": CitationExtractor(),
            }
        return self._services


_container = ServiceContainer()


# =============================================================================
# Authentication dependency
# =============================================================================

async def get_authenticated_client(x_api_key: str = Header(...)) -> dict:
    """Validate API key and return client info."""
    store = _container.get_store()
    result = store.validate_api_key(x_api_key)
    if not result:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return result


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    try:
        _container.get_store()
        db_status = "connected"
    except Exception as e:
        logger.warning(f"Health check: database disconnected: {e}")
        db_status = "disconnected"

    return HealthResponse(status="ok", version=API_VERSION, database=db_status)


def _upload_response(result) -> UploadResponse:
    if result.is_duplicate:
        raise HTTPException(
            status_code=409,
            detail=f"Document already uploaded as {result.duplicate_of}",
        )
    return UploadResponse(
        id=result.document_id,
        title=result.title,
        document_type=result.document_type,
        chunks=result.chunks,
        embedded=result.embedded,
        skipped=result.skipped,
    )


@app.post("/api/v1/documents/upload", response_model=UploadResponse, dependencies=[Depends(check_rate_limit)])
async def upload_document(
    file: UploadFile = File(...),
    case_id: str = Form(None),
    client: dict = Depends(get_authenticated_client),
):
    """Upload and ingest a PDF, text or markdown file."""
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise HTTPException(status_code=400, detail="Only PDF, TXT and MD files are supported")

    client_id = client["client_id"]
    pipeline = _container.get_services()["pipeline"]

    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        tmp.write(await file.read())
        tmp_path = tmp.name

    stored_path = DOCUMENT_STORAGE_DIR / f"{uuid.uuid4()}{suffix}"
    try:
        shutil.copy2(tmp_path, stored_path)
        result = pipeline.ingest_file(tmp_path, client_id, case_id=case_id, stored_path=str(stored_path))
        if result.is_duplicate:
            stored_path.unlink(missing_ok=True)
        return _upload_response(result)
    except ValueError as e:
        stored_path.unlink(missing_ok=True)
        raise HTTPException(status_code=400, detail=str(e))
    except IngestionError as e:
        stored_path.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        os.unlink(tmp_path)


@app.post("/api/v1/documents/text", response_model=UploadResponse, dependencies=[Depends(check_rate_limit)])
async def upload_text(
    request: TextDocumentRequest,
    client: dict = Depends(get_authenticated_client),
):
    """Ingest pasted text as a document."""
    pipeline = _container.get_services()["pipeline"]
    try:
        result = pipeline.ingest_text(
            request.text,
            request.title,
            client["client_id"],
            case_id=request.case_id,
            document_type=request.document_type,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IngestionError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _upload_response(result)


@app.get("/api/v1/documents", response_model=list[DocumentInfo])
async def list_documents(
    case_id: str = None,
    client: dict = Depends(get_authenticated_client),
):
    """List documents for the authenticated client, newest first."""
    store = _container.get_store()
    docs = store.list_documents(client_id=client["client_id"], case_id=case_id)
    return [
        DocumentInfo(
            id=str(d["id"]),
            title=d["title"],
            document_type=d["document_type"],
            file_type=d.get("file_type"),
            case_id=str(d["case_id"]) if d.get("case_id") else None,
            page_count=d.get("page_count") or 0,
            created_at=str(d.get("created_at", "")),
        )
        for d in docs
    ]


@app.get("/api/v1/documents/{document_id}/chunks", response_model=list[ChunkInfo])
async def get_document_chunks(
    document_id: str,
    client: dict = Depends(get_authenticated_client),
):
    """Chunks of a document in order."""
    store = _container.get_store()
    if not store.get_document(document_id, client_id=client["client_id"]):
        raise HTTPException(status_code=404, detail="Document not found")

    return [
        ChunkInfo(
            id=str(c["id"]),
            chunk_index=c["chunk_index"],
            content=c["content"],
            page_numbers=c.get("page_numbers") or [],
            metadata=c.get("metadata") or {},
        )
        for c in store.get_document_chunks(document_id)
    ]


@app.delete("/api/v1/documents/{document_id}")
async def delete_document(
    document_id: str,
    client: dict = Depends(get_authenticated_client),
):
    """Delete a document and all its chunks (client-isolated)."""
    store = _container.get_store()
    client_id = client["client_id"]
    try:
        document = store.get_document(document_id, client_id=client_id)
        if not document or not store.delete_document(document_id, client_id=client_id):
            raise HTTPException(status_code=404, detail="Document not found")

        file_path = document.get("file_path")
        if file_path:
            Path(file_path).unlink(missing_ok=True)

        store.log_audit(
            client_id=client_id,
            action="delete",
            resource_type="document",
            resource_id=document_id,
        )
        return {"status": "deleted", "document_id": document_id}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/v1/search", response_model=SearchResponse, dependencies=[Depends(check_rate_limit)])
async def search_documents(
    request: SearchRequest,
    client: dict = Depends(get_authenticated_client),
):
    """Similarity search over the client's chunks with citations."""
    start_time = time.time()
    client_id = client["client_id"]
    services = _container.get_services()
    store = _container.get_store()

    store.log_audit(
        client_id=client_id,
        action="search",
        details={"query": request.query[:200], "preset": request.preset},
    )

    try:
        results = services["retrievers"][request.preset].retrieve(
            request.query,
            client_id=client_id,
            case_id=request.case_id,
            document_id=request.document_id,
            top_k=request.top_k,
            min_score=request.min_score,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Search failed: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Search failed")

    doc_ids = list({r.document_id for r in results})
    titles = store.get_document_titles(doc_ids, client_id=client_id)
    cited = services["citation_extractor"].extract(results, document_titles=titles)

    hits = [
        SearchHit(
            chunk_id=cc.citation.chunk_id,
            document_id=cc.citation.document_id,
            document_title=cc.citation.document_title,
            chunk_index=cc.citation.chunk_index,
            page_numbers=cc.citation.page_numbers,
            relevance_score=cc.citation.relevance_score,
            short_citation=cc.citation.short_format(),
            long_citation=cc.citation.long_format(),
            content=cc.content,
            legal_references=cc.citation.legal_references,
        )
        for cc in cited
    ]
    return SearchResponse(results=hits, latency_ms=(time.time() - start_time) * 1000)


@app.post("/api/v1/analysis/run", response_model=AnalysisRunResponse, dependencies=[Depends(check_rate_limit)])
async def run_analysis(
    request: AnalysisRunRequest,
    client: dict = Depends(get_authenticated_client),
):
    """Analyze all of the client's documents and score the case."""
    pipeline = _container.get_services()["pipeline"]
    try:
        result = pipeline.analyze_client(client["client_id"], case_id=request.case_id)
    except Exception as e:
        logger.error(f"Analysis run failed: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Analysis failed")
    return AnalysisRunResponse(**result.to_dict())


@app.get("/api/v1/analysis/case-strength", response_model=CaseStrengthResponse)
async def get_case_strength(
    case_id: str = None,
    client: dict = Depends(get_authenticated_client),
):
    """Newest case-strength assessment."""
    pipeline = _container.get_services()["pipeline"]
    record = pipeline.latest_case_strength(client["client_id"], case_id=case_id)
    if not record:
        raise HTTPException(status_code=404, detail="No case-strength analysis found")
    return CaseStrengthResponse(
        id=str(record["id"]),
        case_id=str(record["case_id"]) if record.get("case_id") else None,
        created_at=str(record.get("created_at", "")),
        metrics=record.get("payload") or {},
    )


@app.post("/api/v1/analysis/cleanup", response_model=CleanupResponse)
async def cleanup_analyses(
    client: dict = Depends(get_authenticated_client),
):
    """Remove analysis records superseded by a newer identical one."""
    pipeline = _container.get_services()["pipeline"]
    removed = pipeline.cleanup_duplicate_analyses(client["client_id"])
    return CleanupResponse(duplicates_removed=removed)


@app.post("/api/v1/citations/validate", response_model=CitationValidationResponse)
async def validate_citations(
    request: CitationValidationRequest,
    client: dict = Depends(get_authenticated_client),
):
    """Check statute citations in the text against the client's documents."""
    validator = StatuteValidator(_container.get_store(), client_id=client["client_id"])
    return CitationValidationResponse(
        statutes=[r.to_dict() for r in validator.validate_all(request.text)],
        case_citations=extract_case_citations(request.text),
    )


@app.post("/api/v1/irac/parse", response_model=IracParseResponse)
async def parse_irac(
    request: IracParseRequest,
    client: dict = Depends(get_authenticated_client),
):
    """Parse IRAC-formatted analysis text."""
    analysis = parse_irac_analysis(request.text)
    return IracParseResponse(
        is_irac=is_irac_structured(request.text),
        analysis=analysis.to_dict() if analysis else None,
    )


@app.get("/api/v1/metrics")
async def get_metrics(
    client: dict = Depends(get_authenticated_client),
):
    """In-process search, ingestion and analysis metrics."""
    collector = get_metrics_collector()
    metrics = collector.get_metrics_dict()
    metrics["uptime_seconds"] = round(collector.get_uptime().total_seconds(), 1)
    return metrics
