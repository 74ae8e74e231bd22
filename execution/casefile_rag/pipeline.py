"""
Case File Pipeline

Ties the pieces together for a client's case file.

Ingestion:
    parse -> content hash -> duplicate check -> chunk -> embed (best effort)
          -> store document -> store chunks

Analysis:
    for each stored document: medical processor or legal analyzer
    then timeline reconstruction and case-strength scoring over the results

A failure on one document during analysis is logged and counted; the loop
moves on to the next document.
"""

import json
import time
import logging
from typing import Optional
from pathlib import Path
from dataclasses import dataclass, field, replace

from .document_parser import CaseDocumentParser, ParsedDocument, document_family
from .chunker import ParagraphChunker
from .embeddings import embed_documents_best_effort
from .dedup import generate_content_hash, find_duplicate_groups
from .medical import MedicalDocumentProcessor
from .legal_analysis import LegalDocumentAnalyzer
from .timeline import TimelineReconstructor
from .case_strength import CaseStrengthAnalyzer
from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)

MIN_CHUNK_CHARS = 5
MAX_CHUNK_CHARS = 8000


class IngestionError(RuntimeError):
    """Raised when a document could not be stored."""


@dataclass
class IngestResult:
    """Outcome of ingesting one document."""
    document_id: str
    title: str
    document_type: str
    chunks: int = 0
    embedded: int = 0
    skipped: int = 0
    duplicate_of: Optional[str] = None

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate_of is not None

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "title": self.title,
            "document_type": self.document_type,
            "chunks": self.chunks,
            "embedded": self.embedded,
            "skipped": self.skipped,
            "duplicate_of": self.duplicate_of,
        }


@dataclass
class AnalysisRunResult:
    """Outcome of analyzing a client's documents."""
    client_id: str
    case_id: Optional[str] = None
    medical_analyses: int = 0
    legal_analyses: int = 0
    skipped_documents: int = 0
    failures: int = 0
    errors: list[str] = field(default_factory=list)
    timeline: Optional[dict] = None
    case_strength: Optional[dict] = None

    @property
    def documents_analyzed(self) -> int:
        return self.medical_analyses + self.legal_analyses

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "case_id": self.case_id,
            "documents_analyzed": self.documents_analyzed,
            "medical_analyses": self.medical_analyses,
            "legal_analyses": self.legal_analyses,
            "skipped_documents": self.skipped_documents,
            "failures": self.failures,
            "errors": self.errors,
            "timeline": self.timeline,
            "case_strength": self.case_strength,
        }


def _payload_hash(payload: dict) -> str:
    """Hash an analysis payload, ignoring when it was produced."""
    stable = {k: v for k, v in payload.items() if k not in ("analyzed_at", "processed_at")}
    return generate_content_hash(json.dumps(stable, sort_keys=True, default=str))


class CaseDocumentPipeline:
    """
    Ingests and analyzes documents for a client.

    Usage:
        pipeline = CaseDocumentPipeline(store, embeddings)
        result = pipeline.ingest_file("police_report.pdf", client_id)
        run = pipeline.analyze_client(client_id)
        print(run.case_strength["overall_strength"])
    """

    def __init__(
        self,
        vector_store,
        embedding_service,
        parser: Optional[CaseDocumentParser] = None,
        chunker: Optional[ParagraphChunker] = None,
        medical_processor: Optional[MedicalDocumentProcessor] = None,
        legal_analyzer: Optional[LegalDocumentAnalyzer] = None,
        timeline_reconstructor: Optional[TimelineReconstructor] = None,
        case_strength_analyzer: Optional[CaseStrengthAnalyzer] = None,
    ):
        self.store = vector_store
        self.embeddings = embedding_service
        self.parser = parser or CaseDocumentParser()
        self.chunker = chunker or ParagraphChunker()
        self.medical_processor = medical_processor or MedicalDocumentProcessor()
        self.legal_analyzer = legal_analyzer or LegalDocumentAnalyzer()
        self.timeline_reconstructor = timeline_reconstructor or TimelineReconstructor()
        self.case_strength_analyzer = case_strength_analyzer or CaseStrengthAnalyzer()

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest_file(
        self,
        file_path: str,
        client_id: str,
        case_id: Optional[str] = None,
        stored_path: Optional[str] = None,
    ) -> IngestResult:
        """
        Parse and ingest a PDF, text or markdown file.

        Args:
            file_path: File to read
            client_id: Owning client
            case_id: Optional case the document belongs to
            stored_path: Where the original file is kept, if persisted

        Returns:
            IngestResult
        """
        parsed = self.parser.parse(file_path)
        return self._ingest(parsed, client_id, case_id, file_path=stored_path or str(Path(file_path)))

    def ingest_text(
        self,
        text: str,
        title: str,
        client_id: str,
        case_id: Optional[str] = None,
        document_type: Optional[str] = None,
    ) -> IngestResult:
        """Ingest already-extracted text, such as a pasted note."""
        parsed = self.parser.parse_text(text, title, document_type=document_type)
        return self._ingest(parsed, client_id, case_id)

    def _ingest(
        self,
        parsed: ParsedDocument,
        client_id: str,
        case_id: Optional[str],
        file_path: Optional[str] = None,
    ) -> IngestResult:
        start = time.time()
        meta = parsed.metadata

        if not parsed.raw_text or not parsed.raw_text.strip():
            raise ValueError(f"Document '{meta.title}' contains no extractable text")

        content_hash = generate_content_hash(parsed.raw_text)
        existing = self.store.find_document_by_hash(client_id, content_hash)
        if existing:
            existing_id = str(existing["id"])
            logger.info(f"Skipping '{meta.title}': same content as document {existing_id}")
            get_metrics_collector().record_duplicate()
            return IngestResult(
                document_id=existing_id,
                title=existing.get("title") or meta.title,
                document_type=existing.get("document_type") or meta.document_type,
                duplicate_of=existing_id,
            )

        chunks = self.chunker.chunk(parsed)
        kept = []
        for chunk in chunks:
            if len(chunk.content.strip()) < MIN_CHUNK_CHARS:
                continue
            if len(chunk.content) > MAX_CHUNK_CHARS:
                content = chunk.content[:MAX_CHUNK_CHARS]
                chunk = replace(
                    chunk,
                    content=content,
                    end_char=chunk.start_char + len(content),
                    metadata={
                        **chunk.metadata,
                        "char_count": len(content),
                        "word_count": len(content.split()),
                        "truncated": True,
                    },
                )
            kept.append(replace(chunk, chunk_index=len(kept)))
        skipped = len(chunks) - len(kept)

        vectors = embed_documents_best_effort(self.embeddings, [c.content for c in kept])
        embedded = sum(1 for v in vectors if v is not None)
        for chunk, vector in zip(kept, vectors):
            chunk.metadata = {**chunk.metadata, "has_embedding": vector is not None}

        self.store.insert_document(
            document_id=meta.document_id,
            title=meta.title,
            document_type=meta.document_type,
            client_id=client_id,
            case_id=case_id,
            file_type=meta.file_type,
            content_hash=content_hash,
            file_path=file_path,
            page_count=meta.page_count,
            metadata={"char_count": len(parsed.raw_text)},
        )

        try:
            if not kept:
                raise IngestionError("No chunks could be stored successfully")
            self.store.insert_chunks(
                [c.to_dict() for c in kept], vectors, client_id=client_id, case_id=case_id,
            )
        except Exception as e:
            logger.error(f"Chunk storage failed for '{meta.title}': {e}")
            try:
                self.store.delete_document(meta.document_id, client_id=client_id)
            except Exception as cleanup_error:
                logger.error(f"Rollback of document {meta.document_id} failed: {cleanup_error}")
            if isinstance(e, IngestionError):
                raise
            raise IngestionError("No chunks could be stored successfully") from e

        duration_ms = (time.time() - start) * 1000
        get_metrics_collector().record_ingestion(
            client_id, meta.document_id, len(kept), embedded, duration_ms,
        )
        self.store.log_audit(
            client_id=client_id,
            action="ingest",
            resource_type="document",
            resource_id=meta.document_id,
            details={"title": meta.title, "chunks": len(kept), "embedded": embedded},
        )

        logger.info(
            f"Ingested '{meta.title}' ({meta.document_type}): {len(kept)} chunks, "
            f"{embedded} embedded, {skipped} skipped in {duration_ms:.0f}ms"
        )
        return IngestResult(
            document_id=meta.document_id,
            title=meta.title,
            document_type=meta.document_type,
            chunks=len(kept),
            embedded=embedded,
            skipped=skipped,
        )

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze_client(self, client_id: str, case_id: Optional[str] = None) -> AnalysisRunResult:
        """
        Analyze every document of a client (or one case) and score the case.

        Args:
            client_id: Client whose documents are analyzed
            case_id: Restrict to one case

        Returns:
            AnalysisRunResult with the stored timeline and case-strength payloads
        """
        result = AnalysisRunResult(client_id=client_id, case_id=case_id)
        collector = get_metrics_collector()
        medical, legal = [], []

        for doc in self.store.list_documents(client_id=client_id, case_id=case_id):
            document_id = str(doc["id"])
            document_type = doc.get("document_type") or "unknown"
            family = document_family(document_type)
            if family == "other":
                result.skipped_documents += 1
                continue

            try:
                text = self.store.get_document_text(document_id)
                if not text.strip():
                    result.skipped_documents += 1
                    continue

                if family == "medical":
                    analysis = self.medical_processor.process(
                        document_id, text, client_id=client_id, document_type=document_type,
                    )
                    medical.append(analysis)
                    result.medical_analyses += 1
                else:
                    analysis = self.legal_analyzer.analyze(
                        document_id, text, document_type, client_id=client_id,
                    )
                    legal.append(analysis)
                    result.legal_analyses += 1

                self.store.insert_analysis(
                    client_id=client_id,
                    analysis_type=family,
                    payload=analysis.to_dict(),
                    case_id=doc.get("case_id") or case_id,
                    document_id=document_id,
                    content_hash=generate_content_hash(text),
                )
                collector.record_analysis(True)
            except Exception as e:
                logger.error(f"Analysis failed for document {document_id}: {e}")
                result.failures += 1
                result.errors.append(f"{document_id}: {e}")
                collector.record_analysis(False, type(e).__name__)

        timeline = self.timeline_reconstructor.reconstruct(medical, legal)
        result.timeline = timeline.to_dict()
        self.store.insert_analysis(
            client_id=client_id,
            analysis_type="timeline",
            payload=result.timeline,
            case_id=case_id,
            content_hash=_payload_hash(result.timeline),
        )

        metrics = self.case_strength_analyzer.analyze(medical, legal, timeline.events)
        result.case_strength = metrics.to_dict()
        self.store.insert_analysis(
            client_id=client_id,
            analysis_type="case_strength",
            payload=result.case_strength,
            case_id=case_id,
            content_hash=_payload_hash(result.case_strength),
        )

        logger.info(
            f"Analyzed client {client_id}: {result.documents_analyzed} documents, "
            f"{result.failures} failures, strength={metrics.overall_strength:.2f}"
        )
        return result

    def latest_case_strength(self, client_id: str, case_id: Optional[str] = None) -> Optional[dict]:
        """Newest stored case-strength record, or None."""
        return self.store.get_latest_analysis(client_id, "case_strength", case_id=case_id)

    def cleanup_duplicate_analyses(self, client_id: str) -> int:
        """
        Remove analysis records that have a newer identical record.

        Returns:
            Number of records removed
        """
        records = self.store.list_analyses(client_id)
        if len(records) <= 1:
            return 0

        def _group_key(record: dict) -> str:
            content_hash = record.get("content_hash") or _payload_hash(record.get("payload") or {})
            return "|".join([
                str(record.get("analysis_type")),
                str(record.get("case_id")),
                str(record.get("document_id")),
                content_hash,
            ])

        _, remove = find_duplicate_groups(records, key=_group_key)
        if not remove:
            logger.info(f"No duplicate analyses for client {client_id}")
            return 0

        removed = self.store.delete_analyses(remove)
        logger.info(f"Removed {removed} duplicate analyses for client {client_id}")
        return removed
