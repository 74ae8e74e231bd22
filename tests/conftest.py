"""
Shared fixtures and test utilities for Case File RAG tests.

Provides mock services, sample case-file documents and reusable fixtures so
that all tests run without API keys, databases or network access.
"""

import sys
import uuid
import hashlib
from pathlib import Path
from datetime import datetime, timedelta

import numpy as np
import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

CLIENT_ID = "00000000-0000-0000-0000-000000000001"
OTHER_CLIENT_ID = "00000000-0000-0000-0000-000000000002"

# ---------------------------------------------------------------------------
# Sample case-file documents
# ---------------------------------------------------------------------------
SAMPLE_POLICE_REPORT = """
POLICE REPORT

Report Number: 2024-00173
Department: Austin Police Department
Officer: J. Ramirez, Badge Number: 4412

Date of Incident: 03/15/2024
Time of Incident: 14:30
Location: 1200 Congress Avenue, Austin

On 03/15/2024 at 14:30 the officer observed a wet floor at the store entrance with no warning sign posted.

Officer Ramirez observed that the store manager failed to place a caution sign after mopping, which was below standard for a business owner.

Witness Maria Lopez said that the floor had been wet for an hour.

The plaintiff fell and suffered a broken wrist, documented at the scene, and was transported to the hospital for treatment.

Officer Ramirez recorded that the fall was caused by the wet floor and resulted in injury to the right wrist.

I think the store was careless.
"""

SAMPLE_MEDICAL_RECORD = """
MEDICAL RECORD

Patient ID: 55821
Provider: Dr. Sarah Chen, MD
Phone: (512) 555-0142

Chief Complaint: Right wrist pain after a fall.

History of Present Illness: Patient reports slipping on a wet floor.

Assessment and Plan: Diagnosis confirmed by physician: S62.101A fracture of right wrist. Low back pain M54.5 assessed.

Prescription: Tramadol, 50 mg every 6 hours for pain

03/15/2024 - Emergency room visit, x-ray of right wrist
03/29/2024 - Follow-up treatment visit with orthopedic physician
04/12/2024 - Physical therapy session 1

Total charges: $4,250.00
"""

SAMPLE_IRAC_TEXT = """**CASE SUMMARY:** Customer slipped on a wet floor at the store entrance.

**ISSUE [1]:** [Premises Liability] Whether the store owed the customer a duty of care.

**RULE [1]:** A business owner owes invitees a duty to keep the premises reasonably safe.

**APPLICATION [1]:** The customer was an invitee shopping during business hours.

**CONCLUSION [1]:** The store owed a duty of care.

**ISSUE [2]:** [Negligence] Whether the store breached its duty.

**RULE [2]:** Failing to warn of a known hazard is a breach.

**APPLICATION [2]:** No caution sign was posted after mopping.

**CONCLUSION [2]:** The duty was likely breached.

**OVERALL CONCLUSION:** The customer has a strong premises liability claim.

**RECOMMENDED FOLLOW-UP QUESTIONS:**
1. Was there surveillance footage?
2. How long was the floor wet?

**NEXT STEPS:**
- Request store incident logs
- Interview the store manager
"""


@pytest.fixture
def sample_police_report():
    return SAMPLE_POLICE_REPORT


@pytest.fixture
def sample_medical_record():
    return SAMPLE_MEDICAL_RECORD


@pytest.fixture
def sample_irac_text():
    return SAMPLE_IRAC_TEXT


@pytest.fixture
def police_report_file(tmp_path):
    path = tmp_path / "police_report.txt"
    path.write_text(SAMPLE_POLICE_REPORT, encoding="utf-8")
    return path


@pytest.fixture
def medical_record_file(tmp_path):
    path = tmp_path / "medical_record.md"
    path.write_text(SAMPLE_MEDICAL_RECORD, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=1536, fail_on=None):
        self._dimensions = dimensions
        self._fail_on = fail_on
        self._call_count = 0

    def embed_documents(self, texts):
        if self._fail_on and any(self._fail_on in t for t in texts):
            raise RuntimeError("provider rejected input")
        return [self._deterministic_embedding(t) for t in texts]

    def embed_query(self, query):
        self._call_count += 1
        return self._deterministic_embedding(query)

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i) % 1000) / 1000.0 for i in range(self._dimensions)]

    @property
    def dimensions(self):
        return self._dimensions


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService(dimensions=1536)


# ---------------------------------------------------------------------------
# Mock vector store (no database needed)
# ---------------------------------------------------------------------------

class MockVectorStore:
    """In-memory mock of VectorStore for testing without PostgreSQL."""

    def __init__(self):
        self._documents = {}
        self._chunks = {}
        self._analyses = {}
        self._audit = []
        self._clock = datetime(2024, 1, 1)

    def _tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def connect(self):
        pass

    def initialize_schema(self):
        pass

    def initialize_auth_schema(self):
        pass

    def insert_document(self, document_id, title, document_type, client_id,
                        case_id=None, content_hash=None, **kwargs):
        self._documents[document_id] = {
            "id": document_id, "title": title, "document_type": document_type,
            "client_id": client_id, "case_id": case_id,
            "content_hash": content_hash, "created_at": self._tick(), **kwargs,
        }

    def find_document_by_hash(self, client_id, content_hash):
        matches = [
            d for d in self._documents.values()
            if d["client_id"] == client_id and d["content_hash"] == content_hash
        ]
        if not matches:
            return None
        newest = max(matches, key=lambda d: d["created_at"])
        return {k: newest[k] for k in ("id", "title", "document_type", "created_at")}

    def get_document(self, document_id, client_id=None):
        doc = self._documents.get(document_id)
        if doc and client_id and doc["client_id"] != client_id:
            return None
        return doc

    def insert_chunks(self, chunks, embeddings, client_id, case_id=None):
        if len(chunks) != len(embeddings):
            raise ValueError("Mismatch")
        for chunk, emb in zip(chunks, embeddings):
            self._chunks[chunk["chunk_id"]] = {
                **chunk, "embedding": emb, "client_id": client_id, "case_id": case_id,
            }

    def _scoped(self, client_id, case_id, document_id):
        for cid, chunk in self._chunks.items():
            if client_id and chunk["client_id"] != client_id:
                continue
            if case_id and chunk["case_id"] != case_id:
                continue
            if document_id and chunk["document_id"] != document_id:
                continue
            yield cid, chunk

    def _result(self, cid, chunk, score):
        from execution.casefile_rag.vector_store import SearchResult
        return SearchResult(
            chunk_id=cid,
            document_id=chunk["document_id"],
            chunk_index=chunk["chunk_index"],
            content=chunk["content"],
            page_numbers=chunk.get("page_numbers", []),
            score=score,
            metadata=chunk.get("metadata", {}),
        )

    def search(self, query_embedding, top_k=10, client_id=None, case_id=None,
               document_id=None, min_score=0.0):
        query = np.array(query_embedding, dtype=float)
        results = []
        for cid, chunk in self._scoped(client_id, case_id, document_id):
            if chunk["embedding"] is None:
                continue
            vec = np.array(chunk["embedding"], dtype=float)
            score = float(np.dot(query, vec) / (np.linalg.norm(query) * np.linalg.norm(vec)))
            if score >= min_score:
                results.append(self._result(cid, chunk, score))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    def keyword_search(self, query, top_k=10, client_id=None, case_id=None, document_id=None):
        words = query.lower().split()
        results = []
        for cid, chunk in self._scoped(client_id, case_id, document_id):
            content = chunk["content"].lower()
            hits = sum(1 for w in words if w in content)
            if hits:
                results.append(self._result(cid, chunk, hits / len(words)))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    def delete_document(self, document_id, client_id=None):
        doc = self.get_document(document_id, client_id)
        if not doc:
            return False
        del self._documents[document_id]
        for cid in [k for k, v in self._chunks.items() if v["document_id"] == document_id]:
            del self._chunks[cid]
        return True

    def get_document_titles(self, document_ids, client_id=None):
        return {
            d: self._documents[d]["title"]
            for d in document_ids if d in self._documents
        }

    def get_document_chunks(self, document_id):
        chunks = [
            {"id": cid, **c} for cid, c in self._chunks.items()
            if c["document_id"] == document_id
        ]
        return sorted(chunks, key=lambda c: c["chunk_index"])

    def get_document_text(self, document_id):
        return "\n\n".join(c["content"] for c in self.get_document_chunks(document_id))

    def list_documents(self, client_id=None, case_id=None):
        docs = [
            d for d in self._documents.values()
            if (not client_id or d["client_id"] == client_id)
            and (not case_id or d["case_id"] == case_id)
        ]
        return sorted(docs, key=lambda d: d["created_at"], reverse=True)

    def insert_analysis(self, client_id, analysis_type, payload, case_id=None,
                        document_id=None, content_hash=None):
        analysis_id = str(uuid.uuid4())
        self._analyses[analysis_id] = {
            "id": analysis_id, "client_id": client_id, "case_id": case_id,
            "document_id": document_id, "analysis_type": analysis_type,
            "payload": payload, "content_hash": content_hash,
            "created_at": self._tick(),
        }
        return analysis_id

    def list_analyses(self, client_id, analysis_type=None, case_id=None):
        records = [
            a for a in self._analyses.values()
            if a["client_id"] == client_id
            and (not analysis_type or a["analysis_type"] == analysis_type)
            and (not case_id or a["case_id"] == case_id)
        ]
        return sorted(records, key=lambda a: a["created_at"], reverse=True)

    def get_latest_analysis(self, client_id, analysis_type, case_id=None):
        records = self.list_analyses(client_id, analysis_type, case_id)
        return records[0] if records else None

    def delete_analyses(self, analysis_ids):
        removed = 0
        for analysis_id in analysis_ids:
            if self._analyses.pop(analysis_id, None):
                removed += 1
        return removed

    def log_audit(self, client_id, action, resource_type=None, resource_id=None, details=None):
        self._audit.append({
            "client_id": client_id, "action": action,
            "resource_type": resource_type, "resource_id": resource_id,
            "details": details,
        })

    def close(self):
        pass


@pytest.fixture
def mock_vector_store():
    return MockVectorStore()


# ---------------------------------------------------------------------------
# Search results for citation / retriever tests
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_search_results():
    """Return a list of SearchResult objects for testing."""
    from execution.casefile_rag.vector_store import SearchResult
    return [
        SearchResult(
            chunk_id="chunk-001", document_id="doc-001", chunk_index=0,
            content="The store manager failed to place a caution sign after mopping.",
            page_numbers=[1, 2], score=0.92,
            metadata={"source": "Police Report", "legal_references": []},
        ),
        SearchResult(
            chunk_id="chunk-002", document_id="doc-001", chunk_index=1,
            content="Under Texas Civil Practice & Remedies Code § 75.002 the owner owes a duty.",
            page_numbers=[3], score=0.81,
            metadata={"legal_references": ["Texas Civil Practice & Remedies Code § 75.002"]},
        ),
        SearchResult(
            chunk_id="chunk-003", document_id="doc-002", chunk_index=4,
            content="Diagnosis confirmed: fracture of right wrist.",
            page_numbers=[], score=0.74,
            metadata={},
        ),
    ]


# ---------------------------------------------------------------------------
# Singleton resets between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_metrics_singleton():
    """Reset the MetricsCollector singleton between tests."""
    from execution.casefile_rag.metrics import MetricsCollector
    MetricsCollector._instance = None
    yield
    MetricsCollector._instance = None
