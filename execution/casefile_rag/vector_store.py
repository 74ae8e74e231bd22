"""
Vector Store with PostgreSQL + pgvector

Provides persistence for case-file documents, their chunks and embeddings,
analysis records, and API keys. Similarity search uses pgvector's cosine
distance. Every query is scoped by client (and optionally case) so firms only
ever see their own documents.

Data model:
    clients          -- a firm's client (the owner of documents)
    cases            -- optional grouping of a client's documents
    case_documents   -- one row per ingested document
    document_chunks  -- ordered chunks; embedding is NULL when embedding failed
    case_analyses    -- analysis records; newest row per kind wins
"""

import os
import json
import uuid
import logging
import hashlib
import secrets
from typing import Optional
from dataclasses import dataclass, field

try:
    import psycopg2
    import psycopg2.extras
    import psycopg2.pool
except ImportError:
    psycopg2 = None  # Will be caught at connect() time

from .embeddings import provider_dimensions

logger = logging.getLogger(__name__)


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    connection_string: Optional[str] = None
    table_name: str = "document_chunks"
    embedding_dimensions: int = field(default_factory=provider_dimensions)
    index_lists: int = 100  # IVFFlat index parameter
    pool_min_connections: int = 2
    pool_max_connections: int = 20
    use_pooling: bool = True


@dataclass
class SearchResult:
    """A single search result with score."""
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    page_numbers: list[int]
    score: float
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "page_numbers": self.page_numbers,
            "score": self.score,
            "metadata": self.metadata,
        }


def _row_to_dict(row, columns: list[str]) -> dict:
    """Handle both RealDictRow and tuple rows."""
    if hasattr(row, 'keys'):
        return dict(row)
    return dict(zip(columns, row))


def _load_json(value) -> dict:
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return {}
    return dict(value)


class VectorStore:
    """
    PostgreSQL vector store with pgvector.

    Features:
    - Cosine similarity search over non-NULL embeddings
    - Client / case / document scoping
    - Batch insert for efficiency
    - Append-only analysis records (latest wins)
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        """
        Initialize vector store.

        Args:
            config: Optional configuration. Uses env vars if not provided.
        """
        self.config = config or VectorStoreConfig()
        self._conn = None
        self._pool = None
        self._connection_string = (
            self.config.connection_string or
            os.getenv("POSTGRES_URL") or
            os.getenv("DATABASE_URL") or
            "postgresql://localhost:5432/casefile_rag"
        )

    def connect(self) -> None:
        """Establish database connection (with optional pooling)."""
        if psycopg2 is None:
            raise ImportError(
                "psycopg2 not installed. Run: pip install psycopg2-binary"
            )
        from psycopg2.extras import RealDictCursor

        try:
            if self.config.use_pooling:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self.config.pool_min_connections,
                    maxconn=self.config.pool_max_connections,
                    dsn=self._connection_string,
                    cursor_factory=RealDictCursor,
                )
                conn = self._pool.getconn()
                try:
                    with conn.cursor() as cur:
                        cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    conn.commit()
                finally:
                    self._pool.putconn(conn)

                logger.info(
                    f"Connection pool initialized (min={self.config.pool_min_connections}, "
                    f"max={self.config.pool_max_connections})"
                )
            else:
                self._conn = psycopg2.connect(
                    self._connection_string,
                    cursor_factory=RealDictCursor
                )
                self._conn.autocommit = False

                with self._conn.cursor() as cur:
                    cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    self._conn.commit()

                logger.info("Connected to PostgreSQL with pgvector (single connection)")

        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            raise

    def _get_connection(self):
        """Get a database connection (from pool or single connection)."""
        if self._pool:
            return self._pool.getconn()

        if self._conn is None or self._conn.closed:
            logger.warning("Connection closed, reconnecting...")
            self.connect()

        return self._conn

    def _release_connection(self, conn):
        """Release a connection back to the pool (if pooling is enabled)."""
        if self._pool and conn:
            self._pool.putconn(conn)

    def _ensure_connection(self):
        """Ensure we have a connection (pool or single) and return it."""
        if not self._conn and not self._pool:
            self.connect()

        try:
            return self._get_connection()
        except (psycopg2.OperationalError, psycopg2.InterfaceError):
            logger.warning("Database error in _ensure_connection, retrying after reconnect...")
            self.connect()
            return self._get_connection()

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except (psycopg2.InterfaceError, psycopg2.OperationalError):
            pass

    def _execute_with_retry(self, operation, label="db_operation"):
        """Execute a DB operation with one retry on stale connection.

        Args:
            operation: Callable(conn) that performs the DB work and returns a result.
            label: Human-readable name for logging.

        Returns:
            Whatever ``operation`` returns.
        """
        for attempt in range(2):
            conn = self._ensure_connection()
            try:
                result = operation(conn)
                self._release_connection(conn)
                return result
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                self._safe_rollback(conn)
                self._release_connection(conn)
                if attempt == 0:
                    logger.warning(f"{label}: stale conn, reconnecting: {e}")
                    self.close()
                    self.connect()
                    continue
                raise
            except Exception:
                self._safe_rollback(conn)
                self._release_connection(conn)
                raise

    def close(self) -> None:
        """Close database connection(s)."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")
        if self._conn:
            self._conn.close()
            self._conn = None

    # =========================================================================
    # Schema
    # =========================================================================

    def initialize_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        table = self.config.table_name
        schema_sql = f"""
        CREATE TABLE IF NOT EXISTS clients (
            id UUID PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS cases (
            id UUID PRIMARY KEY,
            client_id UUID NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_cases_client ON cases(client_id);

        CREATE TABLE IF NOT EXISTS case_documents (
            id UUID PRIMARY KEY,
            client_id UUID NOT NULL,
            case_id UUID REFERENCES cases(id) ON DELETE SET NULL,
            title TEXT NOT NULL,
            document_type TEXT,
            file_type TEXT,
            content_hash VARCHAR(64),
            page_count INT DEFAULT 0,
            file_path TEXT,
            metadata JSONB DEFAULT '{{}}',
            created_at TIMESTAMPTZ DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_documents_client ON case_documents(client_id);
        CREATE INDEX IF NOT EXISTS idx_documents_hash ON case_documents(client_id, content_hash);

        CREATE TABLE IF NOT EXISTS {table} (
            id UUID PRIMARY KEY,
            document_id UUID NOT NULL REFERENCES case_documents(id) ON DELETE CASCADE,
            client_id UUID NOT NULL,
            case_id UUID,
            chunk_index INT NOT NULL,
            content TEXT NOT NULL,
            page_numbers INT[] DEFAULT ARRAY[]::INT[],
            embedding VECTOR({self.config.embedding_dimensions}),
            metadata JSONB DEFAULT '{{}}',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            UNIQUE (document_id, chunk_index)
        );
        CREATE INDEX IF NOT EXISTS idx_chunks_document ON {table}(document_id);
        CREATE INDEX IF NOT EXISTS idx_chunks_client_case ON {table}(client_id, case_id);
        CREATE INDEX IF NOT EXISTS idx_chunks_content_fts
            ON {table} USING GIN (to_tsvector('english', content));

        CREATE TABLE IF NOT EXISTS case_analyses (
            id UUID PRIMARY KEY,
            client_id UUID NOT NULL,
            case_id UUID,
            document_id UUID,
            analysis_type VARCHAR(30) NOT NULL,
            payload JSONB NOT NULL,
            content_hash VARCHAR(64),
            created_at TIMESTAMPTZ DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_analyses_client_type_time
            ON case_analyses(client_id, analysis_type, created_at DESC);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(schema_sql)
                conn.commit()
            logger.info("Schema initialized successfully")

        self._execute_with_retry(_op, "initialize_schema")
        self.create_vector_index(index_type="hnsw")

    def create_vector_index(self, index_type: str = "ivfflat") -> None:
        """
        Create the cosine similarity index on chunk embeddings.

        Args:
            index_type: "ivfflat" (build after bulk inserts, it samples existing
                       rows for its lists) or "hnsw" (safe on an empty table)
        """
        table = self.config.table_name
        if index_type == "hnsw":
            index_sql = f"""
            CREATE INDEX IF NOT EXISTS idx_chunks_embedding
                ON {table}
                USING hnsw (embedding vector_cosine_ops);
            """
        elif index_type == "ivfflat":
            index_sql = f"""
            CREATE INDEX IF NOT EXISTS idx_chunks_embedding
                ON {table}
                USING ivfflat (embedding vector_cosine_ops)
                WITH (lists = {self.config.index_lists});
            """
        else:
            raise ValueError(f"Unknown index type: {index_type}")

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(index_sql)
                conn.commit()
            logger.info(f"Vector index created (type: {index_type})")

        self._execute_with_retry(_op, "create_vector_index")

    # =========================================================================
    # Authentication & Audit
    # =========================================================================

    def initialize_auth_schema(self) -> None:
        """Create tables for API key authentication and audit logging."""
        auth_sql = """
        CREATE TABLE IF NOT EXISTS api_keys (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            key_hash VARCHAR(64) NOT NULL UNIQUE,
            client_id UUID NOT NULL,
            name VARCHAR(100),
            is_active BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            last_used_at TIMESTAMPTZ
        );
        CREATE INDEX IF NOT EXISTS idx_api_keys_hash ON api_keys(key_hash);

        CREATE TABLE IF NOT EXISTS audit_log (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            client_id UUID NOT NULL,
            action VARCHAR(50) NOT NULL,
            resource_type VARCHAR(50),
            resource_id UUID,
            details JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_audit_client_time
            ON audit_log(client_id, created_at DESC);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(auth_sql)
                conn.commit()
            logger.info("Authentication schema initialized")

        self._execute_with_retry(_op, "initialize_auth_schema")

    def create_api_key(self, client_id: str, name: str = "Default") -> str:
        """
        Create a new API key for a client.

        Args:
            client_id: The client UUID
            name: A friendly name for the key

        Returns:
            The raw API key (only shown once, store securely!)
        """
        raw_key = f"cfrag_{secrets.token_urlsafe(32)}"
        key_hash = hashlib.sha256(raw_key.encode()).hexdigest()

        sql = """
        INSERT INTO api_keys (key_hash, client_id, name)
        VALUES (%s, %s::uuid, %s)
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (key_hash, client_id, name))
                conn.commit()
            logger.info(f"API key created for client {client_id}")

        self._execute_with_retry(_op, "create_api_key")
        return raw_key

    def validate_api_key(self, api_key: str) -> Optional[dict]:
        """
        Validate an API key and return client info.

        Returns:
            Dict with client_id and name if valid; None if invalid
        """
        key_hash = hashlib.sha256(api_key.encode()).hexdigest()

        sql = """
        UPDATE api_keys
        SET last_used_at = NOW()
        WHERE key_hash = %s AND is_active = TRUE
        RETURNING client_id, name
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (key_hash,))
                row = cur.fetchone()
                conn.commit()
            if not row:
                return None
            row_dict = _row_to_dict(row, ["client_id", "name"])
            return {"client_id": str(row_dict["client_id"]), "name": row_dict["name"]}

        try:
            return self._execute_with_retry(_op, "validate_api_key")
        except Exception as e:
            logger.error(f"API key validation failed: {e}")
            return None

    def log_audit(
        self,
        client_id: str,
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Record an action in the audit log. Failures are logged, never raised."""
        sql = """
        INSERT INTO audit_log (client_id, action, resource_type, resource_id, details)
        VALUES (%s::uuid, %s, %s, %s::uuid, %s)
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (
                    client_id,
                    action,
                    resource_type,
                    resource_id,
                    json.dumps(details) if details else None,
                ))
                conn.commit()

        try:
            self._execute_with_retry(_op, "log_audit")
        except Exception as e:
            logger.warning(f"Audit logging failed: {e}")

    # =========================================================================
    # Clients & Cases
    # =========================================================================

    def create_client(self, name: str, client_id: Optional[str] = None) -> str:
        """Create a client and return its id."""
        client_id = client_id or str(uuid.uuid4())
        sql = """
        INSERT INTO clients (id, name) VALUES (%s::uuid, %s)
        ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (client_id, name))
                conn.commit()
            logger.info(f"Client {client_id} saved")
            return client_id

        return self._execute_with_retry(_op, "create_client")

    def get_client(self, client_id: str) -> Optional[dict]:
        sql = "SELECT id, name, created_at FROM clients WHERE id = %s::uuid"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (client_id,))
                row = cur.fetchone()
            return _row_to_dict(row, ["id", "name", "created_at"]) if row else None

        return self._execute_with_retry(_op, "get_client")

    def create_case(self, client_id: str, title: str, description: Optional[str] = None) -> str:
        """Create a case for a client and return its id."""
        case_id = str(uuid.uuid4())
        sql = """
        INSERT INTO cases (id, client_id, title, description)
        VALUES (%s::uuid, %s::uuid, %s, %s)
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (case_id, client_id, title, description))
                conn.commit()
            return case_id

        return self._execute_with_retry(_op, "create_case")

    def list_cases(self, client_id: str) -> list[dict]:
        columns = ["id", "client_id", "title", "description", "created_at"]
        sql = f"""
        SELECT {', '.join(columns)} FROM cases
        WHERE client_id = %s::uuid
        ORDER BY created_at DESC
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (client_id,))
                rows = cur.fetchall()
            return [_row_to_dict(row, columns) for row in rows]

        return self._execute_with_retry(_op, "list_cases")

    # =========================================================================
    # Documents & Chunks
    # =========================================================================

    def insert_document(
        self,
        document_id: str,
        title: str,
        document_type: str,
        client_id: str,
        case_id: Optional[str] = None,
        file_type: Optional[str] = None,
        content_hash: Optional[str] = None,
        file_path: Optional[str] = None,
        page_count: int = 0,
        metadata: Optional[dict] = None,
    ) -> None:
        """Insert a document record."""
        sql = """
        INSERT INTO case_documents
            (id, client_id, case_id, title, document_type, file_type,
             content_hash, file_path, page_count, metadata)
        VALUES
            (%s::uuid, %s::uuid, %s::uuid, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (id) DO UPDATE SET
            title = EXCLUDED.title,
            document_type = EXCLUDED.document_type,
            metadata = EXCLUDED.metadata
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (
                    document_id,
                    client_id,
                    case_id,
                    title,
                    document_type,
                    file_type,
                    content_hash,
                    file_path,
                    page_count,
                    json.dumps(metadata or {}),
                ))
                conn.commit()

        self._execute_with_retry(_op, "insert_document")

    def find_document_by_hash(self, client_id: str, content_hash: str) -> Optional[dict]:
        """Return the newest document of a client with this content hash, if any."""
        columns = ["id", "title", "document_type", "created_at"]
        sql = f"""
        SELECT {', '.join(columns)} FROM case_documents
        WHERE client_id = %s::uuid AND content_hash = %s
        ORDER BY created_at DESC
        LIMIT 1
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (client_id, content_hash))
                row = cur.fetchone()
            return _row_to_dict(row, columns) if row else None

        return self._execute_with_retry(_op, "find_document_by_hash")

    def get_document(self, document_id: str, client_id: Optional[str] = None) -> Optional[dict]:
        columns = ["id", "client_id", "case_id", "title", "document_type", "file_type",
                   "content_hash", "page_count", "file_path", "metadata", "created_at"]
        sql = f"SELECT {', '.join(columns)} FROM case_documents WHERE id = %s::uuid"
        params = [document_id]
        if client_id:
            sql += " AND client_id = %s::uuid"
            params.append(client_id)

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
            return _row_to_dict(row, columns) if row else None

        return self._execute_with_retry(_op, "get_document")

    def insert_chunks(
        self,
        chunks: list[dict],
        embeddings: list[Optional[list[float]]],
        client_id: str,
        case_id: Optional[str] = None,
    ) -> None:
        """
        Batch insert chunks with embeddings using execute_values.

        A None embedding is stored as NULL; such chunks are kept for reading
        and keyword search but never returned by similarity search.

        Args:
            chunks: List of chunk dictionaries (from Chunk.to_dict())
            embeddings: Corresponding embedding vectors (or None)
            client_id: Owning client
            case_id: Optional case the document belongs to
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks, {len(embeddings)} embeddings"
            )
        if not chunks:
            return

        from psycopg2.extras import execute_values

        sql = f"""
        INSERT INTO {self.config.table_name}
            (id, document_id, client_id, case_id, chunk_index, content,
             page_numbers, embedding, metadata)
        VALUES %s
        """

        values = []
        for chunk, embedding in zip(chunks, embeddings):
            values.append((
                chunk["chunk_id"],
                chunk["document_id"],
                client_id,
                case_id,
                chunk["chunk_index"],
                chunk["content"],
                chunk.get("page_numbers", []),
                embedding,
                json.dumps(chunk.get("metadata", {})),
            ))

        def _op(conn):
            with conn.cursor() as cur:
                execute_values(
                    cur,
                    sql,
                    values,
                    template="(%s::uuid, %s::uuid, %s::uuid, %s::uuid, %s, %s, %s, %s::vector, %s)",
                    page_size=1000,
                )
                conn.commit()
            logger.info(f"Batch inserted {len(chunks)} chunks")

        self._execute_with_retry(_op, "insert_chunks")

    def update_chunk_metadata(self, chunk_id: str, metadata: dict) -> bool:
        """Merge keys into a chunk's metadata. Content and embedding never change."""
        sql = f"""
        UPDATE {self.config.table_name}
        SET metadata = COALESCE(metadata, '{{}}'::jsonb) || %s::jsonb
        WHERE id = %s::uuid
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (json.dumps(metadata), chunk_id))
                updated = cur.rowcount > 0
                conn.commit()
            return updated

        return self._execute_with_retry(_op, "update_chunk_metadata")

    def _scope_filters(
        self,
        client_id: Optional[str],
        case_id: Optional[str],
        document_id: Optional[str],
        alias: str = "c",
    ) -> tuple[list[str], list]:
        filters = []
        params = []
        if client_id:
            filters.append(f"{alias}.client_id = %s::uuid")
            params.append(client_id)
        if case_id:
            filters.append(f"{alias}.case_id = %s::uuid")
            params.append(case_id)
        if document_id:
            filters.append(f"{alias}.document_id = %s::uuid")
            params.append(document_id)
        return filters, params

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        client_id: Optional[str] = None,
        case_id: Optional[str] = None,
        document_id: Optional[str] = None,
        min_score: float = 0.0,
    ) -> list[SearchResult]:
        """
        Semantic search using cosine similarity.

        Args:
            query_embedding: Query embedding vector
            top_k: Number of results to return
            client_id: Optional filter by client
            case_id: Optional filter by case
            document_id: Optional filter by document
            min_score: Minimum similarity score (0-1)

        Returns:
            List of SearchResult objects, highest score first
        """
        filters, filter_params = self._scope_filters(client_id, case_id, document_id)
        filters.insert(0, "c.embedding IS NOT NULL")
        where_clause = f"WHERE {' AND '.join(filters)}"

        columns = ["chunk_id", "document_id", "chunk_index", "content",
                   "page_numbers", "metadata", "score"]
        sql = f"""
        SELECT
            c.id as chunk_id,
            c.document_id,
            c.chunk_index,
            c.content,
            c.page_numbers,
            c.metadata,
            1 - (c.embedding <=> %s::vector) as score
        FROM {self.config.table_name} c
        {where_clause}
        ORDER BY c.embedding <=> %s::vector
        LIMIT %s
        """

        final_params = [query_embedding] + filter_params + [query_embedding, top_k]

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, final_params)
                rows = cur.fetchall()

            results = []
            for row in rows:
                row_dict = _row_to_dict(row, columns)
                if row_dict["score"] is None or row_dict["score"] < min_score:
                    continue
                results.append(SearchResult(
                    chunk_id=str(row_dict["chunk_id"]),
                    document_id=str(row_dict["document_id"]),
                    chunk_index=row_dict["chunk_index"],
                    content=row_dict["content"],
                    page_numbers=row_dict["page_numbers"] or [],
                    score=float(row_dict["score"]),
                    metadata=_load_json(row_dict.get("metadata")),
                ))

            results.sort(key=lambda r: r.score, reverse=True)
            return results

        return self._execute_with_retry(_op, "search")

    def keyword_search(
        self,
        query: str,
        top_k: int = 10,
        client_id: Optional[str] = None,
        case_id: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> list[SearchResult]:
        """
        Full-text keyword search using PostgreSQL ts_rank.

        Chunks without embeddings are included, so this also serves as the
        fallback path when query embedding is unavailable.
        """
        filters, filter_params = self._scope_filters(client_id, case_id, document_id)
        where_extra = "".join(f" AND {f}" for f in filters)

        columns = ["chunk_id", "document_id", "chunk_index", "content",
                   "page_numbers", "metadata", "score"]
        sql = f"""
        SELECT
            c.id as chunk_id,
            c.document_id,
            c.chunk_index,
            c.content,
            c.page_numbers,
            c.metadata,
            ts_rank(to_tsvector('english', c.content), websearch_to_tsquery('english', %s)) as score
        FROM {self.config.table_name} c
        WHERE to_tsvector('english', c.content) @@ websearch_to_tsquery('english', %s)
        {where_extra}
        ORDER BY score DESC
        LIMIT %s
        """

        params = [query, query] + filter_params + [top_k]

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()

            results = []
            for row in rows:
                row_dict = _row_to_dict(row, columns)
                results.append(SearchResult(
                    chunk_id=str(row_dict["chunk_id"]),
                    document_id=str(row_dict["document_id"]),
                    chunk_index=row_dict["chunk_index"],
                    content=row_dict["content"],
                    page_numbers=row_dict["page_numbers"] or [],
                    score=float(row_dict["score"]),
                    metadata=_load_json(row_dict.get("metadata")),
                ))
            return results

        return self._execute_with_retry(_op, "keyword_search")

    def delete_document(self, document_id: str, client_id: Optional[str] = None) -> bool:
        """
        Delete a document and all its chunks.

        Args:
            document_id: The document UUID to delete
            client_id: If provided, only delete if document belongs to this client

        Returns:
            True if a document was deleted, False if not found (or wrong client)
        """
        if client_id:
            sql = "DELETE FROM case_documents WHERE id = %s::uuid AND client_id = %s::uuid"
            params = (document_id, client_id)
        else:
            sql = "DELETE FROM case_documents WHERE id = %s::uuid"
            params = (document_id,)

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                deleted = cur.rowcount > 0
                conn.commit()
            if deleted:
                logger.info(f"Deleted document {document_id}")
            else:
                logger.warning(f"Document {document_id} not found (or wrong client)")
            return deleted

        return self._execute_with_retry(_op, "delete_document")

    def get_document_titles(
        self,
        document_ids: list[str],
        client_id: Optional[str] = None,
    ) -> dict[str, str]:
        """Look up document titles by IDs."""
        if not document_ids:
            return {}

        placeholders = ",".join(["%s::uuid"] * len(document_ids))
        sql = f"SELECT id, title FROM case_documents WHERE id IN ({placeholders})"
        params = list(document_ids)

        if client_id:
            sql += " AND client_id = %s::uuid"
            params.append(client_id)

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            result = {}
            for row in rows:
                row_dict = _row_to_dict(row, ["id", "title"])
                result[str(row_dict["id"])] = row_dict["title"]
            return result

        try:
            return self._execute_with_retry(_op, "get_document_titles")
        except Exception as e:
            logger.error(f"Failed to get document titles: {e}")
            return {}

    def get_document_chunks(self, document_id: str) -> list[dict]:
        """Get all chunks for a document in chunk order."""
        columns = ["id", "document_id", "chunk_index", "content", "page_numbers", "metadata"]
        sql = f"""
        SELECT {', '.join(columns)}
        FROM {self.config.table_name}
        WHERE document_id = %s::uuid
        ORDER BY chunk_index
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (document_id,))
                rows = cur.fetchall()
            return [_row_to_dict(row, columns) for row in rows]

        return self._execute_with_retry(_op, "get_document_chunks")

    def get_document_text(self, document_id: str) -> str:
        """Reassemble a document's text from its chunks."""
        return "\n\n".join(c["content"] for c in self.get_document_chunks(document_id))

    def list_documents(self, client_id: Optional[str] = None, case_id: Optional[str] = None) -> list[dict]:
        """
        Get documents, newest first.

        Args:
            client_id: Optional filter by client
            case_id: Optional filter by case

        Returns:
            List of document dictionaries
        """
        columns = ["id", "client_id", "case_id", "title", "document_type", "file_type",
                   "content_hash", "page_count", "metadata", "created_at"]
        sql = f"SELECT {', '.join(columns)} FROM case_documents"
        conditions = []
        params = []
        if client_id:
            conditions.append("client_id = %s::uuid")
            params.append(client_id)
        if case_id:
            conditions.append("case_id = %s::uuid")
            params.append(case_id)
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY created_at DESC"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params if params else None)
                rows = cur.fetchall()
            return [_row_to_dict(row, columns) for row in rows]

        return self._execute_with_retry(_op, "list_documents")

    # =========================================================================
    # Analysis records
    # =========================================================================

    def insert_analysis(
        self,
        client_id: str,
        analysis_type: str,
        payload: dict,
        case_id: Optional[str] = None,
        document_id: Optional[str] = None,
        content_hash: Optional[str] = None,
    ) -> str:
        """Append an analysis record and return its id. Older records are superseded, not updated."""
        analysis_id = str(uuid.uuid4())
        sql = """
        INSERT INTO case_analyses
            (id, client_id, case_id, document_id, analysis_type, payload, content_hash)
        VALUES (%s::uuid, %s::uuid, %s::uuid, %s::uuid, %s, %s, %s)
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (
                    analysis_id,
                    client_id,
                    case_id,
                    document_id,
                    analysis_type,
                    json.dumps(payload, default=str),
                    content_hash,
                ))
                conn.commit()
            return analysis_id

        return self._execute_with_retry(_op, "insert_analysis")

    def list_analyses(
        self,
        client_id: str,
        analysis_type: Optional[str] = None,
        case_id: Optional[str] = None,
    ) -> list[dict]:
        """Analysis records for a client, newest first."""
        columns = ["id", "client_id", "case_id", "document_id", "analysis_type",
                   "payload", "content_hash", "created_at"]
        sql = f"SELECT {', '.join(columns)} FROM case_analyses WHERE client_id = %s::uuid"
        params = [client_id]
        if analysis_type:
            sql += " AND analysis_type = %s"
            params.append(analysis_type)
        if case_id:
            sql += " AND case_id = %s::uuid"
            params.append(case_id)
        sql += " ORDER BY created_at DESC"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            records = []
            for row in rows:
                record = _row_to_dict(row, columns)
                record["id"] = str(record["id"])
                record["payload"] = _load_json(record.get("payload"))
                records.append(record)
            return records

        return self._execute_with_retry(_op, "list_analyses")

    def get_latest_analysis(
        self,
        client_id: str,
        analysis_type: str,
        case_id: Optional[str] = None,
    ) -> Optional[dict]:
        """The newest analysis record of a kind, or None."""
        records = self.list_analyses(client_id, analysis_type=analysis_type, case_id=case_id)
        return records[0] if records else None

    def delete_analyses(self, analysis_ids: list[str]) -> int:
        """Delete analysis records by id and return how many were removed."""
        if not analysis_ids:
            return 0

        placeholders = ",".join(["%s::uuid"] * len(analysis_ids))
        sql = f"DELETE FROM case_analyses WHERE id IN ({placeholders})"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, list(analysis_ids))
                removed = cur.rowcount
                conn.commit()
            logger.info(f"Deleted {removed} analysis records")
            return removed

        return self._execute_with_retry(_op, "delete_analyses")


# CLI for testing
if __name__ == "__main__":
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    store = VectorStore()
    store.connect()
    store.initialize_schema()
    store.initialize_auth_schema()
    print("Schema ready")
    store.close()
