"""
Embedding Service for Case File RAG

Provides embeddings via OpenAI (text-embedding-3-small, default), Voyage AI
or Cohere, plus a local sentence-transformers fallback. Supports batching,
caching, and different input types (documents vs queries).

Architecture:
    BaseEmbeddingService  -- shared caching, batching, embed_documents, embed_query
        OpenAIEmbeddingService    -- OpenAI embeddings provider (default)
        VoyageEmbeddingService    -- Voyage AI provider
        CohereEmbeddingService    -- Cohere embed-v3 provider
    LocalEmbeddingService -- local sentence-transformers (no caching needed)

Chunk embedding is best-effort: embed_documents_best_effort() never raises
on provider errors and returns None for texts that could not be embedded.
"""

import os
import json
import hashlib
import logging
from typing import Optional, Union
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Vector sizes of each provider's default model; the chunk table must match.
PROVIDER_DIMENSIONS = {
    "openai": 1536,
    "voyage": 1024,
    "cohere": 1024,
    "local": 384,
}


def provider_dimensions(provider: Optional[str] = None) -> int:
    """
    Embedding size for a provider.

    EMBEDDING_DIMENSIONS overrides the table, for models other than the
    provider's default.
    """
    override = os.getenv("EMBEDDING_DIMENSIONS")
    if override:
        return int(override)
    prov = (provider or os.getenv("EMBEDDING_PROVIDER", "openai")).lower()
    if prov not in PROVIDER_DIMENSIONS:
        raise ValueError(f"Unknown embedding provider: {prov}")
    return PROVIDER_DIMENSIONS[prov]


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    provider: str = "openai"  # "openai", "voyage" or "cohere"
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 100
    max_tokens_per_batch: int = 100000
    chars_per_token: float = 4.0
    timeout_seconds: float = 25.0
    cache_dir: Optional[str] = None
    use_cache: bool = True


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Provides shared functionality:
    - Batched embedding with progress logging
    - Memory and file-based caching
    - Cache key generation
    - Document vs query input type distinction

    Subclasses implement:
    - _init_client(): Initialize the provider-specific API client
    - _request_embeddings(): Call the provider for a list of texts

    And set these class attributes:
    - _provider_name: Human-readable provider name for error messages
    - _env_var_name: Environment variable name for the API key
    - _doc_input_type: Input type string for document embeddings
    - _query_input_type: Input type string for query embeddings
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        """
        Initialize embedding service.

        Args:
            config: Optional configuration. Uses defaults if not provided.
        """
        self.config = config or EmbeddingConfig()
        self._client = None
        self._cache = {}

        if self.config.cache_dir:
            self._cache_path = Path(self.config.cache_dir)
            self._cache_path.mkdir(parents=True, exist_ok=True)
        else:
            self._cache_path = None

        self._init_client()

    def _init_client(self):
        """Initialize the provider-specific API client. Must be overridden by subclasses."""
        raise NotImplementedError("Subclasses must implement _init_client()")

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        """Call the provider API. Must be overridden by subclasses."""
        raise NotImplementedError("Subclasses must implement _request_embeddings()")

    def _require_client(self) -> None:
        if not self._client:
            raise RuntimeError(
                f"{self._provider_name} client not initialized. "
                f"Check {self._env_var_name}."
            )

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """Split texts into batches respecting both item count and token limits."""
        batches = []
        current_batch = []
        current_tokens = 0
        cpt = self.config.chars_per_token

        for text in texts:
            est_tokens = len(text) / cpt
            if current_batch and (
                len(current_batch) >= self.config.batch_size
                or current_tokens + est_tokens > self.config.max_tokens_per_batch
            ):
                batches.append(current_batch)
                current_batch = []
                current_tokens = 0
            current_batch.append(text)
            current_tokens += est_tokens

        if current_batch:
            batches.append(current_batch)

        return batches

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for document chunks.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, one per text
        """
        if not texts:
            return []

        self._require_client()
        batches = self._create_batches(texts)

        logger.info(
            f"Embedding {len(texts)} documents in {len(batches)} batches"
            f" with {self._provider_name}"
        )

        embeddings = []
        for batch_idx, batch in enumerate(batches):
            embeddings.extend(self._embed_batch(batch, input_type=self._doc_input_type))

            if (batch_idx + 1) % 10 == 0:
                logger.info(f"Processed batch {batch_idx + 1}/{len(batches)}")

        return embeddings

    def embed_query(self, query: str) -> list[float]:
        """
        Generate embedding for a search query.

        Args:
            query: Search query string

        Returns:
            Embedding vector
        """
        self._require_client()

        cache_key = self._get_cache_key(query, "query")
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        result = self._embed_batch([query], input_type=self._query_input_type)

        if result:
            self._set_cached(cache_key, result[0])
            return result[0]

        return []

    def _embed_batch(
        self,
        texts: list[str],
        input_type: str = "document"
    ) -> list[list[float]]:
        """Embed a batch of texts, serving what it can from the cache."""
        results = []
        uncached_texts = []
        uncached_indices = []

        for i, text in enumerate(texts):
            cached = self._get_cached(self._get_cache_key(text, input_type))
            if cached is not None:
                results.append((i, cached))
            else:
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            try:
                vectors = self._request_embeddings(uncached_texts, input_type)
            except Exception as e:
                logger.error(f"{self._provider_name} embedding failed: {e}")
                raise

            if len(vectors) != len(uncached_texts):
                raise RuntimeError(
                    f"{self._provider_name} returned {len(vectors)} embeddings "
                    f"for {len(uncached_texts)} texts"
                )

            for idx, embedding in zip(uncached_indices, vectors):
                self._set_cached(self._get_cache_key(texts[idx], input_type), embedding)
                results.append((idx, embedding))

        results.sort(key=lambda x: x[0])
        return [emb for _, emb in results]

    def _get_cache_key(self, text: str, input_type: str) -> str:
        """Generate cache key for text."""
        content = f"{self.config.model}:{input_type}:{text}"
        return hashlib.sha256(content.encode()).hexdigest()[:32]

    def _get_cached(self, key: str) -> Optional[list[float]]:
        """Get cached embedding."""
        if not self.config.use_cache:
            return None

        if key in self._cache:
            return self._cache[key]

        if self._cache_path:
            cache_file = self._cache_path / f"{key}.json"
            if cache_file.exists():
                try:
                    with open(cache_file) as f:
                        embedding = json.load(f)
                        self._cache[key] = embedding
                        return embedding
                except Exception as e:
                    logger.debug(f"Failed to read embedding cache file {cache_file}: {e}")

        return None

    def _set_cached(self, key: str, embedding: list[float]) -> None:
        """Cache an embedding."""
        if not self.config.use_cache:
            return

        self._cache[key] = embedding

        if self._cache_path:
            cache_file = self._cache_path / f"{key}.json"
            try:
                with open(cache_file, 'w') as f:
                    json.dump(embedding, f)
            except Exception as e:
                logger.warning(f"Failed to cache embedding: {e}")

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self.config.dimensions


class OpenAIEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using OpenAI's text-embedding-3-small model.

    - 1536-dimensional embeddings
    - Same input type for documents and queries
    - Requests are aborted after config.timeout_seconds
    """

    _provider_name = "OpenAI"
    _env_var_name = "OPENAI_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _init_client(self):
        """Initialize the OpenAI client."""
        api_key = os.getenv("OPENAI_API_KEY")

        if not api_key:
            logger.warning(
                "OPENAI_API_KEY not found. Embeddings will fail. "
                "Set the environment variable or use a different provider."
            )
            return

        try:
            from openai import OpenAI
            self._client = OpenAI(api_key=api_key, timeout=self.config.timeout_seconds)
            logger.info(f"OpenAI client initialized with model {self.config.model}")
        except ImportError:
            logger.error("openai package not installed. Run: pip install openai")
            raise

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embeddings.create(
            model=self.config.model,
            input=texts,
        )
        ordered = sorted(response.data, key=lambda d: d.index)
        return [item.embedding for item in ordered]


class VoyageEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using Voyage AI models (voyage-law-2 by default).

    - 1024-dimensional embeddings
    - Different input types for documents vs queries
    """

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _init_client(self):
        """Initialize the Voyage AI client."""
        api_key = os.getenv("VOYAGE_API_KEY")

        if not api_key:
            logger.warning(
                "VOYAGE_API_KEY not found. Embeddings will fail. "
                "Get your free API key at https://dash.voyageai.com/"
            )
            return

        try:
            import voyageai
            self._client = voyageai.Client(api_key=api_key, timeout=self.config.timeout_seconds)
            logger.info(f"Voyage AI client initialized with model {self.config.model}")
        except ImportError:
            logger.error("voyageai package not installed. Run: pip install voyageai")
            raise

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
        )
        return response.embeddings


class CohereEmbeddingService(BaseEmbeddingService):
    """
    Generates embeddings using Cohere's embed-v3 model.

    - 1024-dimensional embeddings
    - Different input types for documents vs queries
    """

    _provider_name = "Cohere"
    _env_var_name = "COHERE_API_KEY"
    _doc_input_type = "search_document"
    _query_input_type = "search_query"

    def _init_client(self):
        """Initialize the Cohere client."""
        api_key = os.getenv("COHERE_API_KEY")

        if not api_key:
            logger.warning(
                "COHERE_API_KEY not found. Embeddings will fail. "
                "Set the environment variable or use a different provider."
            )
            return

        try:
            import cohere
            self._client = cohere.Client(api_key, timeout=int(self.config.timeout_seconds))
            logger.info(f"Cohere client initialized with model {self.config.model}")
        except ImportError:
            logger.error("Cohere package not installed. Run: pip install cohere")
            raise

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
        )
        return response.embeddings


class LocalEmbeddingService:
    """
    Alternative embedding service using local models.

    Uses sentence-transformers for cost-free embeddings.
    Good for development or high-volume batch processing.
    """

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2"):
        """Initialize with a local model."""
        try:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(model_name)
            self._dimensions = self._model.get_sentence_embedding_dimension()
            logger.info(f"Local embedding model loaded: {model_name}")
        except ImportError:
            raise ImportError(
                "sentence-transformers not installed. "
                "Run: pip install sentence-transformers"
            )

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed documents using local model."""
        if not texts:
            return []
        embeddings = self._model.encode(texts, show_progress_bar=False)
        return embeddings.tolist()

    def embed_query(self, query: str) -> list[float]:
        """Embed a query using local model."""
        embedding = self._model.encode([query])
        return embedding[0].tolist()

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self._dimensions


def embed_documents_best_effort(service, texts: list[str]) -> list[Optional[list[float]]]:
    """
    Embed texts without letting provider errors escape.

    The whole list is tried as one call first. If that fails, each text is
    tried on its own; texts that still fail map to None.

    Args:
        service: Any embedding service with embed_documents()
        texts: Texts to embed

    Returns:
        One entry per text: the vector, or None if it could not be embedded
    """
    if not texts:
        return []

    try:
        vectors = service.embed_documents(texts)
        if len(vectors) == len(texts):
            return list(vectors)
        logger.warning(
            f"Embedding service returned {len(vectors)} vectors for {len(texts)} texts, "
            f"retrying individually"
        )
    except Exception as e:
        logger.warning(f"Batch embedding failed, retrying individually: {e}")

    results: list[Optional[list[float]]] = []
    for i, text in enumerate(texts):
        try:
            vector = service.embed_documents([text])
            results.append(vector[0] if vector else None)
        except Exception as e:
            logger.warning(f"Embedding failed for text {i}: {e}")
            results.append(None)

    failed = sum(1 for r in results if r is None)
    if failed:
        logger.warning(f"{failed}/{len(texts)} texts could not be embedded")
    return results


def get_embedding_service(
    provider: Optional[str] = None,
    use_local: bool = False,
) -> Union[OpenAIEmbeddingService, VoyageEmbeddingService, CohereEmbeddingService, LocalEmbeddingService]:
    """
    Factory function to get appropriate embedding service.

    Args:
        provider: "openai" (default), "voyage" or "cohere". Falls back to
            the EMBEDDING_PROVIDER environment variable.
        use_local: If True, use a local sentence-transformers model instead of an API

    Returns:
        Configured embedding service
    """
    if use_local:
        return LocalEmbeddingService()

    prov = (provider or os.getenv("EMBEDDING_PROVIDER", "openai")).lower()
    model = os.getenv("EMBEDDING_MODEL")

    if prov == "voyage":
        config = EmbeddingConfig(
            provider="voyage",
            model=model or "voyage-law-2",
            dimensions=provider_dimensions("voyage"),
            batch_size=128,
            chars_per_token=2.0,
        )
        return VoyageEmbeddingService(config)

    if prov == "cohere":
        config = EmbeddingConfig(
            provider="cohere",
            model=model or "embed-english-v3.0",
            dimensions=provider_dimensions("cohere"),
            batch_size=96,
        )
        return CohereEmbeddingService(config)

    if prov != "openai":
        raise ValueError(f"Unknown embedding provider: {prov}")

    config = EmbeddingConfig(
        provider="openai",
        model=model or "text-embedding-3-small",
        dimensions=provider_dimensions("openai"),
    )
    return OpenAIEmbeddingService(config)


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    provider = os.getenv("EMBEDDING_PROVIDER", "openai")
    print(f"Using embedding provider: {provider}")

    service = get_embedding_service(provider=provider)

    if len(sys.argv) > 1:
        query = " ".join(sys.argv[1:])
    else:
        query = "Was the store owner negligent in maintaining the parking lot?"

    print(f"Query: {query}")
    embedding = service.embed_query(query)
    print(f"Embedding dimensions: {len(embedding)}")
    print(f"First 10 values: {embedding[:10]}")
