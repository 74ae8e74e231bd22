"""
Similarity Retriever for Case Files

Embeds a query the same way chunks were embedded and asks the vector store
for the nearest chunks above a similarity threshold. Two presets mirror how
the system is used:

    case      -- threshold 0.7, top 5  (similar facts within a client's file)
    semantic  -- threshold 0.6, top 15 (broad research search)

If the query cannot be embedded, keyword search answers instead. Optional
hybrid mode fuses vector and keyword rankings with Reciprocal Rank Fusion.
"""

import logging
from typing import Optional
from dataclasses import dataclass, replace

from .vector_store import SearchResult
from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)


@dataclass
class RetrievalConfig:
    """Configuration for similarity retrieval."""
    top_k: int = 5
    min_score: float = 0.7

    # Fall back to keyword search when the query embedding fails
    keyword_fallback: bool = True

    # Hybrid mode (vector + keyword with RRF)
    use_hybrid: bool = False
    candidate_multiplier: int = 3
    rrf_k: int = 60
    vector_weight: float = 0.7
    keyword_weight: float = 0.3


SEARCH_PRESETS = {
    "case": RetrievalConfig(top_k=5, min_score=0.7),
    "semantic": RetrievalConfig(top_k=15, min_score=0.6),
}


class SimilarityRetriever:
    """
    Retrieval pipeline:
    1. Embed the query
    2. Cosine search in the store (threshold + top_k, scoped by client/case)
    3. Optional keyword fusion
    4. Sort by score, highest first
    """

    def __init__(self, vector_store, embedding_service, config: Optional[RetrievalConfig] = None):
        """
        Initialize retriever.

        Args:
            vector_store: Vector store instance
            embedding_service: Embedding service instance
            config: Optional retrieval configuration
        """
        self.store = vector_store
        self.embeddings = embedding_service
        self.config = config or RetrievalConfig()

    def retrieve(
        self,
        query: str,
        client_id: Optional[str] = None,
        case_id: Optional[str] = None,
        document_id: Optional[str] = None,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        query_embedding: Optional[list[float]] = None,
    ) -> list[SearchResult]:
        """
        Retrieve chunks similar to a query.

        Args:
            query: Search query text
            client_id: Restrict to a client's documents
            case_id: Restrict to a case
            document_id: Restrict to a single document
            top_k: Override the configured result count
            min_score: Override the configured similarity threshold
            query_embedding: Pre-computed query vector (skips embedding)

        Returns:
            Search results sorted by score, highest first
        """
        if not query or not query.strip():
            raise ValueError("Query must not be empty")

        top_k = top_k if top_k is not None else self.config.top_k
        min_score = min_score if min_score is not None else self.config.min_score
        if top_k <= 0:
            raise ValueError("top_k must be positive")

        collector = get_metrics_collector()
        with collector.track_search(client_id, query) as tracker:
            if query_embedding is None:
                try:
                    query_embedding = self.embeddings.embed_query(query)
                except Exception as e:
                    if not self.config.keyword_fallback:
                        raise
                    logger.warning(f"Query embedding failed, using keyword search: {e}")
                    results = self._keyword_results(query, top_k, client_id, case_id, document_id)
                    tracker.set_results(len(results), keyword_fallback=True)
                    return results

            candidate_k = top_k * self.config.candidate_multiplier if self.config.use_hybrid else top_k
            vector_results = self.store.search(
                query_embedding,
                top_k=candidate_k,
                client_id=client_id,
                case_id=case_id,
                document_id=document_id,
                min_score=min_score,
            )

            if self.config.use_hybrid:
                keyword_results = self.store.keyword_search(
                    query,
                    top_k=candidate_k,
                    client_id=client_id,
                    case_id=case_id,
                    document_id=document_id,
                )
                results = self._reciprocal_rank_fusion(vector_results, keyword_results)
            else:
                results = sorted(vector_results, key=lambda r: r.score, reverse=True)

            results = results[:top_k]
            tracker.set_results(len(results))
            logger.info(f"Retrieved {len(results)} chunks (min_score={min_score}, top_k={top_k})")
            return results

    def _keyword_results(
        self,
        query: str,
        top_k: int,
        client_id: Optional[str],
        case_id: Optional[str],
        document_id: Optional[str],
    ) -> list[SearchResult]:
        results = self.store.keyword_search(
            query,
            top_k=top_k,
            client_id=client_id,
            case_id=case_id,
            document_id=document_id,
        )
        tagged = [
            replace(r, metadata={**r.metadata, "search_mode": "keyword"})
            for r in results
        ]
        tagged.sort(key=lambda r: r.score, reverse=True)
        return tagged[:top_k]

    def _reciprocal_rank_fusion(
        self,
        vector_results: list[SearchResult],
        keyword_results: list[SearchResult],
    ) -> list[SearchResult]:
        """
        Combine results using Reciprocal Rank Fusion.

        RRF score = sum(weight / (k + rank)) across result lists
        """
        k = self.config.rrf_k
        scores = {}
        result_map = {}

        for rank, result in enumerate(vector_results):
            scores[result.chunk_id] = scores.get(result.chunk_id, 0) + self.config.vector_weight / (k + rank + 1)
            result_map[result.chunk_id] = result

        for rank, result in enumerate(keyword_results):
            scores[result.chunk_id] = scores.get(result.chunk_id, 0) + self.config.keyword_weight / (k + rank + 1)
            result_map.setdefault(result.chunk_id, result)

        sorted_ids = sorted(scores, key=lambda cid: scores[cid], reverse=True)

        fused = []
        for chunk_id in sorted_ids:
            original = result_map[chunk_id]
            metadata = {**original.metadata, "original_score": original.score, "search_mode": "hybrid"}
            fused.append(replace(original, score=scores[chunk_id], metadata=metadata))
        return fused


def get_retriever(vector_store, embedding_service, preset: str = "case") -> SimilarityRetriever:
    """
    Get a retriever configured from a named preset.

    Args:
        vector_store: Vector store instance
        embedding_service: Embedding service instance
        preset: "case" (0.7 / top 5) or "semantic" (0.6 / top 15)
    """
    if preset not in SEARCH_PRESETS:
        raise ValueError(f"Unknown search preset '{preset}'. Choose from: {', '.join(SEARCH_PRESETS)}")
    return SimilarityRetriever(vector_store, embedding_service, replace(SEARCH_PRESETS[preset]))


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    from .vector_store import VectorStore
    from .embeddings import get_embedding_service

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    store = VectorStore()
    store.connect()

    retriever = get_retriever(store, get_embedding_service(), preset="semantic")

    query = sys.argv[1] if len(sys.argv) > 1 else "slip and fall in parking lot"

    print(f"\nSearching for: {query}")
    print("-" * 50)

    for i, result in enumerate(retriever.retrieve(query), 1):
        print(f"\n{i}. [chunk {result.chunk_index}] (score: {result.score:.4f})")
        print(f"   Preview: {result.content[:200]}...")
