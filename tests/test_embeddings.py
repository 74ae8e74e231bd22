"""
Tests for execution/casefile_rag/embeddings.py

Covers: EmbeddingConfig, the OpenAI / Voyage / Cohere services, batching,
        caching, get_embedding_service() factory and best-effort document
        embedding.

All external API calls are mocked.
"""

from types import SimpleNamespace
from unittest.mock import patch, MagicMock

import pytest


def _openai_response(vectors):
    # Deliberately out of order; the service sorts by index
    items = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    return SimpleNamespace(data=list(reversed(items)))


# ---------------------------------------------------------------------------
# EmbeddingConfig
# ---------------------------------------------------------------------------

class TestEmbeddingConfig:
    """Tests for EmbeddingConfig dataclass."""

    def test_defaults(self):
        from execution.casefile_rag.embeddings import EmbeddingConfig
        cfg = EmbeddingConfig()
        assert cfg.provider == "openai"
        assert cfg.model == "text-embedding-3-small"
        assert cfg.dimensions == 1536
        assert cfg.use_cache is True
        assert cfg.cache_dir is None


# ---------------------------------------------------------------------------
# OpenAI provider
# ---------------------------------------------------------------------------

class TestOpenAIEmbeddingService:

    def test_embed_documents_keeps_input_order(self, monkeypatch):
        from execution.casefile_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        mock_openai = MagicMock()
        client = mock_openai.OpenAI.return_value
        client.embeddings.create.return_value = _openai_response([[0.1], [0.2], [0.3]])

        with patch.dict("sys.modules", {"openai": mock_openai}):
            service = OpenAIEmbeddingService()
            vectors = service.embed_documents(["a", "b", "c"])

        assert vectors == [[0.1], [0.2], [0.3]]
        kwargs = client.embeddings.create.call_args.kwargs
        assert kwargs["model"] == "text-embedding-3-small"
        assert kwargs["input"] == ["a", "b", "c"]

    def test_client_gets_timeout(self, monkeypatch):
        from execution.casefile_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        mock_openai = MagicMock()
        with patch.dict("sys.modules", {"openai": mock_openai}):
            OpenAIEmbeddingService()
        assert mock_openai.OpenAI.call_args.kwargs["timeout"] == 25.0

    def test_raises_without_key(self, monkeypatch):
        from execution.casefile_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with patch.dict("sys.modules", {"openai": MagicMock()}):
            service = OpenAIEmbeddingService()
        with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
            service.embed_query("slip and fall")

    def test_empty_input_skips_api(self, monkeypatch):
        from execution.casefile_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        mock_openai = MagicMock()
        with patch.dict("sys.modules", {"openai": mock_openai}):
            service = OpenAIEmbeddingService()
            assert service.embed_documents([]) == []
        mock_openai.OpenAI.return_value.embeddings.create.assert_not_called()

    def test_query_cached(self, monkeypatch):
        from execution.casefile_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        mock_openai = MagicMock()
        client = mock_openai.OpenAI.return_value
        client.embeddings.create.return_value = _openai_response([[0.5, 0.5]])

        with patch.dict("sys.modules", {"openai": mock_openai}):
            service = OpenAIEmbeddingService()
            first = service.embed_query("wet floor")
            second = service.embed_query("wet floor")

        assert first == second == [0.5, 0.5]
        assert client.embeddings.create.call_count == 1

    def test_count_mismatch_raises(self, monkeypatch):
        from execution.casefile_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        mock_openai = MagicMock()
        mock_openai.OpenAI.return_value.embeddings.create.return_value = _openai_response([[0.1]])

        with patch.dict("sys.modules", {"openai": mock_openai}):
            service = OpenAIEmbeddingService()
            with pytest.raises(RuntimeError, match="returned 1 embeddings for 2 texts"):
                service.embed_documents(["a", "b"])


# ---------------------------------------------------------------------------
# Voyage / Cohere providers
# ---------------------------------------------------------------------------

class TestAlternativeProviders:

    def test_voyage_uses_input_types(self, monkeypatch):
        from execution.casefile_rag.embeddings import VoyageEmbeddingService, EmbeddingConfig

        monkeypatch.setenv("VOYAGE_API_KEY", "fake-key")
        mock_voyage = MagicMock()
        client = mock_voyage.Client.return_value
        client.embed.return_value = SimpleNamespace(embeddings=[[1.0]])

        with patch.dict("sys.modules", {"voyageai": mock_voyage}):
            service = VoyageEmbeddingService(EmbeddingConfig(provider="voyage", model="voyage-law-2"))
            service.embed_query("q")

        assert client.embed.call_args.kwargs["input_type"] == "query"

    def test_cohere_uses_search_input_types(self, monkeypatch):
        from execution.casefile_rag.embeddings import CohereEmbeddingService, EmbeddingConfig

        monkeypatch.setenv("COHERE_API_KEY", "fake-key")
        mock_cohere = MagicMock()
        client = mock_cohere.Client.return_value
        client.embed.return_value = SimpleNamespace(embeddings=[[1.0], [2.0]])

        with patch.dict("sys.modules", {"cohere": mock_cohere}):
            service = CohereEmbeddingService(EmbeddingConfig(provider="cohere", model="embed-english-v3.0"))
            service.embed_documents(["a", "b"])

        assert client.embed.call_args.kwargs["input_type"] == "search_document"


# ---------------------------------------------------------------------------
# Batching and caching
# ---------------------------------------------------------------------------

class TestBatchingAndCache:

    def _service(self, **config):
        from execution.casefile_rag.embeddings import BaseEmbeddingService, EmbeddingConfig

        class _Fake(BaseEmbeddingService):
            _provider_name = "Fake"

            def _init_client(self):
                self._client = object()
                self.calls = []

            def _request_embeddings(self, texts, input_type):
                self.calls.append(list(texts))
                return [[float(len(t))] for t in texts]

        return _Fake(EmbeddingConfig(**config))

    def test_batches_by_count(self):
        service = self._service(batch_size=2)
        assert service._create_batches(["a", "b", "c"]) == [["a", "b"], ["c"]]

    def test_batches_by_token_budget(self):
        service = self._service(max_tokens_per_batch=10, chars_per_token=1.0)
        assert service._create_batches(["x" * 6, "y" * 6, "z"]) == [["x" * 6], ["y" * 6, "z"]]

    def test_cached_texts_not_requested_again(self):
        service = self._service()
        service.embed_documents(["alpha", "beta"])
        service.embed_documents(["alpha", "gamma"])
        assert service.calls == [["alpha", "beta"], ["gamma"]]

    def test_file_cache(self, tmp_path):
        service = self._service(cache_dir=str(tmp_path))
        service.embed_documents(["persisted"])
        assert len(list(tmp_path.glob("*.json"))) == 1

        fresh = self._service(cache_dir=str(tmp_path))
        assert fresh.embed_documents(["persisted"]) == [[9.0]]
        assert fresh.calls == []

    def test_cache_key_differs_by_input_type(self):
        service = self._service()
        assert service._get_cache_key("t", "document") != service._get_cache_key("t", "query")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class TestGetEmbeddingService:

    def test_openai_by_default(self, monkeypatch):
        from execution.casefile_rag.embeddings import get_embedding_service, OpenAIEmbeddingService

        monkeypatch.delenv("EMBEDDING_PROVIDER", raising=False)
        monkeypatch.delenv("EMBEDDING_MODEL", raising=False)
        monkeypatch.delenv("EMBEDDING_DIMENSIONS", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        with patch.dict("sys.modules", {"openai": MagicMock()}):
            service = get_embedding_service()
        assert isinstance(service, OpenAIEmbeddingService)
        assert service.dimensions == 1536

    def test_provider_from_env(self, monkeypatch):
        from execution.casefile_rag.embeddings import get_embedding_service, VoyageEmbeddingService

        monkeypatch.setenv("EMBEDDING_PROVIDER", "voyage")
        monkeypatch.delenv("EMBEDDING_MODEL", raising=False)
        monkeypatch.delenv("EMBEDDING_DIMENSIONS", raising=False)
        monkeypatch.setenv("VOYAGE_API_KEY", "fake-key")
        with patch.dict("sys.modules", {"voyageai": MagicMock()}):
            service = get_embedding_service()
        assert isinstance(service, VoyageEmbeddingService)
        assert service.config.model == "voyage-law-2"
        assert service.dimensions == 1024

    def test_provider_dimensions(self, monkeypatch):
        from execution.casefile_rag.embeddings import provider_dimensions

        monkeypatch.delenv("EMBEDDING_DIMENSIONS", raising=False)
        assert provider_dimensions("openai") == 1536
        assert provider_dimensions("Cohere") == 1024
        assert provider_dimensions("local") == 384
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            provider_dimensions("nope")

    def test_unknown_provider(self):
        from execution.casefile_rag.embeddings import get_embedding_service
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            get_embedding_service(provider="nope")

    def test_local(self):
        from execution.casefile_rag.embeddings import get_embedding_service

        with patch("execution.casefile_rag.embeddings.LocalEmbeddingService") as MockLocal:
            get_embedding_service(use_local=True)
        MockLocal.assert_called_once()


# ---------------------------------------------------------------------------
# Best-effort embedding
# ---------------------------------------------------------------------------

class TestEmbedDocumentsBestEffort:

    def test_all_succeed(self, mock_embedding_service):
        from execution.casefile_rag.embeddings import embed_documents_best_effort

        vectors = embed_documents_best_effort(mock_embedding_service, ["a", "b"])
        assert len(vectors) == 2
        assert all(v is not None for v in vectors)

    def test_failing_text_maps_to_none(self, mock_embedding_service):
        from execution.casefile_rag.embeddings import embed_documents_best_effort

        mock_embedding_service._fail_on = "BAD"
        vectors = embed_documents_best_effort(mock_embedding_service, ["good one", "BAD text", "good two"])
        assert vectors[0] is not None
        assert vectors[1] is None
        assert vectors[2] is not None

    def test_never_raises(self):
        from execution.casefile_rag.embeddings import embed_documents_best_effort

        service = MagicMock()
        service.embed_documents.side_effect = RuntimeError("timeout")
        assert embed_documents_best_effort(service, ["a", "b"]) == [None, None]

    def test_short_response_retries_individually(self):
        from execution.casefile_rag.embeddings import embed_documents_best_effort

        service = MagicMock()
        service.embed_documents.side_effect = [[[1.0]], [[1.0]], [[2.0]]]
        assert embed_documents_best_effort(service, ["a", "b"]) == [[1.0], [2.0]]

    def test_empty(self):
        from execution.casefile_rag.embeddings import embed_documents_best_effort
        assert embed_documents_best_effort(MagicMock(), []) == []
