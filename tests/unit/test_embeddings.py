"""Unit tests for embedding providers.

Tests cover:
- Embedding provider interface and identity
- Backend calls with mocked clients
- Factory function
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from codi.config import EmbeddingBackend, GeminiConfig, KnowledgeConfig
from codi.knowledge.embeddings import (
    EmbeddingProvider,
    GeminiEmbeddings,
    OllamaEmbeddings,
    SentenceTransformersEmbeddings,
    create_embedding_provider,
)


class MockEmbeddingProvider(EmbeddingProvider):
    """Mock embedding provider for testing."""

    def __init__(self, dimension: int = 8, model_name: str = "mock-model"):
        self._dimension = dimension
        self._model_name = model_name

    async def embed(self, text: str) -> list[float]:
        return [float(len(text) % 100) / 100.0] * self._dimension

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]

    def get_model_name(self) -> str:
        return self._model_name


class FailingEmbeddingProvider(MockEmbeddingProvider):
    async def embed(self, text: str) -> list[float]:
        raise ConnectionError("down")


class TestEmbeddingProviderInterface:
    """Tests for the abstract EmbeddingProvider interface."""

    def test_abstract_methods(self):
        """Test that abstract methods are defined."""
        assert hasattr(EmbeddingProvider, "embed")
        assert hasattr(EmbeddingProvider, "embed_batch")
        assert hasattr(EmbeddingProvider, "get_model_name")

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            EmbeddingProvider()

    def test_identity_combines_class_and_model(self):
        """Test that the identity names the embedding space."""
        provider = MockEmbeddingProvider(model_name="m1")
        assert provider.identity == "MockEmbeddingProvider:m1"

    def test_identity_differs_per_model(self):
        assert MockEmbeddingProvider(model_name="a").identity != MockEmbeddingProvider(
            model_name="b"
        ).identity

    @pytest.mark.asyncio
    async def test_is_available(self):
        """Test availability check."""
        assert await MockEmbeddingProvider().is_available() is True

    @pytest.mark.asyncio
    async def test_is_available_on_failure(self):
        """Test that failures report unavailable instead of raising."""
        assert await FailingEmbeddingProvider().is_available() is False


class TestSentenceTransformersEmbeddings:
    """Tests for SentenceTransformersEmbeddings provider."""

    def test_initialization(self):
        """Test provider initialization without loading model."""
        provider = SentenceTransformersEmbeddings(model_name="all-MiniLM-L6-v2", normalize=True)

        assert provider.model_name == "all-MiniLM-L6-v2"
        assert provider.normalize is True
        assert provider._model is None  # Lazy loading

    @pytest.mark.asyncio
    async def test_embed_batch_uses_model(self):
        """Test that encode is called once for the whole batch."""
        provider = SentenceTransformersEmbeddings()
        model = MagicMock()
        model.encode.return_value.tolist.return_value = [[0.1, 0.2], [0.3, 0.4]]
        provider._model = model

        embeddings = await provider.embed_batch(["a", "b"])

        assert embeddings == [[0.1, 0.2], [0.3, 0.4]]
        model.encode.assert_called_once()
        assert model.encode.call_args.args[0] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_embed_empty_batch(self):
        """Test that an empty batch never loads the model."""
        provider = SentenceTransformersEmbeddings()
        assert await provider.embed_batch([]) == []
        assert provider._model is None


class TestOllamaEmbeddings:
    """Tests for OllamaEmbeddings provider."""

    def test_initialization(self):
        provider = OllamaEmbeddings(model_name="nomic-embed-text", host="http://localhost:11434")

        assert provider.model_name == "nomic-embed-text"
        assert provider.host == "http://localhost:11434"
        assert provider._client is None  # Lazy loading

    @pytest.mark.asyncio
    async def test_embed_batch(self):
        """Test that the batch is sent in one embed call."""
        provider = OllamaEmbeddings(model_name="nomic-embed-text")
        client = MagicMock()
        client.embed.return_value = {"embeddings": [[1.0, 0.0], [0.0, 1.0]]}
        provider._client = client

        embeddings = await provider.embed_batch(["x", "y"])

        assert embeddings == [[1.0, 0.0], [0.0, 1.0]]
        client.embed.assert_called_once_with(model="nomic-embed-text", input=["x", "y"])

    @pytest.mark.asyncio
    async def test_embed_single(self):
        provider = OllamaEmbeddings()
        client = MagicMock()
        client.embed.return_value = {"embeddings": [[0.5, 0.5]]}
        provider._client = client

        assert await provider.embed("x") == [0.5, 0.5]


class TestGeminiEmbeddings:
    """Tests for GeminiEmbeddings provider."""

    def test_initialization(self):
        provider = GeminiEmbeddings(api_key="test-key", model_name="text-embedding-004")

        assert provider.api_key == "test-key"
        assert provider.model_name == "text-embedding-004"
        assert provider._client is None  # Lazy loading

    @pytest.mark.asyncio
    async def test_embed_batch(self):
        """Test that response embeddings are unpacked in order."""
        provider = GeminiEmbeddings(api_key="test-key")
        client = MagicMock()
        client.models.embed_content.return_value = SimpleNamespace(
            embeddings=[SimpleNamespace(values=[0.1, 0.2]), SimpleNamespace(values=[0.3, 0.4])]
        )
        provider._client = client

        embeddings = await provider.embed_batch(["a", "b"])

        assert embeddings == [[0.1, 0.2], [0.3, 0.4]]
        client.models.embed_content.assert_called_once_with(
            model="text-embedding-004",
            contents=["a", "b"],
        )


class TestCreateEmbeddingProvider:
    """Tests for the factory function."""

    def test_creates_default_without_config(self):
        provider = create_embedding_provider()

        assert isinstance(provider, SentenceTransformersEmbeddings)
        assert provider.model_name == "all-MiniLM-L6-v2"

    def test_creates_sentence_transformers(self):
        config = KnowledgeConfig(embedding_model="test-model")
        provider = create_embedding_provider(config)

        assert isinstance(provider, SentenceTransformersEmbeddings)
        assert provider.model_name == "test-model"

    def test_creates_ollama(self):
        config = KnowledgeConfig(
            embedding_provider=EmbeddingBackend.OLLAMA,
            embedding_model="mxbai-embed-large",
            ollama_host="http://test:11434",
        )
        provider = create_embedding_provider(config)

        assert isinstance(provider, OllamaEmbeddings)
        assert provider.model_name == "mxbai-embed-large"
        assert provider.host == "http://test:11434"

    def test_ollama_default_model(self):
        """Test that the sentence-transformers default is not sent to Ollama."""
        config = KnowledgeConfig(embedding_provider=EmbeddingBackend.OLLAMA)
        provider = create_embedding_provider(config)

        assert provider.get_model_name() == "nomic-embed-text"

    def test_creates_gemini(self):
        config = KnowledgeConfig(embedding_provider=EmbeddingBackend.GEMINI)
        provider = create_embedding_provider(config)

        assert isinstance(provider, GeminiEmbeddings)
        assert provider.get_model_name() == "text-embedding-004"

    def test_gemini_uses_configured_key(self, monkeypatch):
        """Test that the [llm.gemini] key, env: indirection included, reaches embeddings."""
        monkeypatch.setenv("TEAM_GEMINI_KEY", "team-key")
        config = KnowledgeConfig(embedding_provider=EmbeddingBackend.GEMINI)

        provider = create_embedding_provider(config, GeminiConfig(api_key="env:TEAM_GEMINI_KEY"))

        assert provider.api_key == "team-key"

    def test_gemini_direct_key(self):
        config = KnowledgeConfig(embedding_provider=EmbeddingBackend.GEMINI)

        provider = create_embedding_provider(config, GeminiConfig(api_key="direct-key"))

        assert provider.api_key == "direct-key"
