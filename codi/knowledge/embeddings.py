"""Embedding providers for the knowledge pipeline.

Provides a unified interface for generating text embeddings using:
- Local models via sentence-transformers or Ollama
- API-based models via Gemini

The indexer and the retriever must share one provider: vectors from
different models are not comparable. Each provider therefore exposes an
`identity` string that the vector store records per namespace.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod

from codi.config import EmbeddingBackend, GeminiConfig, KnowledgeConfig

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers.

    Implementations may fail transiently (network, model loading); callers
    retry where that is appropriate.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, in input order."""
        ...

    @abstractmethod
    def get_model_name(self) -> str:
        ...

    @property
    def identity(self) -> str:
        """Stable identifier of the embedding space."""
        return f"{type(self).__name__}:{self.get_model_name()}"

    async def is_available(self) -> bool:
        """Check if the provider is available and working."""
        try:
            test_embedding = await self.embed("test")
            return len(test_embedding) > 0
        except Exception as e:
            logger.warning("Embedding provider availability check failed: %s", e)
            return False


class SentenceTransformersEmbeddings(EmbeddingProvider):
    """Local embeddings using the sentence-transformers library.

    Default provider: small, fast, works offline.
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        device: str | None = None,
        normalize: bool = True,
    ):
        self.model_name = model_name
        self.device = device
        self.normalize = normalize
        self._model = None

    def _get_model(self):
        """Lazy load the sentence-transformers model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ImportError(
                    "sentence-transformers is required for local embeddings. "
                    "Install with: pip install sentence-transformers"
                ) from e

            logger.info("Loading embedding model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name, device=self.device)
        return self._model

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Encode in a worker thread to keep the event loop free."""
        if not texts:
            return []

        def _encode():
            model = self._get_model()
            return model.encode(
                texts,
                normalize_embeddings=self.normalize,
                show_progress_bar=False,
            ).tolist()

        return await asyncio.to_thread(_encode)

    def get_model_name(self) -> str:
        return self.model_name


class OllamaEmbeddings(EmbeddingProvider):
    """Local embeddings via an Ollama server.

    Requires a running server with the model pulled:
        ollama pull nomic-embed-text
    """

    def __init__(
        self,
        model_name: str = "nomic-embed-text",
        host: str = "http://localhost:11434",
    ):
        self.model_name = model_name
        self.host = host
        self._client = None

    def _get_client(self):
        """Lazy load the Ollama client."""
        if self._client is None:
            try:
                import ollama
            except ImportError as e:
                raise ImportError(
                    "ollama is required for Ollama embeddings. Install with: pip install ollama"
                ) from e

            self._client = ollama.Client(host=self.host)
        return self._client

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        def _embed():
            client = self._get_client()
            response = client.embed(model=self.model_name, input=texts)
            return [list(vector) for vector in response["embeddings"]]

        return await asyncio.to_thread(_embed)

    def get_model_name(self) -> str:
        return self.model_name


class GeminiEmbeddings(EmbeddingProvider):
    """API embeddings via Google Gemini.

    Requires GEMINI_API_KEY or an explicit key.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str = "text-embedding-004",
    ):
        self.api_key = api_key
        self.model_name = model_name
        self._client = None

    def _get_client(self):
        """Lazy load the Gemini client."""
        if self._client is None:
            try:
                from google import genai
            except ImportError as e:
                raise ImportError(
                    "google-genai is required for Gemini embeddings. "
                    "Install with: pip install google-genai"
                ) from e

            api_key = self.api_key or os.getenv("GEMINI_API_KEY")
            if not api_key:
                raise ValueError(
                    "Gemini API key required. Set GEMINI_API_KEY environment "
                    "variable or pass api_key parameter."
                )

            self._client = genai.Client(api_key=api_key)
        return self._client

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        def _embed_batch():
            client = self._get_client()
            response = client.models.embed_content(
                model=self.model_name,
                contents=texts,
            )
            return [list(e.values) for e in response.embeddings]

        return await asyncio.to_thread(_embed_batch)

    def get_model_name(self) -> str:
        return self.model_name


def create_embedding_provider(
    config: KnowledgeConfig | None = None,
    gemini: GeminiConfig | None = None,
) -> EmbeddingProvider:
    """Factory function to create an embedding provider.

    Args:
        config: Knowledge configuration (optional)
        gemini: Gemini settings; the API key is shared with the language model

    Returns:
        Configured EmbeddingProvider instance
    """
    config = config or KnowledgeConfig()
    # The default model name belongs to sentence-transformers
    custom_model = config.embedding_model != KnowledgeConfig.embedding_model

    match config.embedding_provider:
        case EmbeddingBackend.OLLAMA:
            return OllamaEmbeddings(
                model_name=config.embedding_model if custom_model else "nomic-embed-text",
                host=config.ollama_host,
            )

        case EmbeddingBackend.GEMINI:
            return GeminiEmbeddings(
                api_key=(gemini or GeminiConfig()).get_api_key(),
                model_name=config.embedding_model if custom_model else "text-embedding-004",
            )

        case _:
            return SentenceTransformersEmbeddings(model_name=config.embedding_model)
