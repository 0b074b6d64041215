"""Shared fixtures for Codi tests."""

from __future__ import annotations

import hashlib
import math
import re

import pytest

from codi.knowledge.embeddings import EmbeddingProvider


class MockEmbeddingProvider(EmbeddingProvider):
    """Deterministic bag-of-words embeddings.

    Texts sharing words get similar vectors, so similarity search behaves
    sensibly without a real model.
    """

    def __init__(self, dimension: int = 64, model_name: str = "mock-embedding"):
        self.dimension = dimension
        self.model_name = model_name
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        vector[0] = 0.1
        for word in re.findall(r"\w+", text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[1 + digest[0] % (self.dimension - 1)] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector]

    async def embed(self, text: str) -> list[float]:
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]

    def get_model_name(self) -> str:
        return self.model_name


@pytest.fixture
def mock_embeddings() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def chroma_store(tmp_path):
    """Vector store persisted in a per-test directory."""
    from codi.knowledge.vector_store import VectorStore

    return VectorStore(persist_directory=tmp_path / "chromadb")
