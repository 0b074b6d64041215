"""Retriever for the knowledge pipeline.

Finds the chunks of one namespace most similar to a question.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from codi.errors import NamespaceNotFoundError, RetrievalError
from codi.knowledge.chunker import Chunk
from codi.knowledge.embeddings import EmbeddingProvider
from codi.knowledge.vector_store import StoredHit, VectorStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 12


@dataclass(frozen=True)
class RetrievedChunk:
    """A chunk returned by a similarity search, with its score (0-1)."""

    chunk: Chunk
    score: float

    @classmethod
    def from_hit(cls, hit: StoredHit) -> RetrievedChunk:
        metadata = hit.metadata or {}
        chunk = Chunk(
            content=hit.document or "",
            filename=str(metadata.get("filename", "")),
            path=str(metadata.get("path", "")),
            language=str(metadata.get("language", "text")),
            namespace=str(metadata.get("namespace", "")),
            size=int(metadata.get("size", 0)),
        )
        return cls(chunk=chunk, score=hit.score)


class Retriever:
    """Top-k similarity search within a namespace.

    The embedding provider must be the one the namespace was indexed with.
    """

    def __init__(
        self,
        embeddings: EmbeddingProvider,
        store: VectorStore,
        default_top_k: int = DEFAULT_TOP_K,
    ):
        self.embeddings = embeddings
        self.store = store
        self.default_top_k = default_top_k

    async def retrieve(
        self,
        query: str,
        namespace: str,
        k: int | None = None,
        current_file: str | None = None,
    ) -> list[RetrievedChunk]:
        """Retrieve the chunks most similar to the query.

        Args:
            query: Natural-language question
            namespace: Namespace to search
            k: Maximum number of results (default from constructor)
            current_file: Restrict results to chunks of this filename

        Returns:
            Up to k chunks ordered by descending similarity. Empty when
            nothing in the namespace matches.

        Raises:
            NamespaceNotFoundError: If the namespace was never indexed
            RetrievalError: If the embedding provider or the store fails
        """
        top_k = self.default_top_k if k is None else k

        try:
            if not await self.store.exists(namespace):
                raise NamespaceNotFoundError(namespace)

            recorded = await self.store.embedding_identity(namespace)
            if recorded is not None and recorded != self.embeddings.identity:
                raise RetrievalError(
                    f"namespace {namespace} holds {recorded} vectors, "
                    f"query uses {self.embeddings.identity}"
                )

            query_embedding = await self.embeddings.embed(query)
            where = {"filename": current_file} if current_file else None
            hits = await self.store.query(namespace, query_embedding, top_k, where=where)
        except (NamespaceNotFoundError, RetrievalError):
            raise
        except Exception as e:
            logger.error("Retrieval from %s failed: %s", namespace, e)
            raise RetrievalError(str(e)) from e

        results = sorted(
            (RetrievedChunk.from_hit(hit) for hit in hits),
            key=lambda r: r.score,
            reverse=True,
        )
        logger.debug("Retrieved %d chunks from %s", len(results), namespace)
        return results
