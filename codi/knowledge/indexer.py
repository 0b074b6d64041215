"""Indexer for the knowledge pipeline.

Embeds chunks and writes them into a namespace of the vector store.

Chunk ids are derived from (namespace, path, ordinal within the file,
content), so indexing the same files twice overwrites instead of duplicating.
Writes are additive: chunks of files that disappeared since the previous run
stay in the namespace until it is deleted.

Indexing of one namespace is serialised; different namespaces index in
parallel.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from codi.errors import EmptyInputError, IndexingError
from codi.knowledge.chunker import Chunk
from codi.knowledge.embeddings import EmbeddingProvider
from codi.knowledge.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class IndexResult:
    """Outcome of one indexing run.

    Attributes:
        namespace: Namespace that was written
        chunk_count: Chunks written by this run
        file_count: Distinct file paths among the chunks
        languages: Files per language
    """

    namespace: str
    chunk_count: int
    file_count: int
    languages: dict[str, int] = field(default_factory=dict)


def chunk_id(namespace: str, path: str, ordinal: int, content: str) -> str:
    """Deterministic id for a chunk."""
    key = "\0".join((namespace, path, str(ordinal), content))
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]


class Indexer:
    """Writes chunks into the vector store.

    Usage:
        indexer = Indexer(embeddings, store)
        result = await indexer.index(chunks, "acme-widgets")
    """

    def __init__(
        self,
        embeddings: EmbeddingProvider,
        store: VectorStore,
        batch_size: int = 32,
        retry_attempts: int = 3,
        retry_wait=None,
    ):
        """Initialize the indexer.

        Args:
            embeddings: Embedding provider; must be the one the retriever uses
            store: Vector store to write into
            batch_size: Chunks embedded and written per round trip
            retry_attempts: Attempts per embedding batch before giving up
            retry_wait: tenacity wait strategy between attempts
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.embeddings = embeddings
        self.store = store
        self.batch_size = batch_size
        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=30)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def index(self, chunks: list[Chunk], namespace: str) -> IndexResult:
        """Embed and store chunks under a namespace.

        Args:
            chunks: Chunks from the chunker, in order
            namespace: Target namespace

        Returns:
            IndexResult for this run

        Raises:
            EmptyInputError: If there are no chunks
            IndexingError: If embedding or writing fails; `chunks_written`
                tells how many chunks were already stored
        """
        if not chunks:
            raise EmptyInputError("No chunks to index")

        async with self._namespace_lock(namespace):
            await self._check_embedding_space(namespace)

            stamped = [chunk.with_namespace(namespace) for chunk in chunks]
            ids = self._assign_ids(stamped, namespace)

            logger.info("Indexing %d chunks into %s", len(stamped), namespace)
            written = 0
            try:
                for start in range(0, len(stamped), self.batch_size):
                    batch = stamped[start : start + self.batch_size]
                    vectors = await self._embed([chunk.content for chunk in batch])
                    await self.store.upsert(
                        namespace,
                        ids=ids[start : start + len(batch)],
                        embeddings=vectors,
                        documents=[chunk.content for chunk in batch],
                        metadatas=[chunk.to_metadata() for chunk in batch],
                        embedding_identity=self.embeddings.identity,
                    )
                    written += len(batch)
                    logger.debug("Wrote %d/%d chunks to %s", written, len(stamped), namespace)
            except asyncio.CancelledError:
                logger.warning(
                    "Indexing of %s cancelled after %d of %d chunks",
                    namespace,
                    written,
                    len(stamped),
                )
                raise
            except Exception as e:
                logger.error(
                    "Indexing of %s failed after %d of %d chunks: %s",
                    namespace,
                    written,
                    len(stamped),
                    e,
                )
                raise IndexingError(str(e), chunks_written=written) from e

        paths = {chunk.path: chunk.language for chunk in stamped}
        result = IndexResult(
            namespace=namespace,
            chunk_count=len(stamped),
            file_count=len(paths),
            languages=dict(Counter(paths.values())),
        )
        logger.info(
            "Indexed %d chunks from %d files into %s",
            result.chunk_count,
            result.file_count,
            namespace,
        )
        return result

    @asynccontextmanager
    async def _namespace_lock(self, namespace: str) -> AsyncIterator[None]:
        """Hold the namespace's lock; the entry is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(namespace, asyncio.Lock())
        self._lock_users[namespace] = self._lock_users.get(namespace, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[namespace] -= 1
            if not self._lock_users[namespace]:
                del self._lock_users[namespace]
                del self._locks[namespace]

    async def _check_embedding_space(self, namespace: str) -> None:
        try:
            recorded = await self.store.embedding_identity(namespace)
        except Exception as e:
            raise IndexingError(str(e)) from e
        if recorded is not None and recorded != self.embeddings.identity:
            raise IndexingError(
                f"namespace {namespace} holds {recorded} vectors, "
                f"cannot add {self.embeddings.identity} vectors"
            )

    @staticmethod
    def _assign_ids(chunks: list[Chunk], namespace: str) -> list[str]:
        ordinals: Counter[str] = Counter()
        ids = []
        for chunk in chunks:
            ids.append(chunk_id(namespace, chunk.path, ordinals[chunk.path], chunk.content))
            ordinals[chunk.path] += 1
        return ids

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        """Embed one batch, retrying transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(Exception),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying embedding batch (attempt %d)",
                        attempt.retry_state.attempt_number,
                    )
                vectors = await self.embeddings.embed_batch(texts)
        if len(vectors) != len(texts):
            raise ValueError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors
