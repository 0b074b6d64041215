"""Namespace-partitioned vector store backed by ChromaDB.

Every namespace lives in its own collection, so reads and writes for one
namespace can never observe or affect another. Collection names are derived
from a hash of the namespace (ChromaDB restricts the characters allowed in
names); the readable namespace and the embedding space that produced the
vectors are kept in the collection metadata.

ChromaDB's client is synchronous; every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from codi.errors import NamespaceNotFoundError

logger = logging.getLogger(__name__)

_COLLECTION_PREFIX = "codi_"


@dataclass
class StoredHit:
    """One similarity-search hit.

    Attributes:
        chunk_id: Id the chunk was stored under
        document: Chunk text
        metadata: Metadata stored with the vector
        distance: Cosine distance (0-2, lower is closer)
    """

    chunk_id: str
    document: str
    metadata: dict[str, Any] = field(default_factory=dict)
    distance: float = 0.0

    @property
    def score(self) -> float:
        """Similarity in 0-1, higher is better."""
        return 1 - (self.distance / 2)


def collection_name(namespace: str) -> str:
    """ChromaDB collection name for a namespace."""
    digest = hashlib.sha256(namespace.encode("utf-8")).hexdigest()[:32]
    return f"{_COLLECTION_PREFIX}{digest}"


class VectorStore:
    """ChromaDB vector store with one collection per namespace."""

    def __init__(
        self,
        persist_directory: str | Path | None = None,
        client: Any = None,
    ):
        """Initialize the store.

        Args:
            persist_directory: Directory for ChromaDB persistence. None keeps
                the store in memory.
            client: Pre-built ChromaDB client (overrides persist_directory)
        """
        self._persist_path = (
            Path(persist_directory).expanduser() if persist_directory is not None else None
        )
        self._client = client

    def _get_client(self):
        """Get or create ChromaDB client."""
        if self._client is None:
            try:
                import chromadb
            except ImportError as e:
                raise ImportError(
                    "chromadb is required for the vector store. Install with: pip install chromadb"
                ) from e

            if self._persist_path is None:
                self._client = chromadb.EphemeralClient()
            else:
                self._persist_path.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(self._persist_path))
        return self._client

    def _collection_names(self) -> set[str]:
        # Older clients return Collection objects, newer ones plain names
        return {getattr(c, "name", c) for c in self._get_client().list_collections()}

    def _find_collection(self, namespace: str):
        name = collection_name(namespace)
        if name not in self._collection_names():
            return None
        return self._get_client().get_collection(name=name)

    def _require_collection(self, namespace: str):
        collection = self._find_collection(namespace)
        if collection is None:
            raise NamespaceNotFoundError(namespace)
        return collection

    async def exists(self, namespace: str) -> bool:
        return await asyncio.to_thread(lambda: self._find_collection(namespace) is not None)

    async def embedding_identity(self, namespace: str) -> str | None:
        """Embedding space recorded for the namespace, None if never indexed."""

        def _identity():
            collection = self._find_collection(namespace)
            if collection is None:
                return None
            return (collection.metadata or {}).get("embedding")

        return await asyncio.to_thread(_identity)

    async def upsert(
        self,
        namespace: str,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
        embedding_identity: str,
    ) -> None:
        """Write vectors into the namespace, creating it on first use.

        Existing ids are overwritten; nothing else is removed.
        """

        def _upsert():
            collection = self._find_collection(namespace)
            if collection is None:
                logger.info("Creating collection for namespace %s", namespace)
                collection = self._get_client().create_collection(
                    name=collection_name(namespace),
                    metadata={
                        "hnsw:space": "cosine",
                        "namespace": namespace,
                        "embedding": embedding_identity,
                    },
                )
            collection.upsert(
                ids=ids,
                embeddings=embeddings,
                documents=documents,
                metadatas=metadatas,
            )

        await asyncio.to_thread(_upsert)

    async def query(
        self,
        namespace: str,
        embedding: list[float],
        top_k: int,
        where: dict[str, Any] | None = None,
    ) -> list[StoredHit]:
        """Top-k similarity search inside one namespace.

        Raises:
            NamespaceNotFoundError: If the namespace was never written
        """

        def _query() -> list[StoredHit]:
            collection = self._require_collection(namespace)
            available = collection.count()
            if available == 0 or top_k <= 0:
                return []

            results = collection.query(
                query_embeddings=[embedding],
                n_results=min(top_k, available),
                where=where or None,
                include=["documents", "metadatas", "distances"],
            )

            if not results["ids"] or not results["ids"][0]:
                return []

            hits = []
            for i, chunk_id in enumerate(results["ids"][0]):
                hits.append(
                    StoredHit(
                        chunk_id=chunk_id,
                        document=results["documents"][0][i] if results["documents"] else "",
                        metadata=results["metadatas"][0][i] if results["metadatas"] else {},
                        distance=results["distances"][0][i] if results["distances"] else 0.0,
                    )
                )
            return hits

        return await asyncio.to_thread(_query)

    async def count(self, namespace: str) -> int:
        """Number of chunks stored in the namespace."""
        return await asyncio.to_thread(lambda: self._require_collection(namespace).count())

    async def delete(self, namespace: str) -> bool:
        """Drop a namespace. Returns False if it did not exist."""

        def _delete() -> bool:
            name = collection_name(namespace)
            if name not in self._collection_names():
                return False
            self._get_client().delete_collection(name=name)
            return True

        deleted = await asyncio.to_thread(_delete)
        if deleted:
            logger.info("Deleted namespace %s", namespace)
        return deleted

    async def list_namespaces(self, prefix: str = "") -> list[str]:
        """Readable names of all namespaces starting with prefix, sorted."""

        def _list() -> list[str]:
            client = self._get_client()
            namespaces = []
            for name in self._collection_names():
                if not name.startswith(_COLLECTION_PREFIX):
                    continue
                metadata = client.get_collection(name=name).metadata or {}
                namespace = metadata.get("namespace")
                if namespace and namespace.startswith(prefix):
                    namespaces.append(namespace)
            return sorted(namespaces)

        return await asyncio.to_thread(_list)

    async def heartbeat(self) -> int:
        return await asyncio.to_thread(lambda: self._get_client().heartbeat())
