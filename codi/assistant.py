"""Code assistant service - indexing and question answering per repository.

One CodeAssistant serves many repositories. Each repository is stored
under the namespace "<owner>-<repository>"; namespaces never see each
other's chunks.

Usage:
    assistant = CodeAssistant.from_config(get_config())
    await assistant.process_repository(files, "acme", "widgets")
    result = await assistant.query_repository("Where is auth?", "acme", "widgets")
    print(result.answer)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from codi.config import CodiConfig
from codi.errors import EmptyInputError, InvalidNamespaceError
from codi.knowledge.chunker import Chunker, ChunkerConfig, SourceFile
from codi.knowledge.embeddings import EmbeddingProvider, create_embedding_provider
from codi.knowledge.indexer import Indexer, IndexResult
from codi.knowledge.prompt import SYSTEM_INSTRUCTION, assemble
from codi.knowledge.retriever import DEFAULT_TOP_K, RetrievedChunk, Retriever
from codi.knowledge.vector_store import VectorStore
from codi.llm import LanguageModel, create_language_model

logger = logging.getLogger(__name__)


def make_namespace(owner: str, repository: str) -> str:
    """Namespace for a repository.

    Raises:
        InvalidNamespaceError: If owner or repository is blank
    """
    owner = (owner or "").strip()
    repository = (repository or "").strip()
    if not owner or not repository:
        raise InvalidNamespaceError("owner and repository are required")
    return f"{owner}-{repository}"


@dataclass
class QueryResult:
    """Answer to a question about one repository.

    Attributes:
        answer: Raw language-model answer (may contain edit blocks)
        sources: Chunks the answer was grounded on, best match first
        namespace: Namespace that was searched
        current_file: File the search was restricted to, if any
    """

    answer: str
    sources: list[RetrievedChunk] = field(default_factory=list)
    namespace: str = ""
    current_file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [source.chunk.to_source_dict() for source in self.sources],
        }


class CodeAssistant:
    """Indexes repositories and answers questions about them."""

    def __init__(
        self,
        embeddings: EmbeddingProvider,
        store: VectorStore,
        language_model: LanguageModel,
        chunker: Chunker | None = None,
        top_k: int = DEFAULT_TOP_K,
        batch_size: int = 32,
        system_prompt: str = SYSTEM_INSTRUCTION,
    ):
        """Initialize the assistant.

        Args:
            embeddings: Embedding provider shared by indexing and retrieval
            store: Vector store holding all namespaces
            language_model: Backend that answers assembled prompts
            chunker: Chunker for incoming files
            top_k: Chunks retrieved per question
            batch_size: Chunks embedded per round trip
            system_prompt: Instruction placed at the top of every prompt
        """
        self.store = store
        self.language_model = language_model
        self.chunker = chunker or Chunker()
        self.indexer = Indexer(embeddings, store, batch_size=batch_size)
        self.retriever = Retriever(embeddings, store, default_top_k=top_k)
        self._system_prompt = system_prompt

    @classmethod
    def from_config(cls, config: CodiConfig) -> CodeAssistant:
        knowledge = config.knowledge
        return cls(
            embeddings=create_embedding_provider(knowledge, config.llm.gemini),
            store=VectorStore(knowledge.persist_directory),
            language_model=create_language_model(config.llm),
            chunker=Chunker(
                ChunkerConfig(
                    chunk_size=knowledge.chunk_size,
                    chunk_overlap=knowledge.chunk_overlap,
                    max_file_bytes=knowledge.max_index_file_bytes,
                )
            ),
            top_k=knowledge.top_k,
            batch_size=knowledge.batch_size,
        )

    @property
    def embeddings(self) -> EmbeddingProvider:
        return self.indexer.embeddings

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def update_system_prompt(self, prompt: str) -> None:
        """Replace the system prompt.

        Raises:
            ValueError: If the prompt is blank
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("System prompt must be a non-empty string")
        self._system_prompt = prompt
        logger.info("System prompt updated")

    async def process_repository(
        self,
        files: list[SourceFile],
        owner: str,
        repository: str,
    ) -> IndexResult:
        """Chunk and index a repository's files.

        Raises:
            InvalidNamespaceError: If owner or repository is blank
            EmptyInputError: If no file has content
            IndexingError: If embedding or storage fails
        """
        namespace = make_namespace(owner, repository)
        if not files:
            raise EmptyInputError("No files supplied")

        chunks = self.chunker.split(files)
        if not chunks:
            raise EmptyInputError("All supplied files are empty")

        return await self.indexer.index(chunks, namespace)

    async def query_repository(
        self,
        query: str,
        owner: str,
        repository: str,
        current_file: str | None = None,
    ) -> QueryResult:
        """Answer a question from a repository's indexed code.

        Raises:
            InvalidNamespaceError: If owner or repository is blank
            EmptyInputError: If the question is blank
            NamespaceNotFoundError: If the repository was never indexed
            RetrievalError: If embedding or the store fails
            GenerationError: If the language model fails
        """
        namespace = make_namespace(owner, repository)
        if not query or not query.strip():
            raise EmptyInputError("Query is empty")

        sources = await self.retriever.retrieve(query, namespace, current_file=current_file)
        prompt = assemble(self._system_prompt, sources, current_file, query)

        logger.info("Asking %s with %d context chunks", namespace, len(sources))
        answer = await self.language_model.generate(prompt)
        return QueryResult(
            answer=answer,
            sources=sources,
            namespace=namespace,
            current_file=current_file,
        )

    async def delete_repository(self, owner: str, repository: str) -> bool:
        """Drop everything indexed for a repository. False if nothing was there."""
        return await self.store.delete(make_namespace(owner, repository))

    async def list_repositories(self, owner: str) -> list[str]:
        """Repository names indexed for an owner.

        Matching is by the `owner-` namespace prefix, so owner "a" also
        lists "b-c" when namespace "a-b-c" exists.
        """
        owner = (owner or "").strip()
        if not owner:
            raise InvalidNamespaceError("owner is required")
        prefix = f"{owner}-"
        namespaces = await self.store.list_namespaces(prefix)
        return [namespace[len(prefix) :] for namespace in namespaces]

    async def health_check(self) -> dict[str, Any]:
        """Report whether the vector store is reachable."""
        timestamp = datetime.now().isoformat()
        try:
            namespaces = await self.store.list_namespaces()
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return {"status": "unhealthy", "error": str(e), "timestamp": timestamp}

        return {
            "status": "healthy",
            "namespaces": len(namespaces),
            "embedding_model": self.embeddings.get_model_name(),
            "language_model": self.language_model.get_model_name(),
            "timestamp": timestamp,
        }
