"""Knowledge pipeline - chunking, embeddings, indexing and retrieval.

Write path: source files -> Chunker -> Indexer -> VectorStore
Read path: question -> Retriever -> assemble() -> language model

Usage:
    from codi.knowledge import Chunker, Indexer, Retriever, VectorStore

    store = VectorStore("~/.codi/chromadb")
    embeddings = create_embedding_provider()
    await Indexer(embeddings, store).index(Chunker().split(files), "acme-widgets")
    chunks = await Retriever(embeddings, store).retrieve("where is auth?", "acme-widgets")

Dependencies:
    Required: langchain-text-splitters, tenacity, chromadb
    Embeddings: sentence-transformers (default), ollama or google-genai
"""

from codi.knowledge.chunker import Chunk, Chunker, ChunkerConfig, SourceFile
from codi.knowledge.embeddings import (
    EmbeddingProvider,
    GeminiEmbeddings,
    OllamaEmbeddings,
    SentenceTransformersEmbeddings,
    create_embedding_provider,
)
from codi.knowledge.indexer import Indexer, IndexResult
from codi.knowledge.languages import detect_language, is_text_file
from codi.knowledge.prompt import SYSTEM_INSTRUCTION, assemble
from codi.knowledge.retriever import RetrievedChunk, Retriever
from codi.knowledge.vector_store import StoredHit, VectorStore

__all__ = [
    # Chunking
    "Chunk",
    "Chunker",
    "ChunkerConfig",
    "SourceFile",
    "detect_language",
    "is_text_file",
    # Embeddings
    "EmbeddingProvider",
    "SentenceTransformersEmbeddings",
    "OllamaEmbeddings",
    "GeminiEmbeddings",
    "create_embedding_provider",
    # Storage
    "VectorStore",
    "StoredHit",
    # Indexing and retrieval
    "Indexer",
    "IndexResult",
    "Retriever",
    "RetrievedChunk",
    # Prompt
    "SYSTEM_INSTRUCTION",
    "assemble",
]
