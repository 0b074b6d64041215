"""Unit tests for the indexer.

Tests cover:
- Input validation and batching
- Deterministic chunk ids
- Retry and partial-failure reporting
- Embedding-space checks and per-namespace serialisation
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from tenacity import wait_none

from codi.errors import EmptyInputError, IndexingError, Stage
from codi.knowledge.chunker import Chunk, Chunker, ChunkerConfig, SourceFile
from codi.knowledge.indexer import Indexer, chunk_id

try:
    import chromadb  # noqa: F401

    CHROMADB_AVAILABLE = True
except ImportError:
    CHROMADB_AVAILABLE = False

requires_chromadb = pytest.mark.skipif(not CHROMADB_AVAILABLE, reason="chromadb not installed")


def _chunks(count: int, path: str = "src/a.js") -> list[Chunk]:
    return [
        Chunk(
            content=f"function f{i}() {{}}",
            filename=path.rsplit("/", 1)[-1],
            path=path,
            language="javascript",
        )
        for i in range(count)
    ]


def _mock_store(identity: str | None = None) -> MagicMock:
    store = MagicMock()
    store.embedding_identity = AsyncMock(return_value=identity)
    store.upsert = AsyncMock()
    return store


class TestChunkId:
    """Tests for chunk id derivation."""

    def test_deterministic(self):
        assert chunk_id("ns", "a.js", 0, "x") == chunk_id("ns", "a.js", 0, "x")

    def test_varies_with_each_part(self):
        base = chunk_id("ns", "a.js", 0, "x")
        assert chunk_id("other", "a.js", 0, "x") != base
        assert chunk_id("ns", "b.js", 0, "x") != base
        assert chunk_id("ns", "a.js", 1, "x") != base
        assert chunk_id("ns", "a.js", 0, "y") != base

    def test_no_separator_collisions(self):
        """Test that shifting text between fields changes the id."""
        assert chunk_id("ab", "c", 0, "x") != chunk_id("a", "bc", 0, "x")


class TestIndexer:
    """Tests for Indexer with a mocked store."""

    def test_rejects_bad_batch_size(self, mock_embeddings):
        with pytest.raises(ValueError):
            Indexer(mock_embeddings, _mock_store(), batch_size=0)

    @pytest.mark.asyncio
    async def test_empty_input(self, mock_embeddings):
        """Test that an empty chunk list is an input error."""
        indexer = Indexer(mock_embeddings, _mock_store())
        with pytest.raises(EmptyInputError):
            await indexer.index([], "acme-widgets")

    @pytest.mark.asyncio
    async def test_batches(self, mock_embeddings):
        """Test that chunks are embedded and written in batches."""
        store = _mock_store()
        indexer = Indexer(mock_embeddings, store, batch_size=2)

        result = await indexer.index(_chunks(5), "acme-widgets")

        assert [len(batch) for batch in mock_embeddings.calls] == [2, 2, 1]
        assert store.upsert.await_count == 3
        assert result.chunk_count == 5
        assert result.file_count == 1
        assert result.languages == {"javascript": 1}

    @pytest.mark.asyncio
    async def test_metadata_carries_namespace(self, mock_embeddings):
        store = _mock_store()
        indexer = Indexer(mock_embeddings, store)

        await indexer.index(_chunks(1), "acme-widgets")

        kwargs = store.upsert.await_args.kwargs
        assert kwargs["metadatas"][0]["namespace"] == "acme-widgets"
        assert kwargs["embedding_identity"] == mock_embeddings.identity

    @pytest.mark.asyncio
    async def test_ids_stable_across_runs(self, mock_embeddings):
        """Test that indexing the same chunks twice reuses the same ids."""
        store = _mock_store()
        indexer = Indexer(mock_embeddings, store)

        await indexer.index(_chunks(3), "acme-widgets")
        first = store.upsert.await_args.kwargs["ids"]
        await indexer.index(_chunks(3), "acme-widgets")
        second = store.upsert.await_args.kwargs["ids"]

        assert first == second
        assert len(set(first)) == 3

    @pytest.mark.asyncio
    async def test_duplicate_content_gets_distinct_ids(self, mock_embeddings):
        """Test that identical chunks in one file do not collapse."""
        store = _mock_store()
        chunk = _chunks(1)[0]

        await Indexer(mock_embeddings, store).index([chunk, chunk], "acme-widgets")

        ids = store.upsert.await_args.kwargs["ids"]
        assert len(set(ids)) == 2

    @pytest.mark.asyncio
    async def test_retries_transient_failure(self, mock_embeddings):
        """Test that a failing batch is retried before giving up."""
        embeddings = MagicMock()
        embeddings.identity = "Mock:x"
        embeddings.embed_batch = AsyncMock(
            side_effect=[ConnectionError("blip"), [[0.1, 0.2]]]
        )
        store = _mock_store()
        indexer = Indexer(embeddings, store, retry_wait=wait_none())

        result = await indexer.index(_chunks(1), "acme-widgets")

        assert embeddings.embed_batch.await_count == 2
        assert result.chunk_count == 1

    @pytest.mark.asyncio
    async def test_failure_reports_chunks_written(self, mock_embeddings):
        """Test that a failure after some batches reports the partial count."""
        store = _mock_store()
        store.upsert = AsyncMock(side_effect=[None, RuntimeError("disk full")])
        indexer = Indexer(mock_embeddings, store, batch_size=2, retry_wait=wait_none())

        with pytest.raises(IndexingError) as exc_info:
            await indexer.index(_chunks(4), "acme-widgets")

        assert exc_info.value.chunks_written == 2
        assert exc_info.value.partial is True
        assert exc_info.value.stage is Stage.INDEXING
        assert "disk full" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_embedding_failure_after_retries(self, mock_embeddings):
        embeddings = MagicMock()
        embeddings.identity = "Mock:x"
        embeddings.embed_batch = AsyncMock(side_effect=ConnectionError("down"))
        indexer = Indexer(embeddings, _mock_store(), retry_attempts=3, retry_wait=wait_none())

        with pytest.raises(IndexingError) as exc_info:
            await indexer.index(_chunks(1), "acme-widgets")

        assert embeddings.embed_batch.await_count == 3
        assert exc_info.value.chunks_written == 0
        assert exc_info.value.partial is False

    @pytest.mark.asyncio
    async def test_vector_count_mismatch(self, mock_embeddings):
        """Test that a provider returning too few vectors fails the run."""
        embeddings = MagicMock()
        embeddings.identity = "Mock:x"
        embeddings.embed_batch = AsyncMock(return_value=[[0.1]])
        indexer = Indexer(embeddings, _mock_store(), retry_wait=wait_none())

        with pytest.raises(IndexingError):
            await indexer.index(_chunks(2), "acme-widgets")

    @pytest.mark.asyncio
    async def test_rejects_other_embedding_space(self, mock_embeddings):
        """Test that vectors from another model are never mixed in."""
        store = _mock_store(identity="SomethingElse:model")
        indexer = Indexer(mock_embeddings, store)

        with pytest.raises(IndexingError):
            await indexer.index(_chunks(1), "acme-widgets")

        store.upsert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, mock_embeddings):
        """Test that cancelling a run raises CancelledError, not IndexingError."""
        started = asyncio.Event()

        async def slow_upsert(*args, **kwargs):
            started.set()
            await asyncio.sleep(10)

        store = _mock_store()
        store.upsert = AsyncMock(side_effect=slow_upsert)
        indexer = Indexer(mock_embeddings, store)

        task = asyncio.create_task(indexer.index(_chunks(1), "acme-widgets"))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_same_namespace_serialised(self, mock_embeddings):
        """Test that two runs on one namespace never overlap."""
        active = 0
        peak = 0

        async def tracking_upsert(*args, **kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        store = _mock_store()
        store.upsert = AsyncMock(side_effect=tracking_upsert)
        indexer = Indexer(mock_embeddings, store)

        await asyncio.gather(
            indexer.index(_chunks(2), "acme-widgets"),
            indexer.index(_chunks(2), "acme-widgets"),
        )

        assert peak == 1

    @pytest.mark.asyncio
    async def test_namespace_locks_released(self, mock_embeddings):
        """Test that per-namespace locks do not accumulate once runs finish."""
        active = 0
        peak = 0

        async def tracking_upsert(*args, **kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        store = _mock_store()
        store.upsert = AsyncMock(side_effect=tracking_upsert)
        indexer = Indexer(mock_embeddings, store)

        await asyncio.gather(*(indexer.index(_chunks(1), "acme-widgets") for _ in range(3)))
        await indexer.index(_chunks(1), "acme-gadgets")

        assert peak == 1
        assert indexer._locks == {}
        assert indexer._lock_users == {}

    @pytest.mark.asyncio
    async def test_namespace_lock_released_on_failure(self, mock_embeddings):
        store = _mock_store(identity="SomethingElse:model")
        indexer = Indexer(mock_embeddings, store)

        with pytest.raises(IndexingError):
            await indexer.index(_chunks(1), "acme-widgets")

        assert indexer._locks == {}

    @pytest.mark.asyncio
    async def test_different_namespaces_concurrent(self, mock_embeddings):
        active = 0
        peak = 0

        async def tracking_upsert(*args, **kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        store = _mock_store()
        store.upsert = AsyncMock(side_effect=tracking_upsert)
        indexer = Indexer(mock_embeddings, store)

        await asyncio.gather(
            indexer.index(_chunks(1), "acme-widgets"),
            indexer.index(_chunks(1), "acme-gadgets"),
        )

        assert peak == 2


@requires_chromadb
class TestIndexerWithChroma:
    """Indexer against a real ChromaDB store."""

    @pytest.mark.asyncio
    async def test_reindex_does_not_duplicate(self, mock_embeddings, chroma_store):
        """Test that re-indexing unchanged files keeps the chunk count."""
        chunker = Chunker(ChunkerConfig(chunk_size=200, chunk_overlap=20))
        text = "\n".join(f"const value{i} = {i};" for i in range(40))
        chunks = chunker.split([SourceFile(filename="a.js", path="src/a.js", text=text)])
        indexer = Indexer(mock_embeddings, chroma_store)

        await indexer.index(chunks, "acme-widgets")
        first = await chroma_store.count("acme-widgets")
        await indexer.index(chunks, "acme-widgets")

        assert await chroma_store.count("acme-widgets") == first == len(chunks)

    @pytest.mark.asyncio
    async def test_count_never_decreases(self, mock_embeddings, chroma_store):
        """Test that indexing fewer files later keeps earlier chunks."""
        indexer = Indexer(mock_embeddings, chroma_store)

        await indexer.index(_chunks(3, "src/a.js") + _chunks(2, "src/b.js"), "acme-widgets")
        await indexer.index(_chunks(1, "src/c.js"), "acme-widgets")

        assert await chroma_store.count("acme-widgets") == 6
