"""Chunker for the knowledge pipeline.

Splits raw file text into overlapping segments sized for the embedding
model and the language model context window.

Splitting is recursive over a priority list of separators (paragraph,
line, space, character). Separators are kept and whitespace is not
stripped, so the chunks of a file always cover every character of it;
overlapping regions are duplicated, never dropped.

Chunks carry no sequence number. Output order (input file order, then
position within the file) is the only ordering guarantee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from langchain_text_splitters import RecursiveCharacterTextSplitter

from codi.knowledge.languages import comment, detect_language

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")


@dataclass(frozen=True)
class ChunkerConfig:
    """Configuration for the chunker.

    Attributes:
        chunk_size: Maximum characters per chunk
        chunk_overlap: Characters shared by adjacent chunks
        max_file_bytes: Files above this size become a placeholder chunk
        separators: Split points, tried in order
    """

    chunk_size: int = 1500
    chunk_overlap: int = 300
    max_file_bytes: int = 1024 * 1024
    separators: tuple[str, ...] = DEFAULT_SEPARATORS

    def __post_init__(self) -> None:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )


@dataclass(frozen=True)
class SourceFile:
    """A file handed to the chunker.

    Attributes:
        filename: Base name of the file
        path: Slash-joined path from the tree root
        text: File content (empty for binary files)
        language: Language name; detected from the filename when omitted
        binary: True when the content could not be read as text
        size_bytes: Size reported by storage, if known
    """

    filename: str
    path: str
    text: str
    language: str | None = None
    binary: bool = False
    size_bytes: int | None = None

    @property
    def resolved_language(self) -> str:
        return self.language or detect_language(self.filename)

    @property
    def byte_size(self) -> int:
        if self.size_bytes is not None:
            return self.size_bytes
        return len(self.text.encode("utf-8"))


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of a file's text plus metadata.

    Attributes:
        content: The chunk text
        filename: Base name of the source file
        path: Path of the source file
        language: Language of the source file
        namespace: Partition the chunk belongs to (set by the indexer)
        size: Character length of the whole source file
    """

    content: str
    filename: str
    path: str
    language: str
    namespace: str = ""
    size: int = 0

    def with_namespace(self, namespace: str) -> Chunk:
        return replace(self, namespace=namespace)

    def to_metadata(self) -> dict[str, str | int]:
        """Metadata stored next to the vector."""
        return {
            "filename": self.filename,
            "path": self.path,
            "language": self.language,
            "namespace": self.namespace,
            "size": self.size,
        }

    def to_source_dict(self) -> dict[str, object]:
        """Shape used by the query endpoint's `sources` list."""
        return {
            "content": self.content,
            "metadata": {
                "filename": self.filename,
                "path": self.path,
                "language": self.language,
            },
        }


class Chunker:
    """Turns source files into a flat, ordered list of chunks."""

    def __init__(self, config: ChunkerConfig | None = None):
        self.config = config or ChunkerConfig()
        self._splitter = RecursiveCharacterTextSplitter(
            separators=list(self.config.separators),
            chunk_size=self.config.chunk_size,
            chunk_overlap=self.config.chunk_overlap,
            keep_separator=True,
            strip_whitespace=False,
        )

    def split(self, files: list[SourceFile]) -> list[Chunk]:
        """Split files into chunks.

        Args:
            files: Files in the order their chunks should appear

        Returns:
            Chunks for every file with content. Blank files yield nothing;
            binary and oversized files yield a single placeholder chunk.
        """
        chunks: list[Chunk] = []
        skipped = 0

        for source in files:
            file_chunks = self.split_file(source)
            if not file_chunks:
                skipped += 1
            chunks.extend(file_chunks)

        logger.info(
            "Split %d files into %d chunks (%d blank files dropped)",
            len(files),
            len(chunks),
            skipped,
        )
        return chunks

    def split_file(self, source: SourceFile) -> list[Chunk]:
        language = source.resolved_language

        placeholder = self._placeholder_text(source, language)
        if placeholder is not None:
            return [
                Chunk(
                    content=placeholder,
                    filename=source.filename,
                    path=source.path,
                    language=language,
                    size=len(placeholder),
                )
            ]

        if not source.text.strip():
            return []

        size = len(source.text)
        return [
            Chunk(
                content=piece,
                filename=source.filename,
                path=source.path,
                language=language,
                size=size,
            )
            for piece in self._splitter.split_text(source.text)
        ]

    def _placeholder_text(self, source: SourceFile, language: str) -> str | None:
        """Placeholder content for files indexed as present but unreadable."""
        if source.binary:
            logger.debug("Indexing placeholder for binary file %s", source.path)
            return comment(language, f"Binary file: {source.filename}")

        if source.byte_size > self.config.max_file_bytes:
            megabytes = round(source.byte_size / 1024 / 1024)
            logger.debug("Indexing placeholder for large file %s", source.path)
            return comment(language, f"File too large to process ({megabytes}MB)")

        return None
