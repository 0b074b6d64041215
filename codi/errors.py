"""Error taxonomy for Codi.

Four kinds of failure are kept apart so callers can tell "nothing matched"
from "the operation could not complete":

- Input errors: rejected immediately, never retried
- Stage errors: a collaborator (embeddings, vector store, language model)
  failed; the stage that triggered it is named
- Not-found errors: reported per operation, never abort sibling operations
- Tree errors: invalid operations on the Virtual File Tree

Malformed edit markers are not an error at all; the parser degrades them to
plain text.
"""

from __future__ import annotations

from enum import Enum


class Stage(Enum):
    """Pipeline stage that raised a collaborator error."""

    INDEXING = "indexing"
    RETRIEVAL = "retrieval"
    GENERATION = "generation"


class CodiError(Exception):
    """Base class for all Codi errors."""


class InputError(CodiError):
    """The request itself is unusable."""


class EmptyInputError(InputError):
    """No files or chunks with content were supplied."""


class InvalidNamespaceError(InputError):
    """Owner or repository identifier is missing."""


class NamespaceNotFoundError(CodiError):
    """The namespace has never been indexed."""

    def __init__(self, namespace: str):
        super().__init__(f"Namespace has not been indexed: {namespace}")
        self.namespace = namespace


class StageError(CodiError):
    """A collaborator call failed during a pipeline stage."""

    stage: Stage

    def __init__(self, message: str):
        super().__init__(f"{self.stage.value} failed: {message}")


class IndexingError(StageError):
    """Embedding or writing chunks failed.

    Attributes:
        chunks_written: Chunks already stored before the failure. Non-zero
            means the namespace holds a partial document set.
    """

    stage = Stage.INDEXING

    def __init__(self, message: str, chunks_written: int = 0):
        super().__init__(message)
        self.chunks_written = chunks_written

    @property
    def partial(self) -> bool:
        return self.chunks_written > 0


class RetrievalError(StageError):
    stage = Stage.RETRIEVAL


class GenerationError(StageError):
    stage = Stage.GENERATION


class StorageError(CodiError):
    """The storage collaborator could not read or write a resource."""


class TreeError(CodiError):
    """Invalid operation on the Virtual File Tree."""


class NodeNotFoundError(TreeError):
    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class InvalidNodeError(TreeError):
    """Operation does not fit the node's kind or its siblings."""


class RequestInFlightError(CodiError):
    """A question is already pending for this session."""
