"""Assistant session - one opened folder and its conversation.

The session owns the Virtual File Tree of the opened folder, the open file,
the message history and the pending question. It is the only place that
state lives; nothing is kept in module globals.

At most one question is in flight per session. Asking while one is pending
raises RequestInFlightError; `cancel()` abandons the pending question.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from codi.assistant import CodeAssistant, QueryResult, make_namespace
from codi.config import DEFAULT_EXCLUDED_FOLDERS
from codi.editing import ApplyResult, BatchApplyResult, EditBlock, apply, apply_all, parse
from codi.errors import RequestInFlightError
from codi.knowledge.indexer import IndexResult
from codi.knowledge.retriever import RetrievedChunk
from codi.tree import FileTreeNode, LocalStorage, StorageBackend, VirtualFileTree
from codi.tree.virtual_tree import DEFAULT_MAX_DISPLAY_BYTES, DEFAULT_MAX_INDEX_BYTES

logger = logging.getLogger(__name__)

LOCAL_OWNER = "local"


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One turn of the conversation.

    Messages are immutable; only the `applied` flag of their edits changes.

    Attributes:
        role: Who wrote the message
        text: Message text (for answers, the explanation without edit blocks)
        sources: Chunks an answer was grounded on
        edits: Edits proposed by an answer
        id: Unique identifier
        timestamp: Creation time
    """

    role: Role
    text: str
    sources: tuple[RetrievedChunk, ...] = ()
    edits: tuple[EditBlock, ...] = ()
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "sources": [source.chunk.to_source_dict() for source in self.sources],
            "edits": [edit.to_dict() for edit in self.edits],
        }


def derive_repository(folder_name: str) -> tuple[str, str]:
    """Owner and repository for a folder name.

    "acme-widgets" -> ("acme", "widgets"); names without a usable dash
    belong to the "local" owner.
    """
    name = folder_name.strip()
    owner, sep, repository = name.partition("-")
    if sep and owner and repository:
        return owner, repository
    return LOCAL_OWNER, name


class AssistantSession:
    """Conversation about one opened folder."""

    def __init__(
        self,
        assistant: CodeAssistant,
        tree: VirtualFileTree,
        owner: str | None = None,
        repository: str | None = None,
        max_index_file_bytes: int = DEFAULT_MAX_INDEX_BYTES,
    ):
        derived_owner, derived_repository = derive_repository(tree.name)
        self.assistant = assistant
        self.tree = tree
        self.owner = owner or derived_owner
        self.repository = repository or derived_repository
        self.max_index_file_bytes = max_index_file_bytes

        self._messages: list[Message] = []
        self._active_file: FileTreeNode | None = None
        self._pending: asyncio.Task[QueryResult] | None = None
        self._cancel_requested = False

        self.tree.add_delete_listener(self._on_node_deleted)

    @classmethod
    async def open_folder(
        cls,
        assistant: CodeAssistant,
        path: str | Path,
        storage: StorageBackend | None = None,
        excluded_folders: list[str] | tuple[str, ...] = DEFAULT_EXCLUDED_FOLDERS,
        max_display_file_bytes: int = DEFAULT_MAX_DISPLAY_BYTES,
        max_index_file_bytes: int = DEFAULT_MAX_INDEX_BYTES,
    ) -> AssistantSession:
        """Open a folder and materialize its tree.

        Raises:
            StorageError: If the folder cannot be listed
        """
        root = Path(path).expanduser().resolve()
        tree = await VirtualFileTree.load(
            storage or LocalStorage(),
            root,
            excluded_folders=excluded_folders,
            max_display_file_bytes=max_display_file_bytes,
        )
        session = cls(assistant, tree, max_index_file_bytes=max_index_file_bytes)
        logger.info("Opened %s as %s", root, session.namespace)
        return session

    @property
    def namespace(self) -> str:
        return make_namespace(self.owner, self.repository)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def active_file(self) -> FileTreeNode | None:
        return self._active_file

    @property
    def is_busy(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def _on_node_deleted(self, node: FileTreeNode) -> None:
        if self._active_file is not None and self._active_file.id == node.id:
            logger.debug("Open file %s was deleted", node.path)
            self._active_file = None

    async def index(self) -> IndexResult:
        """Index the current state of the tree into the session's namespace."""
        sources = await self.tree.collect_sources(self.max_index_file_bytes)
        return await self.assistant.process_repository(sources, self.owner, self.repository)

    async def open_file(self, node_id: str) -> str:
        """Make a file the open file and return its content."""
        content = await self.tree.load_content(node_id)
        self._active_file = self.tree.find_by_id(node_id)
        return content

    def close_file(self) -> None:
        self._active_file = None

    def edit_file(self, node_id: str, text: str) -> FileTreeNode:
        """User edit of a file's content."""
        return self.tree.set_content(node_id, text)

    async def ask(self, question: str, current_file: str | None = None) -> Message | None:
        """Ask a question about the folder.

        Args:
            question: The question
            current_file: File to focus on; defaults to the open file

        Returns:
            The assistant's message, or None if the question was cancelled
            through `cancel()`

        Raises:
            RequestInFlightError: If a question is already pending
        """
        if self.is_busy:
            raise RequestInFlightError("A question is already pending for this session")

        if current_file is None and self._active_file is not None:
            current_file = self._active_file.name

        self._messages.append(Message(role=Role.USER, text=question))
        task = asyncio.create_task(
            self.assistant.query_repository(question, self.owner, self.repository, current_file)
        )
        self._pending = task
        self._cancel_requested = False

        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancel_requested and task.cancelled():
                logger.info("Question cancelled, discarding its answer")
                return None
            raise
        finally:
            self._pending = None
            self._cancel_requested = False

        parsed = parse(result.answer)
        message = Message(
            role=Role.ASSISTANT,
            text=parsed.explanation,
            sources=tuple(result.sources),
            edits=tuple(parsed.edits),
        )
        self._messages.append(message)
        return message

    def cancel(self) -> bool:
        """Cancel the pending question. False if nothing is pending."""
        if not self.is_busy:
            return False
        self._cancel_requested = True
        self._pending.cancel()
        return True

    def apply_edit(self, edit: EditBlock) -> ApplyResult:
        return apply(self.tree, edit)

    def apply_message_edits(self, message: Message) -> BatchApplyResult:
        """Apply every edit of an answer, each on its own."""
        return apply_all(self.tree, message.edits)

    async def save_all(self) -> bool:
        return await self.tree.persist_all()

    def close(self) -> None:
        self.tree.remove_delete_listener(self._on_node_deleted)
