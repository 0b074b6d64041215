"""Virtual File Tree - the in-memory model of an opened folder.

The tree is the source of truth for what gets indexed and what edits
change. Its structure is materialized eagerly when a folder is opened;
file content is read lazily, on first access.

`set_content` is the single entry point for content changes; user edits
and the edit applier both go through it. Writes to the backing storage
only happen on `persist` / `persist_all` and on structural changes
(`create_node`, `delete_node`).

Children are ordered folders first, then by name, so traversal order is
deterministic.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from codi.config import DEFAULT_EXCLUDED_FOLDERS
from codi.errors import InvalidNodeError, NodeNotFoundError, StorageError
from codi.knowledge.chunker import SourceFile
from codi.knowledge.languages import comment, detect_language, is_text_file
from codi.tree.node import FileTreeNode, NodeKind
from codi.tree.storage import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISPLAY_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_INDEX_BYTES = 1024 * 1024

DeleteListener = Callable[[FileTreeNode], None]


def _sort_key(node: FileTreeNode) -> tuple[int, str, str]:
    return (0 if node.is_folder else 1, node.name.lower(), node.name)


def _join(parent_path: str, name: str) -> str:
    return f"{parent_path}/{name}" if parent_path else name


def _validate_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned or "/" in cleaned or "\\" in cleaned or cleaned in (".", ".."):
        raise InvalidNodeError(f"Invalid node name: {name!r}")
    return cleaned


def _megabytes(size: int) -> int:
    return round(size / 1024 / 1024)


class VirtualFileTree:
    """In-memory file tree backed by an optional storage backend.

    Usage:
        tree = await VirtualFileTree.load(LocalStorage(), Path("./project"))
        node = tree.find_by_path("src/app.py")
        text = await tree.load_content(node.id)
        tree.set_content(node.id, text.replace("foo", "bar"))
        await tree.persist_all()
    """

    def __init__(
        self,
        root: FileTreeNode,
        storage: StorageBackend | None = None,
        max_display_file_bytes: int = DEFAULT_MAX_DISPLAY_BYTES,
    ):
        if not root.is_folder:
            raise InvalidNodeError("Tree root must be a folder")
        self.root = root
        self.storage = storage
        self.max_display_file_bytes = max_display_file_bytes
        self._delete_listeners: list[DeleteListener] = []

    @classmethod
    def empty(cls, name: str = "root", **kwargs: Any) -> VirtualFileTree:
        """A tree with an empty root folder and no storage."""
        return cls(FileTreeNode(name=name, kind=NodeKind.FOLDER), **kwargs)

    @classmethod
    async def load(
        cls,
        storage: StorageBackend,
        root_ref: Any,
        excluded_folders: Iterable[str] = DEFAULT_EXCLUDED_FOLDERS,
        max_display_file_bytes: int = DEFAULT_MAX_DISPLAY_BYTES,
    ) -> VirtualFileTree:
        """Materialize the structure below root_ref.

        Folders whose name matches an excluded name (case-insensitive) are
        skipped with everything below them. File content is not read.

        Raises:
            StorageError: If the root cannot be listed
        """
        excluded = {name.lower() for name in excluded_folders}
        root = FileTreeNode(
            name=storage.display_name(root_ref),
            kind=NodeKind.FOLDER,
            storage_ref=root_ref,
        )
        counts = {"files": 0, "folders": 0, "skipped": 0}
        await cls._load_children(storage, root, excluded, counts)

        logger.info(
            "Loaded %s: %d files, %d folders (%d excluded)",
            root.name,
            counts["files"],
            counts["folders"],
            counts["skipped"],
        )
        return cls(root, storage=storage, max_display_file_bytes=max_display_file_bytes)

    @classmethod
    async def _load_children(
        cls,
        storage: StorageBackend,
        folder: FileTreeNode,
        excluded: set[str],
        counts: dict[str, int],
    ) -> None:
        for entry in await storage.enumerate(folder.storage_ref):
            path = _join(folder.path, entry.name)
            if entry.kind is NodeKind.FOLDER:
                if entry.name.lower() in excluded:
                    logger.debug("Skipping excluded folder %s", path)
                    counts["skipped"] += 1
                    continue
                child = FileTreeNode(
                    name=entry.name,
                    kind=NodeKind.FOLDER,
                    path=path,
                    storage_ref=entry.ref,
                )
                try:
                    await cls._load_children(storage, child, excluded, counts)
                except StorageError as e:
                    logger.warning("Cannot list %s, keeping it empty: %s", path, e)
                counts["folders"] += 1
            else:
                child = FileTreeNode(
                    name=entry.name,
                    kind=NodeKind.FILE,
                    path=path,
                    storage_ref=entry.ref,
                    size=entry.size,
                )
                counts["files"] += 1
            folder.children.append(child)
        folder.children.sort(key=_sort_key)

    @property
    def name(self) -> str:
        return self.root.name

    # Traversal

    def walk(self) -> Iterator[FileTreeNode]:
        """All nodes in pre-order, root first."""
        for _, node in self._walk_with_parent():
            yield node

    def _walk_with_parent(self) -> Iterator[tuple[FileTreeNode | None, FileTreeNode]]:
        stack: list[tuple[FileTreeNode | None, FileTreeNode]] = [(None, self.root)]
        while stack:
            parent, node = stack.pop()
            yield parent, node
            if node.children:
                stack.extend((node, child) for child in reversed(node.children))

    def files(self) -> Iterator[FileTreeNode]:
        return (node for node in self.walk() if node.is_file)

    def find_by_id(self, node_id: str) -> FileTreeNode | None:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def find_by_path(self, path: str) -> FileTreeNode | None:
        wanted = path.strip("/")
        for node in self.walk():
            if node.path == wanted:
                return node
        return None

    def find_by_name(self, name: str) -> FileTreeNode | None:
        """First file named `name` in pre-order."""
        for node in self.files():
            if node.name == name:
                return node
        return None

    def modified_files(self) -> list[FileTreeNode]:
        return [node for node in self.files() if node.is_modified]

    def _require(self, node_id: str) -> FileTreeNode:
        node = self.find_by_id(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def _require_file(self, node_id: str) -> FileTreeNode:
        node = self._require(node_id)
        if not node.is_file:
            raise InvalidNodeError(f"{node.path or node.name} is a folder")
        return node

    def _parent_of(self, node_id: str) -> FileTreeNode | None:
        for parent, node in self._walk_with_parent():
            if node.id == node_id:
                return parent
        return None

    # Listeners

    def add_delete_listener(self, listener: DeleteListener) -> None:
        """Register a callback run for every node removed by delete_node."""
        self._delete_listeners.append(listener)

    def remove_delete_listener(self, listener: DeleteListener) -> None:
        if listener in self._delete_listeners:
            self._delete_listeners.remove(listener)

    # Structure

    async def create_node(
        self,
        parent_id: str,
        name: str,
        kind: NodeKind,
        content: str = "",
    ) -> FileTreeNode:
        """Create a file or folder under a folder.

        The entry is created in storage too when the parent has a storage
        reference.

        Raises:
            NodeNotFoundError: If the parent does not exist
            InvalidNodeError: If the parent is a file, the name is invalid
                or a sibling already has that name
            StorageError: If storage refuses the entry (tree unchanged)
        """
        parent = self._require(parent_id)
        if not parent.is_folder:
            raise InvalidNodeError(f"Cannot create {name!r} inside file {parent.path}")
        name = _validate_name(name)
        if parent.child(name) is not None:
            raise InvalidNodeError(f"{_join(parent.path, name)} already exists")

        ref = None
        if self.storage is not None and parent.storage_ref is not None:
            if kind is NodeKind.FOLDER:
                ref = await self.storage.create_directory(parent.storage_ref, name)
            else:
                ref = await self.storage.create_file(parent.storage_ref, name, content)

        if kind is NodeKind.FOLDER:
            node = FileTreeNode(
                name=name,
                kind=kind,
                path=_join(parent.path, name),
                storage_ref=ref,
            )
        else:
            node = FileTreeNode(
                name=name,
                kind=kind,
                path=_join(parent.path, name),
                content=content,
                is_content_loaded=True,
                storage_ref=ref,
                size=len(content.encode("utf-8")),
            )

        parent.children.append(node)
        parent.children.sort(key=_sort_key)
        logger.debug("Created %s %s", kind.value, node.path)
        return node

    async def delete_node(self, node_id: str) -> bool:
        """Remove a node and everything below it.

        Returns:
            False if the node does not exist or is the root

        Raises:
            StorageError: If storage refuses the removal (tree unchanged)
        """
        parent = self._parent_of(node_id)
        if parent is None:
            return False
        node = next(child for child in parent.children if child.id == node_id)

        if self.storage is not None and node.storage_ref is not None:
            await self.storage.remove(node.storage_ref)

        parent.children.remove(node)
        removed = list(VirtualFileTree(node).walk()) if node.is_folder else [node]
        for gone in removed:
            for listener in list(self._delete_listeners):
                listener(gone)

        logger.debug("Deleted %s (%d nodes)", node.path, len(removed))
        return True

    def rename_node(self, node_id: str, new_name: str) -> bool:
        """Rename a node in memory and re-derive the paths below it.

        Storage is not touched; the node keeps its storage reference.

        Returns:
            False if the node does not exist or is the root

        Raises:
            InvalidNodeError: If the name is invalid or taken by a sibling
        """
        parent = self._parent_of(node_id)
        if parent is None:
            return False
        node = next(child for child in parent.children if child.id == node_id)
        new_name = _validate_name(new_name)
        if new_name == node.name:
            return True
        if parent.child(new_name) is not None:
            raise InvalidNodeError(f"{_join(parent.path, new_name)} already exists")

        node.name = new_name
        node.path = _join(parent.path, new_name)
        if node.is_folder:
            for child_parent, child in VirtualFileTree(node)._walk_with_parent():
                if child_parent is not None:
                    child.path = _join(child_parent.path, child.name)
        parent.children.sort(key=_sort_key)
        return True

    # Content

    def _placeholder(self, node: FileTreeNode) -> str | None:
        language = detect_language(node.name)
        if node.size is not None and node.size > self.max_display_file_bytes:
            return comment(language, f"File too large to display ({_megabytes(node.size)}MB)")
        if not is_text_file(node.name):
            return comment(language, f"Binary file: {node.name}")
        return None

    async def _read(self, node: FileTreeNode) -> str:
        text = await self.storage.read_text(node.storage_ref)
        node.content = text
        node.is_content_loaded = True
        return text

    async def load_content(self, node_id: str) -> str:
        """Return a file's content, reading it from storage on first access.

        Binary files and files above the display limit yield a placeholder
        comment; the node stays unloaded.

        Raises:
            NodeNotFoundError: If the node does not exist
            InvalidNodeError: If the node is a folder
            StorageError: If storage cannot read the file
        """
        node = self._require_file(node_id)
        if node.is_content_loaded or self.storage is None or node.storage_ref is None:
            return node.content or ""

        placeholder = self._placeholder(node)
        if placeholder is not None:
            return placeholder
        return await self._read(node)

    def set_content(self, node_id: str, text: str) -> FileTreeNode:
        """Replace a file's content and mark it modified."""
        node = self._require_file(node_id)
        node.content = text
        node.is_content_loaded = True
        node.is_modified = True
        node.size = len(text.encode("utf-8"))
        return node

    async def persist(self, node_id: str) -> bool:
        """Write one file back to storage.

        Returns:
            True if written; False if the node is missing, a folder, has no
            storage behind it, or the write failed
        """
        node = self.find_by_id(node_id)
        if node is None or not node.is_file:
            return False
        if self.storage is None or node.storage_ref is None:
            logger.warning("No storage behind %s, cannot save it", node.path)
            return False

        try:
            await self.storage.write_text(node.storage_ref, node.content or "")
        except StorageError as e:
            logger.error("Failed to save %s: %s", node.path, e)
            return False

        node.is_modified = False
        logger.debug("Saved %s", node.path)
        return True

    async def persist_all(self) -> bool:
        """Write every modified file. True only if all of them were saved."""
        modified = self.modified_files()
        saved = 0
        for node in modified:
            if await self.persist(node.id):
                saved += 1

        if modified:
            logger.info("Saved %d of %d modified files", saved, len(modified))
        return saved == len(modified)

    async def collect_sources(
        self, max_file_bytes: int = DEFAULT_MAX_INDEX_BYTES
    ) -> list[SourceFile]:
        """Snapshot every file as chunker input, in traversal order.

        Non-text files are flagged binary and files above max_file_bytes are
        passed with their size only, so the chunker can emit placeholders.
        Files that cannot be read are passed as binary too, so they are still
        indexed as present but unreadable.
        """
        sources: list[SourceFile] = []
        for node in list(self.files()):
            if not is_text_file(node.name):
                sources.append(
                    SourceFile(
                        filename=node.name,
                        path=node.path,
                        text="",
                        binary=True,
                        size_bytes=node.size,
                    )
                )
                continue

            if node.is_content_loaded or self.storage is None or node.storage_ref is None:
                text = node.content or ""
            elif node.size is not None and node.size > max_file_bytes:
                sources.append(
                    SourceFile(
                        filename=node.name,
                        path=node.path,
                        text="",
                        size_bytes=node.size,
                    )
                )
                continue
            else:
                try:
                    text = await self._read(node)
                except StorageError as e:
                    logger.warning("Indexing %s as unreadable: %s", node.path, e)
                    sources.append(
                        SourceFile(
                            filename=node.name,
                            path=node.path,
                            text="",
                            binary=True,
                            size_bytes=node.size,
                        )
                    )
                    continue

            sources.append(SourceFile(filename=node.name, path=node.path, text=text))

        logger.info("Collected %d files from %s", len(sources), self.name)
        return sources
