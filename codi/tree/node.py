"""File tree node."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from codi.errors import InvalidNodeError


class NodeKind(Enum):
    FILE = "file"
    FOLDER = "folder"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class FileTreeNode:
    """One file or folder of the Virtual File Tree.

    Folders hold `children` and never content; files hold `content` and never
    children. `path` is the slash-joined ancestry below the tree root (the
    root itself has path ""). Nodes keep no reference to their parent.

    Attributes:
        name: Base name
        kind: File or folder
        path: Path from the tree root
        content: File text; meaningful once is_content_loaded is True
        children: Child nodes, folders only
        is_content_loaded: True once content was read from storage or set
        is_modified: True when content differs from what storage holds
        storage_ref: Storage handle owned by this node
        size: Size in bytes reported by storage, if known
        id: Unique, immutable identifier
    """

    name: str
    kind: NodeKind
    path: str = ""
    content: str | None = None
    children: list[FileTreeNode] | None = None
    is_content_loaded: bool = False
    is_modified: bool = False
    storage_ref: Any = None
    size: int | None = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        if self.kind is NodeKind.FOLDER:
            if self.content is not None:
                raise InvalidNodeError(f"Folder {self.name!r} cannot hold content")
            if self.children is None:
                self.children = []
        else:
            if self.children is not None:
                raise InvalidNodeError(f"File {self.name!r} cannot hold children")
            if self.content is None:
                self.content = ""

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("FileTreeNode.id is immutable")
        super().__setattr__(name, value)

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    def child(self, name: str) -> FileTreeNode | None:
        """Direct child with the given name."""
        for node in self.children or []:
            if node.name == name:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "path": self.path,
        }
        if self.is_folder:
            data["children"] = [child.to_dict() for child in self.children or []]
        else:
            data["is_content_loaded"] = self.is_content_loaded
            data["is_modified"] = self.is_modified
            data["size"] = self.size
        return data
