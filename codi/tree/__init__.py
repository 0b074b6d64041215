"""Virtual File Tree and its storage backends."""

from codi.tree.node import FileTreeNode, NodeKind
from codi.tree.storage import LocalStorage, StorageBackend, StorageEntry
from codi.tree.virtual_tree import VirtualFileTree

__all__ = [
    "FileTreeNode",
    "NodeKind",
    "StorageBackend",
    "StorageEntry",
    "LocalStorage",
    "VirtualFileTree",
]
