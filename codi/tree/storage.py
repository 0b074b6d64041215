"""Storage backends for the Virtual File Tree.

A backend hands out opaque references for entries; the tree stores them on
its nodes and passes them back for every read and write. `LocalStorage`
uses filesystem paths as references.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from codi.errors import StorageError
from codi.tree.node import NodeKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEntry:
    """One directory entry reported by a backend."""

    name: str
    kind: NodeKind
    ref: Any
    size: int | None = None


class StorageBackend(ABC):
    """Abstract base class for tree storage.

    Implementations raise StorageError when an entry cannot be accessed.
    """

    @abstractmethod
    def display_name(self, ref: Any) -> str:
        """Name of the entry behind a reference."""
        ...

    @abstractmethod
    async def enumerate(self, ref: Any) -> list[StorageEntry]:
        """List the direct entries of a directory."""
        ...

    @abstractmethod
    async def read_text(self, ref: Any) -> str:
        ...

    @abstractmethod
    async def write_text(self, ref: Any, text: str) -> None:
        ...

    @abstractmethod
    async def create_file(self, parent_ref: Any, name: str, text: str = "") -> Any:
        """Create a file and return its reference.

        Raises StorageError if an entry with that name already exists.
        """
        ...

    @abstractmethod
    async def create_directory(self, parent_ref: Any, name: str) -> Any:
        """Create a directory and return its reference.

        Raises StorageError if an entry with that name already exists.
        """
        ...

    @abstractmethod
    async def remove(self, ref: Any) -> None:
        """Remove an entry; directories are removed recursively."""
        ...


class LocalStorage(StorageBackend):
    """Storage on the local filesystem. References are `Path` objects."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def display_name(self, ref: Any) -> str:
        return Path(ref).name

    async def enumerate(self, ref: Any) -> list[StorageEntry]:
        def _scan() -> list[StorageEntry]:
            entries = []
            for child in Path(ref).iterdir():
                if child.is_symlink():
                    continue
                if child.is_dir():
                    entries.append(StorageEntry(child.name, NodeKind.FOLDER, child))
                elif child.is_file():
                    size = child.stat().st_size
                    entries.append(StorageEntry(child.name, NodeKind.FILE, child, size))
            return entries

        try:
            return await asyncio.to_thread(_scan)
        except OSError as e:
            raise StorageError(f"Cannot list {ref}: {e}") from e

    async def read_text(self, ref: Any) -> str:
        try:
            return await asyncio.to_thread(Path(ref).read_text, encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read {ref}: {e}") from e

    async def write_text(self, ref: Any, text: str) -> None:
        try:
            await asyncio.to_thread(Path(ref).write_text, text, encoding=self.encoding)
        except OSError as e:
            raise StorageError(f"Cannot write {ref}: {e}") from e
        logger.debug("Wrote %s", ref)

    async def create_file(self, parent_ref: Any, name: str, text: str = "") -> Any:
        target = Path(parent_ref) / name

        def _create() -> None:
            # "x" refuses entries the tree never loaded, such as symlinks
            with target.open("x", encoding=self.encoding) as handle:
                handle.write(text)

        try:
            await asyncio.to_thread(_create)
        except FileExistsError as e:
            raise StorageError(f"{target} already exists") from e
        except OSError as e:
            raise StorageError(f"Cannot create {target}: {e}") from e
        return target

    async def create_directory(self, parent_ref: Any, name: str) -> Any:
        target = Path(parent_ref) / name
        try:
            await asyncio.to_thread(target.mkdir, parents=False, exist_ok=False)
        except FileExistsError as e:
            raise StorageError(f"{target} already exists") from e
        except OSError as e:
            raise StorageError(f"Cannot create {target}: {e}") from e
        return target

    async def remove(self, ref: Any) -> None:
        target = Path(ref)

        def _remove() -> None:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()

        try:
            await asyncio.to_thread(_remove)
        except OSError as e:
            raise StorageError(f"Cannot remove {target}: {e}") from e
        logger.debug("Removed %s", target)
