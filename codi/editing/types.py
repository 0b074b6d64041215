"""Types shared by the response parser and the edit applier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class EditBlock:
    """A whole-file replacement proposed by the language model.

    `filename` and `content` are fixed once set. `applied` starts False and
    can only move to True, through `mark_applied()`.

    Attributes:
        filename: Name or path of the target file
        content: Replacement content
        applied: Whether the edit has been written into the tree
    """

    filename: str
    content: str
    applied: bool = False

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("filename", "content") and name in self.__dict__:
            raise AttributeError(f"EditBlock.{name} is read-only")
        if name == "applied" and self.__dict__.get("applied") and not value:
            raise AttributeError("EditBlock.applied cannot be reset")
        super().__setattr__(name, value)

    def mark_applied(self) -> None:
        self.applied = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "content": self.content,
            "applied": self.applied,
        }


@dataclass
class ApplyResult:
    """Outcome of applying one edit.

    Attributes:
        edit: The edit that was applied
        success: True if the target exists (or the edit was already applied)
        node_id: Id of the node that was written, if any
        path: Path of the node that was written, if any
        already_applied: True if nothing was done because the edit was applied before
        message: Human-readable outcome
    """

    edit: EditBlock
    success: bool
    node_id: str | None = None
    path: str | None = None
    already_applied: bool = False
    message: str = ""


@dataclass
class BatchApplyResult:
    """Outcomes of applying a list of edits, in input order."""

    results: list[ApplyResult] = field(default_factory=list)

    @property
    def applied(self) -> list[ApplyResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[ApplyResult]:
        return [r for r in self.results if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    def __len__(self) -> int:
        return len(self.results)
