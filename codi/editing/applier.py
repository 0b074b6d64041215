"""Edit applier - writes parsed edits into the Virtual File Tree.

An edit targets the first file whose path equals its filename; failing
that, the first file whose name equals it. Both searches run in the tree's
pre-order, so the choice is deterministic. All writes go through
`VirtualFileTree.set_content`, the same entry point used for user edits.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from codi.editing.types import ApplyResult, BatchApplyResult, EditBlock
from codi.tree.node import FileTreeNode
from codi.tree.virtual_tree import VirtualFileTree

logger = logging.getLogger(__name__)


def _normalize(filename: str) -> str:
    name = filename.strip()
    while name.startswith("./"):
        name = name[2:]
    return name.lstrip("/")


def find_target(tree: VirtualFileTree, filename: str) -> FileTreeNode | None:
    """Resolve an edit filename to a file node, or None."""
    wanted = _normalize(filename)
    if not wanted:
        return None

    by_name: FileTreeNode | None = None
    for node in tree.walk():
        if not node.is_file:
            continue
        if node.path == wanted:
            return node
        if by_name is None and node.name == wanted:
            by_name = node
    return by_name


def apply(tree: VirtualFileTree, edit: EditBlock) -> ApplyResult:
    """Apply one edit to the tree.

    Returns:
        ApplyResult. Failure leaves both the tree and the edit untouched.
    """
    if edit.applied:
        return ApplyResult(
            edit=edit,
            success=True,
            already_applied=True,
            message=f"Edit for {edit.filename} was already applied",
        )

    target = find_target(tree, edit.filename)
    if target is None:
        logger.warning("No file matches edit target %s", edit.filename)
        return ApplyResult(
            edit=edit,
            success=False,
            message=f"No file named {edit.filename} in the tree",
        )

    tree.set_content(target.id, edit.content)
    edit.mark_applied()
    logger.info("Applied edit to %s", target.path)
    return ApplyResult(
        edit=edit,
        success=True,
        node_id=target.id,
        path=target.path,
        message=f"Updated {target.path}",
    )


def apply_all(tree: VirtualFileTree, edits: Iterable[EditBlock]) -> BatchApplyResult:
    """Apply edits in order; each one succeeds or fails on its own."""
    batch = BatchApplyResult()
    for edit in edits:
        batch.results.append(apply(tree, edit))

    if batch.failed:
        logger.info(
            "Applied %d of %d edits (%d failed)",
            len(batch.applied),
            len(batch),
            len(batch.failed),
        )
    return batch
