"""Edit protocol - parsing edit blocks out of answers and applying them.

Usage:
    from codi.editing import apply_all, parse

    parsed = parse(answer)
    results = apply_all(tree, parsed.edits)
"""

from codi.editing.applier import apply, apply_all, find_target
from codi.editing.parser import ParsedResponse, parse
from codi.editing.types import ApplyResult, BatchApplyResult, EditBlock

__all__ = [
    "EditBlock",
    "ApplyResult",
    "BatchApplyResult",
    "ParsedResponse",
    "parse",
    "apply",
    "apply_all",
    "find_target",
]
