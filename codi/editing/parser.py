"""Response parser for language-model answers.

Answers may embed whole-file edits:

    ###edit:src/app.py
    <complete file content>
    ###edit

When the content itself contains a line that is exactly `###edit`, the
opening line can announce the number of content lines instead:

    ###edit[3]:notes.md
    line one
    ###edit
    line three
    ###edit

Every well-formed block becomes an EditBlock and is removed from the text;
whatever remains, trimmed, is the explanation. A malformed opening line
(blank filename, no closing line, or a second opening before the close) is
kept in the explanation as plain text. Parsing never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from codi.editing.types import EditBlock

logger = logging.getLogger(__name__)

OPEN_MARKER = re.compile(r"^###edit(?:\[(\d+)\])?:(.*)$")
CLOSE_MARKER = "###edit"


@dataclass
class ParsedResponse:
    """A language-model answer split into prose and edits."""

    explanation: str
    edits: list[EditBlock] = field(default_factory=list)

    @property
    def has_edits(self) -> bool:
        return bool(self.edits)


def _marker_text(line: str) -> str:
    return line.rstrip("\r\n").strip()


def _is_close(line: str) -> bool:
    return _marker_text(line) == CLOSE_MARKER


def _match_open(line: str) -> re.Match[str] | None:
    return OPEN_MARKER.match(_marker_text(line))


def _find_block_end(lines: list[str], start: int, count: int | None) -> int | None:
    """Index of the closing line for a block whose content starts at `start`."""
    if count is not None:
        close = start + count
        if close < len(lines) and _is_close(lines[close]):
            return close
        return None

    for index in range(start, len(lines)):
        if _is_close(lines[index]):
            return index
        if _match_open(lines[index]):
            return None
    return None


def parse(raw: str) -> ParsedResponse:
    """Split a raw answer into explanation text and edit blocks.

    Args:
        raw: The language model's answer

    Returns:
        ParsedResponse with edits in the order they appear. Duplicate
        filenames are all kept.
    """
    lines = (raw or "").splitlines(keepends=True)
    kept: list[str] = []
    edits: list[EditBlock] = []

    index = 0
    while index < len(lines):
        line = lines[index]
        match = _match_open(line)
        if match is None:
            kept.append(line)
            index += 1
            continue

        filename = match.group(2).strip()
        count = int(match.group(1)) if match.group(1) is not None else None
        end = _find_block_end(lines, index + 1, count) if filename else None

        if end is None:
            logger.debug("Leaving malformed edit marker in text: %r", _marker_text(line))
            kept.append(line)
            index += 1
            continue

        body = "".join(lines[index + 1 : end])
        # Counted bodies keep their whitespace; only the final line break goes.
        content = body.removesuffix("\n").removesuffix("\r") if count is not None else body.strip()
        edits.append(EditBlock(filename=filename, content=content))
        index = end + 1

    if edits:
        logger.debug("Parsed %d edit blocks", len(edits))
    return ParsedResponse(explanation="".join(kept).strip(), edits=edits)
