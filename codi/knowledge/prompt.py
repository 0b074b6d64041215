"""Prompt assembly for codebase questions.

`assemble` is a pure function: the same inputs always produce the same
prompt string.
"""

from __future__ import annotations

from collections.abc import Iterable

from codi.knowledge.chunker import Chunk
from codi.knowledge.retriever import RetrievedChunk

SYSTEM_INSTRUCTION = """You are an AI-powered code editor assistant with access to the complete codebase context. Your role is to analyze code, understand requirements, and provide intelligent responses.

INSTRUCTIONS:
1. Analyze the user's query and the provided code context thoroughly
2. If the query requires code changes/edits to any file:
   - Provide the complete edited file content
   - Wrap the edited file with ###edit tags at the start and end
   - Format: ###edit:filename.ext at the beginning and ###edit at the end
   - Include the ENTIRE file content, not just the changed parts
   - Ensure all imports, dependencies, and existing functionality remain intact
3. Always provide a human-readable explanation of what was done or analyzed
4. If no code changes are needed, provide only the text response
5. Be precise and ensure code changes are syntactically correct
6. Consider the relationships between files when making changes
7. If the user mentions a specific filename that is currently open, prioritize that file for edits
8. Maintain code formatting, comments, and structure

RESPONSE FORMAT:
- If editing is required:
  ###edit:filename.ext
  [complete file content with all imports, functions, and existing code]
  ###edit

  [Human readable explanation of changes made]

- If no editing is required:
  [Human readable explanation only]

- If the file content itself contains a line that is exactly "###edit", announce the
  number of content lines instead: ###edit[<line count>]:filename.ext, followed by exactly
  that many lines of content and then ###edit

IMPORTANT: When editing files, always include the complete file content to ensure nothing is lost or broken.

Remember: You have access to the complete codebase context, so consider file dependencies and relationships when making changes."""


def format_context(chunks: Iterable[Chunk | RetrievedChunk]) -> str:
    """Render retrieved chunks as the context block, one entry per chunk."""
    entries = []
    for item in chunks:
        chunk = item.chunk if isinstance(item, RetrievedChunk) else item
        entries.append(f"File: {chunk.filename}\n{chunk.content}")
    return "\n\n".join(entries)


def assemble(
    system_instruction: str,
    chunks: Iterable[Chunk | RetrievedChunk],
    current_file: str | None,
    question: str,
) -> str:
    """Build the prompt sent to the language model.

    Args:
        system_instruction: Policy text placed first
        chunks: Retrieved context, in retrieval order
        current_file: Name of the file open in the editor, if any
        question: The user's question

    Returns:
        The prompt text
    """
    sections = [
        system_instruction,
        f"Context from codebase:\n{format_context(chunks)}",
    ]
    if current_file:
        sections.append(f"Currently opened file: {current_file}")
    sections.append(f"User Query: {question}")
    sections.append("Response:")
    return "\n\n".join(sections)
