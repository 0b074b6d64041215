"""Language and text-file detection by file name."""

from __future__ import annotations

from pathlib import PurePosixPath

# File extension to language mapping
EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "bash",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".json": "json",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".md": "markdown",
    ".txt": "text",
    ".sql": "sql",
    ".vue": "vue",
    ".svelte": "svelte",
}

# Extensions read as text even when they have no language entry
TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {
        "fish", "ps1", "bat", "cmd", "r", "less", "styl", "stylus",
        "ini", "cfg", "conf", "properties", "env", "log", "lock", "config",
        "dockerfile", "makefile", "gitignore", "gitattributes", "editorconfig",
        "eslintrc", "prettierrc", "babelrc",
    }
    | {ext.lstrip(".") for ext in EXTENSION_TO_LANGUAGE}
)

# Names that mark documentation files regardless of extension
_TEXT_NAME_HINTS = ("readme", "license", "changelog")

# Line-comment prefix per language, used for placeholder chunks
_COMMENT_STYLES: dict[str, tuple[str, str]] = {
    "python": ("# ", ""),
    "ruby": ("# ", ""),
    "bash": ("# ", ""),
    "yaml": ("# ", ""),
    "toml": ("# ", ""),
    "r": ("# ", ""),
    "sql": ("-- ", ""),
    "html": ("<!-- ", " -->"),
    "xml": ("<!-- ", " -->"),
    "markdown": ("<!-- ", " -->"),
    "css": ("/* ", " */"),
}


def _extension(filename: str) -> str:
    name = PurePosixPath(filename).name.lower()
    if "." not in name:
        return name
    return name.rsplit(".", 1)[1]


def detect_language(filename: str) -> str:
    """Return the language for a file name, or "text" when unknown."""
    suffix = PurePosixPath(filename).suffix.lower()
    return EXTENSION_TO_LANGUAGE.get(suffix, "text")


def is_text_file(filename: str) -> bool:
    """Check whether a file should be read as text."""
    lower = PurePosixPath(filename).name.lower()
    if any(hint in lower for hint in _TEXT_NAME_HINTS):
        return True
    return _extension(filename) in TEXT_EXTENSIONS


def comment(language: str, text: str) -> str:
    """Wrap text in a single-line comment of the given language."""
    prefix, suffix = _COMMENT_STYLES.get(language, ("// ", ""))
    return f"{prefix}{text}{suffix}"
