"""Configuration management for Codi.

Handles loading, saving, and validating configuration from TOML files.
Configuration is stored at ~/.codi/config.toml by default.

Example configuration:
    [llm]
    provider = "gemini"  # "gemini" | "ollama"
    temperature = 0.3

    [llm.gemini]
    api_key = "env:GEMINI_API_KEY"  # or direct key
    model = "gemini-2.0-flash"

    [llm.ollama]
    host = "http://localhost:11434"
    model = "llama3.2"

    [knowledge]
    embedding_provider = "sentence_transformers"
    embedding_model = "all-MiniLM-L6-v2"
    chunk_size = 1500
    chunk_overlap = 300
    top_k = 12

    [tree]
    excluded_folders = ["node_modules", ".git", "dist"]

    [server]
    host = "127.0.0.1"
    port = 3005
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

# Python 3.11+ has tomllib in stdlib (read-only)
# For Python 3.10, use the tomli package
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


class LLMProvider(Enum):
    """Available language model backends."""

    GEMINI = "gemini"
    OLLAMA = "ollama"


class EmbeddingBackend(Enum):
    """Available embedding backends."""

    SENTENCE_TRANSFORMERS = "sentence_transformers"
    OLLAMA = "ollama"
    GEMINI = "gemini"


# Folders skipped while materializing the tree
DEFAULT_EXCLUDED_FOLDERS: tuple[str, ...] = (
    "node_modules",
    "venv",
    "env",
    ".env",
    "__pycache__",
    ".git",
    ".vscode",
    ".idea",
    "dist",
    "build",
    "out",
    "target",
    "bin",
    "obj",
    ".next",
    ".nuxt",
    "vendor",
    "packages",
    "bower_components",
    ".gradle",
    ".maven",
    ".pytest_cache",
    ".coverage",
    ".nyc_output",
    "coverage",
    ".sass-cache",
    ".cache",
    ".tmp",
    "tmp",
    "temp",
)


@dataclass
class GeminiConfig:
    """Configuration for the Gemini language model."""

    api_key: str | None = None  # Can be "env:VAR_NAME" or direct key
    model: str = "gemini-2.0-flash"

    def get_api_key(self) -> str | None:
        """Get the actual API key, resolving env: prefix."""
        if not self.api_key:
            return os.environ.get("GEMINI_API_KEY")
        if self.api_key.startswith("env:"):
            return os.environ.get(self.api_key[4:])
        return self.api_key


@dataclass
class OllamaConfig:
    """Configuration for the Ollama language model."""

    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    timeout: int = 120  # seconds


@dataclass
class LLMConfig:
    """Configuration for answer generation."""

    provider: LLMProvider = LLMProvider.GEMINI
    temperature: float = 0.3
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)


@dataclass
class KnowledgeConfig:
    """Configuration for chunking, embedding and retrieval."""

    embedding_provider: EmbeddingBackend = EmbeddingBackend.SENTENCE_TRANSFORMERS
    embedding_model: str = "all-MiniLM-L6-v2"
    ollama_host: str = "http://localhost:11434"
    chunk_size: int = 1500
    chunk_overlap: int = 300
    max_index_file_bytes: int = 1024 * 1024
    top_k: int = 12
    batch_size: int = 32
    persist_directory: str = "~/.codi/chromadb"


@dataclass
class TreeConfig:
    """Configuration for the Virtual File Tree."""

    excluded_folders: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_FOLDERS))
    max_display_file_bytes: int = 10 * 1024 * 1024


@dataclass
class ServerConfig:
    """Configuration for the HTTP API."""

    host: str = "127.0.0.1"
    port: int = 3005


@dataclass
class CodiConfig:
    """Complete Codi configuration."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    knowledge: KnowledgeConfig = field(default_factory=KnowledgeConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def default(cls) -> CodiConfig:
        """Create default configuration."""
        return cls()


# Default configuration file paths
DEFAULT_CONFIG_DIR = Path.home() / ".codi"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"


def ensure_config_dir() -> Path:
    """Ensure the configuration directory exists."""
    DEFAULT_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    return DEFAULT_CONFIG_DIR


def _enum_value(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    try:
        return enum_cls(raw)
    except ValueError:
        return default


def _parse_llm_config(data: dict[str, Any]) -> LLMConfig:
    """Parse language model configuration from dict."""
    gemini_data = data.get("gemini", {})
    ollama_data = data.get("ollama", {})

    return LLMConfig(
        provider=_enum_value(LLMProvider, data.get("provider", "gemini"), LLMProvider.GEMINI),
        temperature=data.get("temperature", 0.3),
        gemini=GeminiConfig(
            api_key=gemini_data.get("api_key"),
            model=gemini_data.get("model", "gemini-2.0-flash"),
        ),
        ollama=OllamaConfig(
            host=ollama_data.get("host", "http://localhost:11434"),
            model=ollama_data.get("model", "llama3.2"),
            timeout=ollama_data.get("timeout", 120),
        ),
    )


def _parse_knowledge_config(data: dict[str, Any]) -> KnowledgeConfig:
    """Parse knowledge configuration from dict."""
    defaults = KnowledgeConfig()
    return KnowledgeConfig(
        embedding_provider=_enum_value(
            EmbeddingBackend,
            data.get("embedding_provider", defaults.embedding_provider.value),
            defaults.embedding_provider,
        ),
        embedding_model=data.get("embedding_model", defaults.embedding_model),
        ollama_host=data.get("ollama_host", defaults.ollama_host),
        chunk_size=data.get("chunk_size", defaults.chunk_size),
        chunk_overlap=data.get("chunk_overlap", defaults.chunk_overlap),
        max_index_file_bytes=data.get("max_index_file_bytes", defaults.max_index_file_bytes),
        top_k=data.get("top_k", defaults.top_k),
        batch_size=data.get("batch_size", defaults.batch_size),
        persist_directory=data.get("persist_directory", defaults.persist_directory),
    )


def _parse_tree_config(data: dict[str, Any]) -> TreeConfig:
    """Parse tree configuration from dict."""
    return TreeConfig(
        excluded_folders=data.get("excluded_folders", list(DEFAULT_EXCLUDED_FOLDERS)),
        max_display_file_bytes=data.get("max_display_file_bytes", 10 * 1024 * 1024),
    )


def _parse_server_config(data: dict[str, Any]) -> ServerConfig:
    return ServerConfig(
        host=data.get("host", "127.0.0.1"),
        port=data.get("port", 3005),
    )


def load_config(config_path: Path | None = None) -> CodiConfig:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config file. Uses default if not provided.

    Returns:
        Loaded configuration, or default if file doesn't exist.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        return CodiConfig.default()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        import warnings

        warnings.warn(f"Failed to load config from {path}: {e}")
        return CodiConfig.default()

    return CodiConfig(
        llm=_parse_llm_config(data.get("llm", {})),
        knowledge=_parse_knowledge_config(data.get("knowledge", {})),
        tree=_parse_tree_config(data.get("tree", {})),
        server=_parse_server_config(data.get("server", {})),
    )


def _format_toml_value(value: Any) -> str:
    """Format a Python value as TOML."""
    if isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, (list, tuple)):
        items = [_format_toml_value(item) for item in value]
        return "[" + ", ".join(items) + "]"
    elif isinstance(value, Enum):
        return f'"{value.value}"'
    else:
        return f'"{value}"'


def save_config(config: CodiConfig, config_path: Path | None = None) -> None:
    """Save configuration to TOML file.

    Args:
        config: Configuration to save
        config_path: Path to config file. Uses default if not provided.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "# Codi Configuration",
        "# Generated by codi config command",
        "",
        "[llm]",
        f"provider = {_format_toml_value(config.llm.provider)}",
        f"temperature = {config.llm.temperature}",
        "",
        "[llm.gemini]",
    ]

    if config.llm.gemini.api_key:
        lines.append(f"api_key = {_format_toml_value(config.llm.gemini.api_key)}")
    else:
        lines.append('# api_key = "env:GEMINI_API_KEY"  # or your API key directly')

    knowledge = config.knowledge
    lines.extend(
        [
            f"model = {_format_toml_value(config.llm.gemini.model)}",
            "",
            "[llm.ollama]",
            f"host = {_format_toml_value(config.llm.ollama.host)}",
            f"model = {_format_toml_value(config.llm.ollama.model)}",
            f"timeout = {config.llm.ollama.timeout}",
            "",
            "[knowledge]",
            f"embedding_provider = {_format_toml_value(knowledge.embedding_provider)}",
            f"embedding_model = {_format_toml_value(knowledge.embedding_model)}",
            f"ollama_host = {_format_toml_value(knowledge.ollama_host)}",
            f"chunk_size = {knowledge.chunk_size}",
            f"chunk_overlap = {knowledge.chunk_overlap}",
            f"max_index_file_bytes = {knowledge.max_index_file_bytes}",
            f"top_k = {knowledge.top_k}",
            f"batch_size = {knowledge.batch_size}",
            f"persist_directory = {_format_toml_value(knowledge.persist_directory)}",
            "",
            "[tree]",
            f"excluded_folders = {_format_toml_value(config.tree.excluded_folders)}",
            f"max_display_file_bytes = {config.tree.max_display_file_bytes}",
            "",
            "[server]",
            f"host = {_format_toml_value(config.server.host)}",
            f"port = {config.server.port}",
            "",
        ]
    )

    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))


def generate_default_config() -> str:
    """Generate default configuration as TOML string."""
    return """# Codi Configuration
# Copy this file to ~/.codi/config.toml and customize

[llm]
# Answer generation backend: "gemini" (default) or "ollama"
provider = "gemini"
temperature = 0.3

[llm.gemini]
# Gemini API key - use "env:VAR_NAME" to read from environment
# api_key = "env:GEMINI_API_KEY"
model = "gemini-2.0-flash"

[llm.ollama]
host = "http://localhost:11434"
# Model to use (must be pulled first: ollama pull <model>)
model = "llama3.2"
# Request timeout in seconds
timeout = 120

[knowledge]
# Embedding backend: "sentence_transformers", "ollama", or "gemini"
# Re-index after changing it: vectors from different models do not compare
embedding_provider = "sentence_transformers"
embedding_model = "all-MiniLM-L6-v2"
ollama_host = "http://localhost:11434"

# Chunk size and overlap in characters
chunk_size = 1500
chunk_overlap = 300

# Files above this size are indexed as a placeholder
max_index_file_bytes = 1048576

# Chunks retrieved per question
top_k = 12
batch_size = 32
persist_directory = "~/.codi/chromadb"

[tree]
# Folder names skipped when opening a project (case-insensitive)
excluded_folders = ["node_modules", "venv", "env", ".env", "__pycache__", ".git", "dist", "build", "target", ".cache"]
max_display_file_bytes = 10485760

[server]
host = "127.0.0.1"
port = 3005
"""


# Global config instance (lazy loaded)
_config: CodiConfig | None = None


def get_config() -> CodiConfig:
    """Get the global configuration instance.

    Loads from file on first call, caches thereafter.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: CodiConfig) -> None:
    """Set the global configuration instance.

    Useful for testing or programmatic configuration.
    """
    global _config
    _config = config
