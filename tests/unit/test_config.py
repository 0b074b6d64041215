"""Unit tests for configuration module."""

from __future__ import annotations

import sys
import tempfile
from pathlib import Path

import pytest

from codi.config import (
    DEFAULT_EXCLUDED_FOLDERS,
    CodiConfig,
    EmbeddingBackend,
    GeminiConfig,
    KnowledgeConfig,
    LLMConfig,
    LLMProvider,
    OllamaConfig,
    ServerConfig,
    TreeConfig,
    generate_default_config,
    get_config,
    load_config,
    save_config,
    set_config,
)

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


class TestEnums:
    """Tests for provider enums."""

    def test_llm_provider_values(self):
        assert LLMProvider("gemini") == LLMProvider.GEMINI
        assert LLMProvider("ollama") == LLMProvider.OLLAMA

    def test_embedding_backend_values(self):
        assert EmbeddingBackend.SENTENCE_TRANSFORMERS.value == "sentence_transformers"
        assert EmbeddingBackend("gemini") == EmbeddingBackend.GEMINI


class TestGeminiConfig:
    """Tests for GeminiConfig."""

    def test_default_values(self):
        """Test default configuration values."""
        config = GeminiConfig()
        assert config.api_key is None
        assert config.model == "gemini-2.0-flash"

    def test_get_api_key_direct(self):
        """Test getting API key when set directly."""
        config = GeminiConfig(api_key="test-key")
        assert config.get_api_key() == "test-key"

    def test_get_api_key_from_env(self, monkeypatch):
        """Test getting API key from environment variable."""
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        config = GeminiConfig()
        assert config.get_api_key() == "env-key"

    def test_get_api_key_env_prefix(self, monkeypatch):
        """Test getting API key with env: prefix."""
        monkeypatch.setenv("MY_CUSTOM_KEY", "custom-key")
        config = GeminiConfig(api_key="env:MY_CUSTOM_KEY")
        assert config.get_api_key() == "custom-key"

    def test_get_api_key_missing_env(self, monkeypatch):
        """Test getting API key when env var is not set."""
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        config = GeminiConfig(api_key="env:NONEXISTENT_VAR")
        assert config.get_api_key() is None


class TestDefaults:
    """Tests for default section values."""

    def test_llm_defaults(self):
        config = LLMConfig()
        assert config.provider == LLMProvider.GEMINI
        assert config.temperature == 0.3
        assert isinstance(config.ollama, OllamaConfig)
        assert config.ollama.model == "llama3.2"

    def test_knowledge_defaults(self):
        config = KnowledgeConfig()
        assert config.chunk_size == 1500
        assert config.chunk_overlap == 300
        assert config.top_k == 12
        assert config.max_index_file_bytes == 1024 * 1024

    def test_tree_defaults(self):
        config = TreeConfig()
        assert "node_modules" in config.excluded_folders
        assert ".git" in config.excluded_folders
        assert config.max_display_file_bytes == 10 * 1024 * 1024

    def test_tree_defaults_not_shared(self):
        """Test that each config gets its own exclusion list."""
        a = TreeConfig()
        a.excluded_folders.append("extra")
        assert "extra" not in TreeConfig().excluded_folders

    def test_server_defaults(self):
        config = ServerConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 3005


class TestLoadConfig:
    """Tests for loading configuration."""

    def test_load_nonexistent_file(self):
        """Test loading from nonexistent file returns defaults."""
        config = load_config(Path("/nonexistent/path/config.toml"))
        assert config.llm.provider == LLMProvider.GEMINI
        assert config.knowledge.top_k == 12

    def test_load_partial_file(self):
        """Test that missing keys fall back to defaults."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".toml", delete=False) as f:
            f.write(
                "[llm]\n"
                'provider = "ollama"\n'
                "\n"
                "[llm.ollama]\n"
                'model = "codellama"\n'
                "\n"
                "[knowledge]\n"
                "top_k = 5\n"
                'embedding_provider = "ollama"\n'
                "\n"
                "[tree]\n"
                'excluded_folders = ["dist"]\n'
                "\n"
                "[server]\n"
                "port = 8080\n"
            )
            path = Path(f.name)

        try:
            config = load_config(path)
        finally:
            path.unlink()

        assert config.llm.provider == LLMProvider.OLLAMA
        assert config.llm.ollama.model == "codellama"
        assert config.llm.ollama.host == "http://localhost:11434"
        assert config.knowledge.top_k == 5
        assert config.knowledge.embedding_provider == EmbeddingBackend.OLLAMA
        assert config.knowledge.chunk_size == 1500
        assert config.tree.excluded_folders == ["dist"]
        assert config.server.port == 8080

    def test_unknown_provider_falls_back(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[llm]\nprovider = "gpt"\n')

        assert load_config(path).llm.provider == LLMProvider.GEMINI

    def test_invalid_toml_warns(self, tmp_path):
        """Test that a broken file warns and yields defaults."""
        path = tmp_path / "config.toml"
        path.write_text("[llm\nprovider = ")

        with pytest.warns(UserWarning):
            config = load_config(path)

        assert config.llm.provider == LLMProvider.GEMINI


class TestSaveConfig:
    """Tests for saving configuration."""

    def test_round_trip(self, tmp_path):
        """Test that a saved configuration loads back unchanged."""
        config = CodiConfig(
            llm=LLMConfig(
                provider=LLMProvider.OLLAMA,
                temperature=0.5,
                gemini=GeminiConfig(api_key="env:MY_KEY"),
            ),
            knowledge=KnowledgeConfig(
                embedding_provider=EmbeddingBackend.GEMINI,
                chunk_size=800,
                chunk_overlap=100,
            ),
            tree=TreeConfig(excluded_folders=["dist", "out"]),
            server=ServerConfig(port=9000),
        )
        path = tmp_path / "nested" / "config.toml"

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.llm.provider == LLMProvider.OLLAMA
        assert loaded.llm.temperature == 0.5
        assert loaded.llm.gemini.api_key == "env:MY_KEY"
        assert loaded.knowledge.embedding_provider == EmbeddingBackend.GEMINI
        assert loaded.knowledge.chunk_size == 800
        assert loaded.tree.excluded_folders == ["dist", "out"]
        assert loaded.server.port == 9000

    def test_no_api_key_written_as_comment(self, tmp_path):
        path = tmp_path / "config.toml"
        save_config(CodiConfig.default(), path)

        text = path.read_text()

        assert '# api_key = "env:GEMINI_API_KEY"' in text
        assert load_config(path).llm.gemini.api_key is None


class TestGenerateDefaultConfig:
    def test_is_valid_toml(self):
        """Test that the generated template parses and matches defaults."""
        data = tomllib.loads(generate_default_config())

        assert data["llm"]["provider"] == "gemini"
        assert data["knowledge"]["chunk_size"] == KnowledgeConfig().chunk_size
        assert data["server"]["port"] == ServerConfig().port
        assert set(data["tree"]["excluded_folders"]) <= set(DEFAULT_EXCLUDED_FOLDERS)


class TestGlobalConfig:
    def test_set_and_get(self):
        original = get_config()
        custom = CodiConfig(server=ServerConfig(port=1234))
        try:
            set_config(custom)
            assert get_config() is custom
        finally:
            set_config(original)
