"""Ollama language model for local answer generation.

Requires a running server with the model pulled:
    ollama serve
    ollama pull llama3.2
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from codi.errors import GenerationError
from codi.llm.base import LanguageModel

logger = logging.getLogger(__name__)


def _get_ollama():
    try:
        import ollama
    except ImportError as e:
        raise ImportError(
            "ollama package is required for Ollama. Install with: pip install ollama"
        ) from e
    return ollama


def check_ollama_available(host: str = "http://localhost:11434") -> tuple[bool, str]:
    """Check whether an Ollama server answers at host.

    Returns:
        (available, message)
    """
    ollama = _get_ollama()
    try:
        ollama.Client(host=host).list()
    except Exception as e:
        return False, f"Ollama not reachable at {host}: {e}"
    return True, f"Ollama is running at {host}"


class OllamaModel(LanguageModel):
    """Answer generation with a local Ollama model."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.2",
        temperature: float = 0.3,
        timeout: int = 120,
    ):
        self._host = host
        self._model = model
        self._temperature = temperature
        self._timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = _get_ollama().Client(host=self._host, timeout=self._timeout)
        return self._client

    async def generate(self, prompt: str) -> str:
        def _generate() -> str:
            response = self._get_client().generate(
                model=self._model,
                prompt=prompt,
                options={"temperature": self._temperature},
            )
            return response["response"] or ""

        try:
            return await asyncio.to_thread(_generate)
        except Exception as e:
            logger.error("Ollama error: %s", e)
            raise GenerationError(f"Ollama ({self._model}): {e}") from e

    def get_model_name(self) -> str:
        return self._model
