"""Gemini language model using the Google Generative AI API.

Requires the google-genai package:
    pip install google-genai
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from codi.errors import GenerationError
from codi.llm.base import LanguageModel

logger = logging.getLogger(__name__)


class GeminiModel(LanguageModel):
    """Answer generation with Google Gemini."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.3,
    ):
        """Initialize the Gemini model.

        Args:
            api_key: Gemini API key. If None, reads from GEMINI_API_KEY env var.
            model: Gemini model to use.
            temperature: Sampling temperature.
        """
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._client: Any = None

    def _get_client(self) -> Any:
        """Get or create the Gemini client."""
        if self._client is not None:
            return self._client

        try:
            from google import genai
        except ImportError as e:
            raise ImportError(
                "google-genai package is required for Gemini. "
                "Install with: pip install google-genai"
            ) from e

        api_key = self._api_key or os.environ.get("GEMINI_API_KEY")
        if not api_key:
            raise ValueError(
                "Gemini API key not provided. "
                "Set GEMINI_API_KEY environment variable or pass api_key parameter."
            )

        self._client = genai.Client(api_key=api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        def _generate() -> str:
            from google.genai import types

            client = self._get_client()
            response = client.models.generate_content(
                model=self._model,
                contents=prompt,
                config=types.GenerateContentConfig(temperature=self._temperature),
            )
            return response.text or ""

        try:
            return await asyncio.to_thread(_generate)
        except Exception as e:
            logger.error("Gemini API error: %s", e)
            raise GenerationError(f"Gemini ({self._model}): {e}") from e

    def get_model_name(self) -> str:
        return self._model
