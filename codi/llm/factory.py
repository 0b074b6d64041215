"""Language model factory.

Usage:
    from codi.config import get_config
    from codi.llm import create_language_model

    model = create_language_model(get_config().llm)
"""

from __future__ import annotations

import logging
from typing import Any

from codi.config import LLMConfig, LLMProvider
from codi.llm.base import LanguageModel

logger = logging.getLogger(__name__)


def create_language_model(llm_config: LLMConfig | None = None) -> LanguageModel:
    """Create a language model from configuration.

    Args:
        llm_config: LLM configuration section

    Returns:
        Configured LanguageModel instance
    """
    llm_config = llm_config or LLMConfig()

    match llm_config.provider:
        case LLMProvider.OLLAMA:
            from codi.llm.ollama import OllamaModel

            return OllamaModel(
                host=llm_config.ollama.host,
                model=llm_config.ollama.model,
                temperature=llm_config.temperature,
                timeout=llm_config.ollama.timeout,
            )

        case _:
            from codi.llm.gemini import GeminiModel

            return GeminiModel(
                api_key=llm_config.gemini.get_api_key(),
                model=llm_config.gemini.model,
                temperature=llm_config.temperature,
            )


def get_llm_status(llm_config: LLMConfig) -> dict[str, Any]:
    """Describe whether the configured language model can be used.

    Returns:
        Dict with provider, available, message and details
    """
    result: dict[str, Any] = {
        "provider": llm_config.provider.value,
        "available": False,
        "message": "",
        "details": {},
    }

    if llm_config.provider is LLMProvider.GEMINI:
        if llm_config.gemini.get_api_key():
            result["available"] = True
            result["message"] = "Gemini is configured"
            result["details"] = {"model": llm_config.gemini.model, "api_key_set": True}
        else:
            result["message"] = "Gemini API key not set"
            result["details"] = {
                "model": llm_config.gemini.model,
                "api_key_set": False,
                "hint": "Set GEMINI_API_KEY environment variable or configure in config.toml",
            }

    elif llm_config.provider is LLMProvider.OLLAMA:
        try:
            from codi.llm.ollama import check_ollama_available

            available, message = check_ollama_available(llm_config.ollama.host)
        except ImportError:
            result["message"] = "ollama package not installed"
            result["details"] = {"hint": "Install with: pip install ollama"}
            return result

        result["available"] = available
        result["message"] = message
        result["details"] = {"host": llm_config.ollama.host, "model": llm_config.ollama.model}
        if not available:
            result["details"]["hint"] = "Start Ollama with: ollama serve"

    return result
