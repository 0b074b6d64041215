"""Language models for answer generation.

Available backends:
    - GeminiModel: Google Gemini API (requires google-genai package)
    - OllamaModel: Local LLM via Ollama (requires ollama package)
"""

from codi.llm.base import LanguageModel
from codi.llm.factory import create_language_model, get_llm_status

__all__ = [
    "LanguageModel",
    "create_language_model",
    "get_llm_status",
]
