"""Language model interface.

A language model turns an assembled prompt into answer text. Backends wrap
every client failure in GenerationError.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class LanguageModel(ABC):
    """Abstract base class for answer generation backends."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate an answer for the prompt.

        Raises:
            GenerationError: If the backend call fails
        """
        ...

    @abstractmethod
    def get_model_name(self) -> str:
        ...

    async def is_available(self) -> bool:
        """Check if the backend answers at all."""
        try:
            await self.generate("ping")
            return True
        except Exception as e:
            logger.warning("Language model availability check failed: %s", e)
            return False
