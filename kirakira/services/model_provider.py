import logging
import os
from typing import Dict, List, Optional

from kirakira.services.model_providers.gemini_provider import GeminiProvider

logger = logging.getLogger(__name__)


class ModelProvider:
    def __init__(self):
        self.provider_name = os.getenv("CHAT_PROVIDER", "gemini").lower()
        logger.info(f"Initializing ModelProvider with {self.provider_name}")

        if self.provider_name == "gemini":
            self.provider = GeminiProvider()
        else:
            raise ValueError(f"Unknown CHAT_PROVIDER: {self.provider_name}")

    async def generate_text(self, prompt: str, model: Optional[str] = None) -> str:
        return await self.provider.generate_text(prompt, model)

    def stream_chat(
        self,
        history: List[Dict[str, str]],
        message: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
    ):
        """Return an async context manager that iterates over response text chunks."""
        return self.provider.stream_chat(history, message, system_prompt, model)


# Initialize the model provider
model_provider = ModelProvider()
