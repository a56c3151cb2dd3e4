import logging
import time
import uuid
from typing import Dict, List, Optional

from kirakira.core.prompt_manager import prompt_manager
from kirakira.services.image_providers.huggingface_provider import HuggingFaceImageProvider
from kirakira.services.image_providers.pollinations_provider import PollinationsImageProvider
from kirakira.services.model_provider import model_provider
from kirakira.services.upload_service import store_file

logger = logging.getLogger(__name__)

DEFAULT_CHARACTER_DESCRIPTION = "A character in a chat"
CONTEXT_TURNS = 5
CHAT_IMAGE_DIR = "chat_images"

STYLE_KEYWORDS = (
    "masterpiece, best quality, highly detailed anime illustration, Japanese anime art style, "
    "Korean manhwa art style, beautiful anime character, soft cel shading, digital illustration, "
    "light novel cover art, otome game CG style, romance fantasy illustration, delicate linework, "
    "vibrant colors"
)


def scene_message(image_url: str) -> str:
    """Message content that embeds a generated image in the chat log."""
    return f"![Scene]({image_url})"


class ImageService:
    def __init__(self, primary=None, fallback=None):
        self.primary = primary or HuggingFaceImageProvider()
        self.fallback = fallback or PollinationsImageProvider()

    async def build_scene_prompt(
        self,
        character_name: str,
        description: str,
        history: List[Dict[str, str]],
        personality: Optional[str] = None,
    ) -> str:
        """Ask the text model to describe the latest moment of the conversation as a scene."""
        recent = history[-CONTEXT_TURNS:]
        conversation = "\n".join(
            f"{'User' if str(m.get('role', '')).upper() == 'USER' else character_name}: {m.get('content', '')}"
            for m in recent
        )
        prompt = prompt_manager.format_template(
            "image_scene",
            name=character_name,
            description=description,
            personality=f"Personality: {personality}" if personality else "",
            conversation=conversation,
        )
        return await model_provider.generate_text(prompt)

    async def generate_image(self, prompt: str) -> bytes:
        if getattr(self.primary, "enabled", True):
            try:
                return await self.primary.generate(prompt)
            except Exception as e:
                logger.warning(f"Primary image provider failed, falling back: {str(e)}")
        else:
            logger.info("Primary image provider not configured, using fallback")
        return await self.fallback.generate(prompt)

    async def create_scene_image(
        self,
        upload_root: str,
        character_name: str,
        history: List[Dict[str, str]],
        description: Optional[str] = None,
        personality: Optional[str] = None,
    ) -> str:
        """Generate an illustration for the conversation and return its public URL."""
        description = description or DEFAULT_CHARACTER_DESCRIPTION
        scene = await self.build_scene_prompt(character_name, description, history, personality)
        styled_prompt = f"{STYLE_KEYWORDS}, {description}, {scene}"

        content = await self.generate_image(styled_prompt)

        filename = f"chat_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.jpg"
        return store_file(upload_root, CHAT_IMAGE_DIR, filename, content)


image_service = ImageService()
