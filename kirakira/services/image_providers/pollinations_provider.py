import random
from urllib.parse import quote

import httpx


class PollinationsImageProvider:
    """Keyless text-to-image fallback."""

    base_url = "https://image.pollinations.ai/prompt"

    def __init__(self, width: int = 512, height: int = 512):
        self.width = width
        self.height = height

    async def generate(self, prompt: str) -> bytes:
        params = {
            "width": self.width,
            "height": self.height,
            "nologo": "true",
            "seed": random.randint(0, 9999),
        }
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(f"{self.base_url}/{quote(prompt, safe='')}", params=params, timeout=120.0)
            response.raise_for_status()
            return response.content
