import os
from io import BytesIO

from huggingface_hub import AsyncInferenceClient


class HuggingFaceImageProvider:
    """Text-to-image through Hugging Face inference providers. Requires a token."""

    def __init__(self):
        self.token = os.getenv("HUGGING_FACE_TOKEN")
        self.model = os.getenv("HUGGING_FACE_IMAGE_MODEL", "black-forest-labs/FLUX.1-dev")
        self._client = None

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    @property
    def client(self) -> AsyncInferenceClient:
        # No provider pinned, Hugging Face routes to one serving the model
        if self._client is None:
            self._client = AsyncInferenceClient(api_key=self.token, timeout=120)
        return self._client

    async def generate(self, prompt: str) -> bytes:
        if not self.token:
            raise RuntimeError("HUGGING_FACE_TOKEN not found")

        image = await self.client.text_to_image(prompt, model=self.model)

        # JPEG has no alpha channel
        if image.mode != "RGB":
            image = image.convert("RGB")
        output = BytesIO()
        image.save(output, format="JPEG", quality=90)
        return output.getvalue()
