import os

import pytest
from PIL import Image

from kirakira.services.image_providers.huggingface_provider import HuggingFaceImageProvider
from kirakira.services.image_service import CHAT_IMAGE_DIR, ImageService, STYLE_KEYWORDS


class FakeImageProvider:
    def __init__(self, content=b"jpeg bytes", error=None, enabled=True):
        self.content = content
        self.error = error
        self.enabled = enabled
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.content


@pytest.mark.asyncio
async def test_primary_provider_used_first():
    primary = FakeImageProvider(content=b"primary")
    fallback = FakeImageProvider(content=b"fallback")
    service = ImageService(primary=primary, fallback=fallback)

    assert await service.generate_image("a prompt") == b"primary"
    assert fallback.prompts == []


@pytest.mark.asyncio
async def test_falls_back_when_primary_fails():
    primary = FakeImageProvider(error=RuntimeError("quota exceeded"))
    fallback = FakeImageProvider(content=b"fallback")
    service = ImageService(primary=primary, fallback=fallback)

    assert await service.generate_image("a prompt") == b"fallback"
    assert primary.prompts == ["a prompt"]
    assert fallback.prompts == ["a prompt"]


@pytest.mark.asyncio
async def test_skips_unconfigured_primary():
    primary = FakeImageProvider(enabled=False)
    fallback = FakeImageProvider(content=b"fallback")
    service = ImageService(primary=primary, fallback=fallback)

    assert await service.generate_image("a prompt") == b"fallback"
    assert primary.prompts == []


@pytest.mark.asyncio
async def test_fallback_failure_propagates():
    service = ImageService(
        primary=FakeImageProvider(error=RuntimeError("primary down")),
        fallback=FakeImageProvider(error=RuntimeError("fallback down")),
    )
    with pytest.raises(RuntimeError):
        await service.generate_image("a prompt")


@pytest.mark.asyncio
async def test_create_scene_image(tmp_path, fake_model):
    """The scene is described from the recent turns, styled and written under chat_images"""
    primary = FakeImageProvider(content=b"jpeg bytes")
    service = ImageService(primary=primary, fallback=FakeImageProvider())
    history = [{"role": "user", "content": f"turn {i}"} for i in range(8)]

    url = await service.create_scene_image(
        str(tmp_path), "Luna", history, description="Silver hair, blue eyes", personality="Shy",
    )

    assert url.startswith(f"/uploads/{CHAT_IMAGE_DIR}/chat_")
    assert url.endswith(".jpg")
    with open(os.path.join(str(tmp_path), url[len("/uploads/"):]), "rb") as f:
        assert f.read() == b"jpeg bytes"

    scene_prompt = fake_model.calls[0]["prompt"]
    assert "turn 7" in scene_prompt
    assert "turn 2" not in scene_prompt
    assert "Personality: Shy" in scene_prompt

    assert primary.prompts[0].startswith(STYLE_KEYWORDS)
    assert "Silver hair, blue eyes" in primary.prompts[0]
    assert fake_model.scene in primary.prompts[0]


class FakeInferenceClient:
    def __init__(self):
        self.requests = []

    async def text_to_image(self, prompt, model=None):
        self.requests.append((prompt, model))
        return Image.new("RGBA", (8, 8), (255, 0, 0, 128))


@pytest.mark.asyncio
async def test_huggingface_provider_returns_jpeg(monkeypatch):
    monkeypatch.setenv("HUGGING_FACE_TOKEN", "hf_test")
    monkeypatch.delenv("HUGGING_FACE_IMAGE_MODEL", raising=False)
    provider = HuggingFaceImageProvider()
    provider._client = FakeInferenceClient()

    content = await provider.generate("a quiet library")

    assert provider.enabled
    assert content[:2] == b"\xff\xd8"
    assert provider._client.requests == [("a quiet library", "black-forest-labs/FLUX.1-dev")]


@pytest.mark.asyncio
async def test_huggingface_provider_without_token(monkeypatch):
    monkeypatch.delenv("HUGGING_FACE_TOKEN", raising=False)
    provider = HuggingFaceImageProvider()

    assert not provider.enabled
    with pytest.raises(RuntimeError):
        await provider.generate("a quiet library")
