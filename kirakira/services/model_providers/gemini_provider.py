import logging
import os
from typing import Dict, List, Optional

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

# Public model tier -> model name sent to the Gemini API
API_MODEL_NAMES = {
    "gemini-2.5-flash": "gemini-2.5-flash",
    "gemini-3-flash": "gemini-3-flash-preview",
}


def to_gemini_contents(history: List[Dict[str, str]], message: str) -> List[types.Content]:
    """Convert stored USER/ASSISTANT turns plus the new message into Gemini contents."""
    contents = []
    for turn in history:
        content = turn.get("content")
        if not content:
            continue
        role = "user" if str(turn.get("role", "")).upper() == "USER" else "model"
        contents.append(types.Content(role=role, parts=[types.Part(text=content)]))
    contents.append(types.Content(role="user", parts=[types.Part(text=message)]))
    return contents


class GeminiProvider:
    def __init__(self):
        self.api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
        self.default_model = os.getenv("GEMINI_DEFAULT_MODEL", "gemini-2.5-flash")
        self._client = None

    @property
    def client(self) -> genai.Client:
        # Created on first use so the app can start without an API key
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def resolve_model(self, model: Optional[str]) -> str:
        model = model or self.default_model
        return API_MODEL_NAMES.get(model, model)

    async def generate_text(self, prompt: str, model: Optional[str] = None) -> str:
        model_name = self.resolve_model(model)
        try:
            response = await self.client.aio.models.generate_content(
                model=model_name,
                contents=prompt,
            )
        except Exception as e:
            logger.error(f"Exception when calling Gemini ({model_name}): {str(e)}")
            raise
        return (response.text or "").strip()

    def stream_chat(
        self,
        history: List[Dict[str, str]],
        message: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
    ) -> "GeminiStreamingResponse":
        return GeminiStreamingResponse(
            client=self.client,
            model_name=self.resolve_model(model),
            contents=to_gemini_contents(history, message),
            system_prompt=system_prompt,
        )


class GeminiStreamingResponse:
    """
    Async context manager yielding the text of each streamed chunk.

    Usage::

        async with provider.stream_chat(history, message, system_prompt) as stream:
            async for text in stream:
                ...
    """

    def __init__(self, client, model_name, contents, system_prompt=None):
        self.client = client
        self.model_name = model_name
        self.contents = contents
        self.system_prompt = system_prompt
        self.stream = None

    async def __aenter__(self):
        config = None
        if self.system_prompt:
            config = types.GenerateContentConfig(system_instruction=self.system_prompt)

        self.stream = await self.client.aio.models.generate_content_stream(
            model=self.model_name,
            contents=self.contents,
            config=config,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.stream = None
        return False  # Don't suppress exceptions

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self.stream is None:
            raise StopAsyncIteration

        # StopAsyncIteration from the SDK ends our iteration as well
        chunk = await self.stream.__anext__()
        return chunk.text or ""
