"""
Gemini backend - text and image generation over Gemini's OpenAI-compatible API.
"""
import base64
from typing import Any, Dict, List, Optional, Sequence

import httpx
import openai

from .config import DEFAULT_GEMINI_API_BASE, DEFAULT_SYSTEM_PROMPT
from .credentials import CredentialRotator
from .exceptions import BackendError
from .types import ImagePayload, Role, Turn
from .utils.logging import get_logger

logger = get_logger(__name__)

# Conversation roles as the chat-completions wire format names them.
_WIRE_ROLES = {Role.USER: "user", Role.MODEL: "assistant"}


class GeminiBackend:
    """
    Generates replies with one of the rotator's credentials.

    The caller picks the credential index; this class never rotates and never
    retries. One ``AsyncOpenAI`` client is kept per credential.
    """

    def __init__(
        self,
        rotator: CredentialRotator,
        text_model: str = "gemini-1.5-flash",
        vision_model: str = "gemini-1.5-flash",
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        base_url: str = DEFAULT_GEMINI_API_BASE,
        timeout_seconds: float = 45.0,
    ):
        self.rotator = rotator
        self.text_model = text_model
        self.vision_model = vision_model
        self.system_prompt = system_prompt
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._clients: Dict[int, openai.AsyncOpenAI] = {}

    @classmethod
    def from_config(cls, config: dict, rotator: CredentialRotator) -> "GeminiBackend":
        return cls(
            rotator,
            text_model=config["TEXT_MODEL"],
            vision_model=config["VISION_MODEL"],
            system_prompt=config["SYSTEM_PROMPT"],
            base_url=config["GEMINI_API_BASE"],
            timeout_seconds=config["TEXTGEN_TIMEOUT_SECONDS"],
        )

    def _client(self, credential_index: int) -> openai.AsyncOpenAI:
        client = self._clients.get(credential_index)
        if client is None:
            client = openai.AsyncOpenAI(
                api_key=self.rotator.credential(credential_index),
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout_seconds),
                max_retries=0,
            )
            self._clients[credential_index] = client
        return client

    async def generate_text(
        self, prompt: str, history: Sequence[Turn], credential_index: int
    ) -> str:
        """Reply to ``prompt`` given the prior turns of the conversation."""
        messages: List[Dict[str, Any]] = [{"role": "system", "content": self.system_prompt}]
        messages.extend(
            {"role": _WIRE_ROLES[turn.role], "content": turn.text} for turn in history
        )
        messages.append({"role": "user", "content": prompt})

        logger.debug(
            f"[Gemini] text request: model={self.text_model} history={len(history)} "
            f"key_index={credential_index}"
        )
        return await self._complete(self.text_model, messages, credential_index)

    async def generate_from_image(
        self, prompt: str, image: ImagePayload, credential_index: int
    ) -> str:
        """Reply to ``prompt`` about a single image."""
        encoded = base64.b64encode(image.data).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{image.mime_type};base64,{encoded}"},
                    },
                ],
            }
        ]

        logger.debug(
            f"[Gemini] image request: model={self.vision_model} bytes={image.size} "
            f"mime={image.mime_type} key_index={credential_index}"
        )
        return await self._complete(self.vision_model, messages, credential_index)

    async def _complete(
        self, model: str, messages: List[Dict[str, Any]], credential_index: int
    ) -> str:
        try:
            response = await self._client(credential_index).chat.completions.create(
                model=model,
                messages=messages,
            )
        except openai.RateLimitError as e:
            raise BackendError(f"Rate limited on key index {credential_index}: {e}", rate_limited=True) from e
        except openai.APIError as e:
            raise BackendError(f"{type(e).__name__}: {e}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"Transport error: {e}") from e

        return self._extract_text(response)

    @staticmethod
    def _extract_text(response: Any) -> str:
        choices = getattr(response, "choices", None)
        if not choices:
            raise BackendError("Malformed response: no choices returned")
        message: Optional[Any] = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise BackendError("Malformed response: empty content")
        return content
