"""Chat completion calls against the OpenAI-compatible endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from services.chat.media_inputs import has_inline_image
from utils.errors import MalformedResponse, NetworkFailure

logger = logging.getLogger(__name__)


class ChatCompletionService:
    """Send role-tagged messages and return the first choice's text.

    The vision model is used whenever any message carries an inline image,
    the text model otherwise.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        text_model: str,
        vision_model: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.text_model = text_model
        self.vision_model = vision_model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def model_for(self, messages: List[Dict[str, Any]]) -> str:
        return self.vision_model if has_inline_image(messages) else self.text_model

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the assistant text for `messages`.

        Raises:
            NetworkFailure: transport or HTTP status errors.
            MalformedResponse: no `choices[0].message.content` in the reply.
        """
        model = self.model_for(messages)
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.max_tokens,
            )
        except openai.APIError as exc:
            logger.error("Chat completion request to %s failed: %s", model, exc)
            raise NetworkFailure(str(exc)) from exc

        return extract_content(response)


def extract_content(response: Any) -> str:
    """Return `choices[0].message.content` or raise MalformedResponse."""
    choices = getattr(response, "choices", None)
    if not choices:
        raise MalformedResponse("Chat completion response has no choices.")
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not isinstance(content, str) or not content.strip():
        raise MalformedResponse("Chat completion response has no message content.")
    return content
