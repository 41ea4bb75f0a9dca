"""Build the bounded, API-ready message list for a chat turn."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from models.capture_models import Exchange
from models.conversation_models import Message, Mode, PendingAttachment, Role
from services.chat.media_inputs import build_user_content, system_message, to_image_data_url
from services.chat.prompts import FALLBACK_IMAGE_PROMPT, directive_for, video_chat_prompt

CONTEXT_LIMIT = 10


def _user_block(message: Message) -> Dict[str, Any]:
    image_url = None
    if message.image_base64:
        image_url = to_image_data_url(message.image_base64, message.image_mime or "image/jpeg")
    text = message.content
    if not text.strip():
        text = FALLBACK_IMAGE_PROMPT if image_url else text
    return {"role": "user", "content": build_user_content(text, image_url)}


def build_context(
    history: Sequence[Message],
    mode: Mode,
    attachment: Optional[PendingAttachment] = None,
    limit: int = CONTEXT_LIMIT,
) -> List[Dict[str, Any]]:
    """Return one system block followed by the last `limit` messages, oldest first.

    Assistant image results are skipped: their content is only a URL. When an
    attachment is given and the trailing user message has no image of its own,
    the attachment is inlined into that message.
    """
    messages: List[Dict[str, Any]] = [system_message(directive_for(mode))]
    window = list(history)[-limit:] if limit else list(history)
    for position, message in enumerate(window):
        if message.role == Role.USER:
            if attachment and position == len(window) - 1 and not message.image_base64:
                message = Message(
                    role=Role.USER,
                    content=message.content,
                    image=attachment.data_uri,
                    image_mime=attachment.mime,
                    image_base64=attachment.base64,
                    timestamp=message.timestamp,
                )
            messages.append(_user_block(message))
        elif not message.is_image:
            messages.append({"role": "assistant", "content": message.content})
    return messages


def build_live_context(
    window: Iterable[Exchange],
    transcript: str,
    frame_b64: Optional[str],
) -> List[Dict[str, Any]]:
    """Return the video-chat context: directive, rolling window, then transcript plus frame."""
    messages: List[Dict[str, Any]] = [system_message(video_chat_prompt())]
    for exchange in window:
        messages.append({"role": "user", "content": exchange.user_text})
        messages.append({"role": "assistant", "content": exchange.reply})
    image_url = to_image_data_url(frame_b64) if frame_b64 else None
    messages.append({"role": "user", "content": build_user_content(transcript, image_url)})
    return messages
