"""Utilities to build multimodal content parts for the chat completions API."""

from typing import Any, Dict, List, Optional


def to_image_data_url(image_b64: str, mime: str = "image/jpeg") -> str:
    """Wrap base64 image data into a data URL suitable for vision input."""
    if not image_b64:
        raise ValueError("Image data must not be empty.")
    return f"data:{mime};base64,{image_b64}"


def text_part(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def image_part(image_url: str) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": image_url}}


def build_user_content(text: str, image_url: Optional[str] = None) -> List[Dict[str, Any]]:
    """Compose a user message as a text part followed by an optional image part."""
    content: List[Dict[str, Any]] = [text_part(text)]
    if image_url:
        content.append(image_part(image_url))
    return content


def system_message(text: str) -> Dict[str, Any]:
    return {"role": "system", "content": text}


def has_inline_image(messages: List[Dict[str, Any]]) -> bool:
    """Return True when any message carries an image part."""
    for message in messages:
        content = message.get("content")
        if isinstance(content, list) and any(part.get("type") == "image_url" for part in content):
            return True
    return False
