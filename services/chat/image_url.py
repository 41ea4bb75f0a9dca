"""Deterministic image URLs for the hosted image generator."""

from __future__ import annotations

import re
from urllib.parse import quote, urlencode

IMAGE_ENDPOINT = "https://image.pollinations.ai/prompt/{prompt}"
IMAGE_PARAMS = {"width": 1024, "height": 1024, "nologo": "true", "enhance": "true"}

_WRAPPING_QUOTES = "\"'`“”‘’"


def clean_prompt(text: str) -> str:
    """Collapse whitespace and strip wrapping quotes or a leading 'Prompt:' label."""
    prompt = re.sub(r"\s+", " ", text or "").strip()
    prompt = re.sub(r"^(?:image\s+)?prompt\s*:\s*", "", prompt, flags=re.IGNORECASE)
    return prompt.strip(_WRAPPING_QUOTES).strip()


def build_image_url(prompt: str) -> str:
    """Percent-encode `prompt` into the generator URL template.

    The renderer loads the URL lazily; nothing is fetched here.
    """
    cleaned = clean_prompt(prompt)
    if not cleaned:
        raise ValueError("Image prompt must not be empty.")
    return f"{IMAGE_ENDPOINT.format(prompt=quote(cleaned, safe=''))}?{urlencode(IMAGE_PARAMS)}"
