"""Validation helpers for uploaded image attachments."""

import base64
import binascii
import re

from fastapi import HTTPException, UploadFile

from models.conversation_models import PendingAttachment

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
}
MAX_IMAGE_BYTES = 8 * 1024 * 1024

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def _normalize_mime(mime: str) -> str:
    return (mime or "").lower().split(";", 1)[0].strip()


def ensure_image_mime(mime: str) -> str:
    """Return the normalized MIME type or raise 415 when it is not an image type we accept."""
    normalized = _normalize_mime(mime)
    if normalized not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=415, detail=f"Unsupported image content type: {mime or 'missing'}")
    return "image/jpeg" if normalized == "image/jpg" else normalized


def attachment_from_bytes(raw: bytes, mime: str) -> PendingAttachment:
    """Build a pending attachment from raw image bytes."""
    if not raw:
        raise HTTPException(status_code=400, detail="Uploaded image is empty.")
    if len(raw) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded image is too large.")
    mime = ensure_image_mime(mime)
    b64 = base64.b64encode(raw).decode("utf-8")
    return PendingAttachment(data_uri=f"data:{mime};base64,{b64}", base64=b64, mime=mime)


def attachment_from_data_uri(data_uri: str) -> PendingAttachment:
    """Parse a `data:<mime>;base64,<payload>` string into a pending attachment."""
    match = _DATA_URI.match((data_uri or "").strip())
    if not match:
        raise HTTPException(status_code=400, detail="Attachment must be a base64 data URI.")
    try:
        raw = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Attachment payload is not valid base64.") from exc
    return attachment_from_bytes(raw, match.group("mime"))


async def read_image_attachment(image_file: UploadFile) -> PendingAttachment:
    """Read an uploaded image file into a pending attachment."""
    if not image_file.filename:
        raise HTTPException(status_code=400, detail="Image file must have a filename.")
    raw = await image_file.read()
    return attachment_from_bytes(raw, image_file.content_type or "")
