"""JPEG snapshots of live video frames.

Wraps Pillow to turn an RGB frame (numpy array or PIL image) into the
base64 JPEG payload the vision model receives.
"""
from __future__ import annotations

import base64
import io
from typing import Any, Tuple

import numpy as np
from PIL import Image


class FrameEncoder:
    """Encode frames as base64 JPEG.

    Args:
        quality: JPEG quality (1-95).
        max_size: Frames larger than this are downscaled preserving aspect ratio.
    """

    def __init__(self, quality: int = 60, max_size: Tuple[int, int] = (1280, 720)):
        self.quality = quality
        self.max_size = max_size

    def encode(self, frame: Any) -> str:
        """Return a base64 JPEG string for `frame`.

        Raises:
            ValueError: If the frame cannot be interpreted as an image.
        """
        if isinstance(frame, Image.Image):
            image = frame
        else:
            try:
                image = Image.fromarray(np.asarray(frame, dtype=np.uint8))
            except Exception as exc:
                raise ValueError("Frame is not a valid RGB image array") from exc

        # JPEG has no alpha channel
        if image.mode != "RGB":
            image = image.convert("RGB")

        image.thumbnail(self.max_size, Image.LANCZOS)

        out_io = io.BytesIO()
        image.save(out_io, format="JPEG", quality=self.quality)
        return base64.b64encode(out_io.getvalue()).decode("utf-8")
