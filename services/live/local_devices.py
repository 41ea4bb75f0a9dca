"""Local webcam + microphone backend built on OpenCV and sounddevice."""

from __future__ import annotations

import asyncio
import io
import logging
import threading
import wave
from typing import Callable, Dict, Iterable, Optional

import cv2
import numpy as np
import sounddevice as sd

from models.capture_models import Facing
from services.live.media_devices import MediaDevices, MediaStream, MediaTrack, Recorder
from utils.errors import DeviceUnavailableError, PermissionDeniedError

logger = logging.getLogger(__name__)

DEFAULT_CAMERA_INDEXES = {Facing.FRONT: 0, Facing.BACK: 1}


class WavRecorder(Recorder):
    """Record 16-bit mono PCM from the default input device."""

    def __init__(self, audio_track: MediaTrack, sample_rate: int = 16000) -> None:
        super().__init__("audio/wav")
        self.audio_track = audio_track
        self.sample_rate = sample_rate
        self._stream: Optional[sd.RawInputStream] = None

    async def start(self, on_data: Callable[[bytes], None]) -> None:
        loop = asyncio.get_running_loop()

        def _callback(indata, frames, time_info, status):
            if status:
                logger.debug("Audio status: %s", status)
            if self.audio_track.live and self.audio_track.enabled:
                loop.call_soon_threadsafe(on_data, bytes(indata))

        self._stream = sd.RawInputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="int16",
            callback=_callback,
        )
        self._stream.start()

    async def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        await asyncio.to_thread(stream.stop)
        stream.close()
        # Let chunks scheduled by the audio thread land before returning.
        await asyncio.sleep(0)

    def finalize(self, chunks: Iterable[bytes]) -> bytes:
        out_io = io.BytesIO()
        with wave.open(out_io, "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(2)
            wav.setframerate(self.sample_rate)
            for chunk in chunks:
                wav.writeframes(chunk)
        return out_io.getvalue()


class LocalMediaStream(MediaStream):
    """OpenCV capture plus the default microphone."""

    def __init__(self, capture: "cv2.VideoCapture", sample_rate: int) -> None:
        self._capture = capture
        self._lock = threading.Lock()
        self.sample_rate = sample_rate
        super().__init__(
            [
                MediaTrack("video", on_stop=self._release_camera),
                MediaTrack("audio"),
            ]
        )

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type.split(";", 1)[0].strip().lower() in {"audio/wav", "audio/x-wav"}

    def create_recorder(self, mime_type: str) -> Recorder:
        if not self.is_type_supported(mime_type):
            raise ValueError(f"Unsupported recording type: {mime_type}")
        return WavRecorder(self.audio_tracks[0], self.sample_rate)

    async def capture_frame(self) -> Optional[np.ndarray]:
        video = self.video_tracks[0]
        if not video.live or not video.enabled:
            return None
        return await asyncio.to_thread(self._read_frame)

    def _read_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._capture is None:
                return None
            ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def _release_camera(self) -> None:
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None


class LocalMediaDevices(MediaDevices):
    """Map facing modes to local camera indexes.

    Args:
        camera_indexes: OpenCV device index per facing mode.
        sample_rate: Microphone sample rate in Hz.
    """

    def __init__(self, camera_indexes: Optional[Dict[Facing, int]] = None, sample_rate: int = 16000) -> None:
        self.camera_indexes = dict(camera_indexes or DEFAULT_CAMERA_INDEXES)
        self.sample_rate = sample_rate

    async def get_user_media(self, facing: Facing) -> MediaStream:
        return await asyncio.to_thread(self._open, facing)

    def _open(self, facing: Facing) -> LocalMediaStream:
        index = self.camera_indexes.get(facing)
        if index is None:
            raise DeviceUnavailableError(f"No camera configured for facing mode '{facing.value}'")

        capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            capture.release()
            raise DeviceUnavailableError(
                f"Could not open webcam at index {index}. Check that no other application is using it."
            )
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)

        try:
            sd.check_input_settings(samplerate=self.sample_rate, channels=1, dtype="int16")
        except Exception as exc:
            capture.release()
            message = str(exc).lower()
            if "permission" in message or "denied" in message or "not authorized" in message:
                raise PermissionDeniedError("Microphone access was denied") from exc
            raise DeviceUnavailableError(f"No usable microphone: {exc}") from exc

        logger.info("Opened %s camera (index %d) and default microphone", facing.value, index)
        return LocalMediaStream(capture, self.sample_rate)
