"""Device-independent view of a camera + microphone stream.

`LiveCaptureLoop` only talks to these interfaces; `local_devices` provides the
OpenCV/sounddevice backend and tests provide in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional

from models.capture_models import Facing

RECORDING_PREFERENCES = (
    "audio/webm;codecs=opus",
    "audio/webm",
    "audio/ogg;codecs=opus",
    "audio/mp4",
    "audio/wav",
)


class MediaTrack:
    """One audio or video track; `enabled=False` mutes it without releasing it."""

    def __init__(self, kind: str, on_stop: Optional[Callable[[], None]] = None) -> None:
        self.kind = kind
        self.enabled = True
        self.ready_state = "live"
        self._on_stop = on_stop

    @property
    def live(self) -> bool:
        return self.ready_state == "live"

    def stop(self) -> None:
        if not self.live:
            return
        self.ready_state = "ended"
        if self._on_stop is not None:
            self._on_stop()


class Recorder(ABC):
    """Buffers encoded chunks from a stream's audio track."""

    def __init__(self, mime_type: str) -> None:
        self.mime_type = mime_type

    @abstractmethod
    async def start(self, on_data: Callable[[bytes], None]) -> None:
        """Begin delivering chunks to `on_data` on the event loop."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop capturing; every chunk is delivered before this returns."""

    def finalize(self, chunks: Iterable[bytes]) -> bytes:
        """Join buffered chunks into one decodable clip."""
        return b"".join(chunks)


class MediaStream(ABC):
    """An exclusively owned camera + microphone stream."""

    def __init__(self, tracks: List[MediaTrack]) -> None:
        self.tracks = tracks

    @property
    def video_tracks(self) -> List[MediaTrack]:
        return [track for track in self.tracks if track.kind == "video"]

    @property
    def audio_tracks(self) -> List[MediaTrack]:
        return [track for track in self.tracks if track.kind == "audio"]

    @property
    def active(self) -> bool:
        return any(track.live for track in self.tracks)

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        """Return True when a recorder can produce `mime_type`."""

    @abstractmethod
    def create_recorder(self, mime_type: str) -> Recorder:
        """Return a recorder for the audio track."""

    @abstractmethod
    async def capture_frame(self) -> Optional[Any]:
        """Return the current video frame as an RGB array, or None when unavailable."""

    def stop(self) -> None:
        """Stop every track."""
        for track in self.tracks:
            track.stop()


class MediaDevices(ABC):
    """Grants camera + microphone streams."""

    @abstractmethod
    async def get_user_media(self, facing: Facing) -> MediaStream:
        """Open a stream for `facing`.

        Raises:
            PermissionDeniedError: access was refused.
            DeviceUnavailableError: no matching camera or microphone.
        """


@asynccontextmanager
async def acquire_stream(devices: MediaDevices, facing: Facing) -> AsyncIterator[MediaStream]:
    """Yield a stream whose tracks are stopped on every exit path."""
    stream = await devices.get_user_media(facing)
    try:
        yield stream
    finally:
        stream.stop()


def pick_mime_type(stream: MediaStream, preferences: Iterable[str] = RECORDING_PREFERENCES) -> Optional[str]:
    """Return the first preferred recording type the stream supports."""
    for mime_type in preferences:
        if stream.is_type_supported(mime_type):
            return mime_type
    return None
