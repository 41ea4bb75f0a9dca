"""Live camera conversation: record a question, transcribe it, answer from the frame, speak."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import AsyncExitStack
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.capture_models import CaptureErrorReason, CaptureSession, CaptureState, Facing
from services.chat.completion_service import ChatCompletionService
from services.chat.context_builder import build_live_context
from services.live.frame_encoder import FrameEncoder
from services.live.media_devices import (
    RECORDING_PREFERENCES,
    MediaDevices,
    Recorder,
    acquire_stream,
    pick_mime_type,
)
from services.speech.speech_output import SpeechOutput
from services.speech.transcriber import Transcriber
from utils.errors import DeviceUnavailableError, EmptyTranscriptError, PermissionDeniedError

logger = logging.getLogger(__name__)

STATUS_STARTING = "Connecting camera..."
STATUS_ONLINE = "Online"
STATUS_LISTENING = "Listening..."
STATUS_THINKING = "Thinking..."
STATUS_NOT_CAPTURED = "Audio not captured"
STATUS_NOT_HEARD = "Didn't catch that"
STATUS_FAILED = "Something went wrong"
STATUS_UNSUPPORTED = "Recording is not supported on this device"
STATUS_CLOSED = "Closed"
SPOKEN_APOLOGY = "Sorry, something went wrong. Please try again."

_ERROR_STATUS = {
    CaptureErrorReason.PERMISSION_DENIED: "Camera or microphone permission denied",
    CaptureErrorReason.DEVICE_NOT_FOUND: "Camera or microphone not found",
    CaptureErrorReason.UNKNOWN: "Could not start the camera",
}

MIN_TRANSCRIPT_CHARS = 2


class LiveCaptureLoop:
    """Own one camera + microphone stream for the lifetime of a live session.

    States: starting -> ready -> recording -> processing -> ready, with error
    when the stream cannot be acquired and closed after teardown. Use it as an
    async context manager so the stream, recorder and speech are released on
    every exit path.
    """

    def __init__(
        self,
        devices: MediaDevices,
        transcriber: Transcriber,
        completions: ChatCompletionService,
        speech: SpeechOutput,
        *,
        frame_encoder: Optional[FrameEncoder] = None,
        frame_interval: float = 2.0,
        window_size: int = 2,
        max_tokens: int = 300,
        spoken_apology: bool = True,
        mime_preferences: Sequence[str] = RECORDING_PREFERENCES,
        facing: Facing = Facing.FRONT,
        on_change: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> None:
        self.devices = devices
        self.transcriber = transcriber
        self.completions = completions
        self.speech = speech
        self.frame_encoder = frame_encoder or FrameEncoder()
        self.frame_interval = frame_interval
        self.max_tokens = max_tokens
        self.spoken_apology = spoken_apology
        self.mime_preferences = tuple(mime_preferences)
        self.session = CaptureSession(facing=facing, window_size=window_size)
        self._on_change = on_change
        self._stack: Optional[AsyncExitStack] = None
        self._frame_task: Optional[asyncio.Task] = None
        self._processing_task: Optional[asyncio.Task] = None
        self._recorder: Optional[Recorder] = None
        self._chunks: List[bytes] = []

    @property
    def state(self) -> CaptureState:
        return self.session.state

    async def __aenter__(self) -> "LiveCaptureLoop":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self, facing: Optional[Facing] = None) -> bool:
        """Acquire the stream and enter ready; False (state error) when refused.

        Only valid before the first start or after a failed one; a loop that
        already owns a stream must use `switch_facing` instead.
        """
        if self.state not in (CaptureState.STARTING, CaptureState.ERROR) or self._stack is not None:
            return False
        return await self._open(facing)

    async def _open(self, facing: Optional[Facing]) -> bool:
        session = self.session
        session.facing = facing or session.facing
        session.error_reason = None
        self._set_state(CaptureState.STARTING, STATUS_STARTING)

        stack = AsyncExitStack()
        try:
            stream = await stack.enter_async_context(acquire_stream(self.devices, session.facing))
        except PermissionDeniedError as exc:
            logger.warning("Camera permission denied: %s", exc)
            return await self._fail(stack, CaptureErrorReason.PERMISSION_DENIED)
        except DeviceUnavailableError as exc:
            logger.warning("Capture device unavailable: %s", exc)
            return await self._fail(stack, CaptureErrorReason.DEVICE_NOT_FOUND)
        except Exception:
            logger.exception("Failed to start the %s camera", session.facing.value)
            return await self._fail(stack, CaptureErrorReason.UNKNOWN)

        self._stack = stack
        session.stream = stream
        for track in stream.video_tracks:
            track.enabled = session.camera_enabled
        self._frame_task = asyncio.create_task(self._snapshot_loop())
        self._set_state(CaptureState.READY, STATUS_ONLINE)
        return True

    async def switch_facing(self) -> bool:
        """Release the stream completely and reopen it with the other camera."""
        if self.state in (CaptureState.STARTING, CaptureState.PROCESSING, CaptureState.CLOSED):
            return False
        if self._recorder is not None:
            await self._discard_recording()
        await self._release_stream()
        return await self._open(self.session.facing.opposite)

    def toggle_camera(self) -> bool:
        """Enable or disable the video track in place. Returns the new enabled flag."""
        session = self.session
        if session.stream is None:
            return session.camera_enabled
        session.camera_enabled = not session.camera_enabled
        for track in session.stream.video_tracks:
            track.enabled = session.camera_enabled
        self._notify()
        return session.camera_enabled

    async def toggle_recording(self) -> bool:
        if self.state == CaptureState.RECORDING:
            return await self.stop_recording()
        return await self.start_recording()

    async def start_recording(self) -> bool:
        session = self.session
        if self.state != CaptureState.READY or session.stream is None:
            return False
        self.speech.cancel()

        mime_type = pick_mime_type(session.stream, self.mime_preferences)
        if mime_type is None:
            self._set_state(CaptureState.READY, STATUS_UNSUPPORTED)
            return False

        recorder = session.stream.create_recorder(mime_type)
        self._chunks = []
        try:
            await recorder.start(self._chunks.append)
        except Exception:
            logger.exception("Failed to start recording (%s)", mime_type)
            self._set_state(CaptureState.READY, STATUS_FAILED)
            return False

        self._recorder = recorder
        session.recording = True
        self._set_state(CaptureState.RECORDING, STATUS_LISTENING)
        return True

    async def stop_recording(self) -> bool:
        """Finish the clip and run transcription plus the vision reply."""
        if self.state != CaptureState.RECORDING or self._recorder is None:
            return False
        recorder, self._recorder = self._recorder, None
        try:
            await recorder.stop()
        except Exception:
            logger.exception("Recorder failed to stop cleanly")
        self.session.recording = False

        chunks = [chunk for chunk in self._chunks if chunk]
        self._chunks = []
        if not chunks:
            self._set_state(CaptureState.READY, STATUS_NOT_CAPTURED)
            return True

        clip = recorder.finalize(chunks)
        frame = await self._capture_frame() or self.session.last_frame
        self._set_state(CaptureState.PROCESSING, STATUS_THINKING)
        self._processing_task = asyncio.create_task(self._process(clip, recorder.mime_type, frame))
        await self._processing_task
        return True

    async def close(self) -> None:
        """Stop the recorder, processing, stream tracks and speech."""
        if self.state == CaptureState.CLOSED:
            return
        try:
            if self._recorder is not None:
                await self._discard_recording()
            task = self._processing_task
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        finally:
            try:
                await self._release_stream()
            finally:
                self.speech.cancel()
                self._set_state(CaptureState.CLOSED, STATUS_CLOSED)

    async def _process(self, clip: bytes, mime_type: str, frame: Optional[str]) -> None:
        session = self.session
        status = STATUS_ONLINE
        try:
            transcript = await self.transcriber.transcribe(clip, mime_type)
            if len("".join(transcript.split())) < MIN_TRANSCRIPT_CHARS:
                raise EmptyTranscriptError(f"Transcript too short: {transcript!r}")
            messages = build_live_context(session.conversation_window, transcript, frame)
            reply = await self.completions.complete(messages, max_tokens=self.max_tokens)
        except EmptyTranscriptError as exc:
            logger.info("No usable speech in clip: %s", exc)
            status = STATUS_NOT_HEARD
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Live reply failed: %s", exc)
            status = STATUS_FAILED
            if self.spoken_apology:
                self.speech.speak(SPOKEN_APOLOGY)
        else:
            session.last_ai_response = reply
            session.remember(transcript, reply)
            self.speech.speak(reply)
        finally:
            if self.state == CaptureState.PROCESSING:
                self._set_state(CaptureState.READY, status)

    async def _snapshot_loop(self) -> None:
        while True:
            frame = await self._capture_frame()
            if frame is not None:
                self.session.last_frame = frame
            await asyncio.sleep(self.frame_interval)

    async def _capture_frame(self) -> Optional[str]:
        stream = self.session.stream
        if stream is None:
            return None
        try:
            raw = await stream.capture_frame()
            if raw is None:
                return None
            return self.frame_encoder.encode(raw)
        except Exception as exc:
            logger.warning("Frame capture failed: %s", exc)
            return None

    async def _discard_recording(self) -> None:
        recorder, self._recorder = self._recorder, None
        self._chunks = []
        self.session.recording = False
        if recorder is None:
            return
        try:
            await recorder.stop()
        except Exception:
            logger.exception("Recorder failed to stop during teardown")

    async def _release_stream(self) -> None:
        task, self._frame_task = self._frame_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        stack, self._stack = self._stack, None
        self.session.stream = None
        if stack is not None:
            await stack.aclose()

    async def _fail(self, stack: AsyncExitStack, reason: CaptureErrorReason) -> bool:
        await stack.aclose()
        self.session.error_reason = reason
        self._set_state(CaptureState.ERROR, _ERROR_STATUS[reason])
        return False

    def _set_state(self, state: CaptureState, status: str) -> None:
        self.session.state = state
        self.session.status = status
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.session.to_dict())
