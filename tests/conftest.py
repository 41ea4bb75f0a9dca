"""Shared pytest fixtures and in-process fakes."""

import asyncio
import random
import threading
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import httpx
import numpy as np
import openai
import pytest

from models.app_state import AppState
from models.capture_models import Facing
from services.chat.completion_service import ChatCompletionService
from services.chat.dispatcher import RequestDispatcher
from services.chat.reveal_engine import RevealEngine
from services.conversation_store import ConversationStore
from services.live.media_devices import MediaDevices, MediaStream, MediaTrack, Recorder
from services.realtime.event_hub import EventHub
from services.speech.transcriber import Transcriber

TEXT_MODEL = "text-model"
VISION_MODEL = "vision-model"


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.test/v1/chat/completions"))


# =============================================================================
# OpenAI client fakes
# =============================================================================


class FakeChatCompletions:
    """Scripted `client.chat.completions`; replies may be strings or exceptions."""

    def __init__(self, replies: Optional[List[Any]] = None) -> None:
        self.replies = list(replies or [])
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeTranscriptions:
    def __init__(self, texts: Optional[List[Any]] = None) -> None:
        self.texts = list(texts or [])
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        text = self.texts.pop(0) if self.texts else ""
        if isinstance(text, BaseException):
            raise text
        return SimpleNamespace(text=text)


class FakeOpenAI:
    def __init__(self, replies=None, transcripts=None) -> None:
        self.chat = SimpleNamespace(completions=FakeChatCompletions(replies))
        self.audio = SimpleNamespace(transcriptions=FakeTranscriptions(transcripts))

    @property
    def chat_calls(self) -> List[Dict[str, Any]]:
        return self.chat.completions.calls

    @property
    def transcription_calls(self) -> List[Dict[str, Any]]:
        return self.audio.transcriptions.calls


# =============================================================================
# Speech and media fakes
# =============================================================================


class FakeSpeech:
    """Records speak/cancel calls the way SpeechOutput receives them."""

    def __init__(self) -> None:
        self.spoken: List[str] = []
        self.cancelled = 0
        self.closed = False

    def speak(self, text: str) -> None:
        self.spoken.append(text)

    def cancel(self) -> None:
        self.cancelled += 1

    def close(self, timeout: float = 2.0) -> None:
        self.closed = True


class FakeRecorder(Recorder):
    def __init__(self, mime_type: str, chunks: List[bytes]) -> None:
        super().__init__(mime_type)
        self.chunks = chunks
        self.started = False
        self.stopped = False
        self._on_data: Optional[Callable[[bytes], None]] = None

    async def start(self, on_data):
        self.started = True
        self._on_data = on_data

    async def stop(self):
        self.stopped = True
        for chunk in self.chunks:
            self._on_data(chunk)


class FakeStream(MediaStream):
    def __init__(self, facing: Facing, supported=("audio/wav",), chunks=None) -> None:
        super().__init__([MediaTrack("video"), MediaTrack("audio")])
        self.facing = facing
        self.supported = set(supported)
        self.chunks = list(chunks if chunks is not None else [b"RIFF", b"\x00\x01" * 1600])
        self.recorders: List[FakeRecorder] = []
        self.frame = np.full((8, 8, 3), 120, dtype=np.uint8)

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type in self.supported

    def create_recorder(self, mime_type: str) -> Recorder:
        recorder = FakeRecorder(mime_type, self.chunks)
        self.recorders.append(recorder)
        return recorder

    async def capture_frame(self):
        video = self.video_tracks[0]
        if not video.live or not video.enabled:
            return None
        return self.frame


class FakeDevices(MediaDevices):
    def __init__(self, error: Optional[Exception] = None, **stream_kwargs) -> None:
        self.error = error
        self.stream_kwargs = stream_kwargs
        self.streams: List[FakeStream] = []

    async def get_user_media(self, facing: Facing) -> MediaStream:
        if self.error is not None:
            raise self.error
        stream = FakeStream(facing, **self.stream_kwargs)
        self.streams.append(stream)
        return stream


class FakeEngine:
    """Minimal pyttsx3 engine; `gate` holds the first utterance until released."""

    def __init__(self, voices=None) -> None:
        self.voices = voices or []
        self.properties: Dict[str, Any] = {"rate": 200}
        self.callbacks: Dict[str, Callable] = {}
        self.said: List[str] = []
        self.stop_calls = 0
        self.started = threading.Event()
        self.gate: Optional[threading.Event] = None
        self._pending: Optional[str] = None

    def getProperty(self, name):
        if name == "voices":
            return self.voices
        return self.properties.get(name)

    def setProperty(self, name, value):
        self.properties[name] = value

    def connect(self, topic, callback):
        self.callbacks[topic] = callback

    def say(self, text):
        self._pending = text

    def runAndWait(self):
        self.said.append(self._pending)
        self.started.set()
        if self.gate is not None:
            gate, self.gate = self.gate, None
            gate.wait(timeout=5)
        callback = self.callbacks.get("started-word")
        if callback is not None:
            callback(None, 0, 1)

    def stop(self):
        self.stop_calls += 1


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def fake_client() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def app_state() -> AppState:
    return AppState()


@pytest.fixture
def hub() -> EventHub:
    return EventHub()


@pytest.fixture
def events(hub: EventHub) -> asyncio.Queue:
    return hub.subscribe()


@pytest.fixture
def completions(fake_client: FakeOpenAI) -> ChatCompletionService:
    return ChatCompletionService(fake_client, text_model=TEXT_MODEL, vision_model=VISION_MODEL)


@pytest.fixture
def reveal(app_state: AppState, hub: EventHub) -> RevealEngine:
    return RevealEngine(app_state, hub, chunk_size=15, tick_interval=0)


@pytest.fixture
def dispatcher(store, app_state, hub, completions, reveal) -> RequestDispatcher:
    store.create_conversation()
    return RequestDispatcher(
        store,
        app_state,
        hub,
        completions,
        reveal,
        decoration_probability=0.0,
        rng=random.Random(7),
    )


@pytest.fixture
def transcriber(fake_client: FakeOpenAI) -> Transcriber:
    return Transcriber(fake_client, model="whisper-test", language="uz")


@pytest.fixture
def fake_speech() -> FakeSpeech:
    return FakeSpeech()


def drain(queue: asyncio.Queue) -> List[Dict[str, Any]]:
    """Return every event currently queued."""
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items
