"""Text-to-speech with single-utterance discipline."""

from __future__ import annotations

import logging
import queue
import re
import threading
from typing import Any, Callable, Iterable, Optional, Sequence

import pyttsx3

logger = logging.getLogger(__name__)


def clean_text(text: str) -> str:
    """Strip markup so the engine does not read tags, symbols or raw URLs."""
    cleaned = re.sub(r"<[^>]*>", "", text or "")
    cleaned = re.sub(r"[*#`]", "", cleaned)
    cleaned = re.sub(r"https?://\S+", "image link", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def _normalize_locale(value: Any) -> str:
    if isinstance(value, bytes):
        # espeak prefixes the language code with a priority byte
        value = value.decode("utf-8", errors="ignore")
    value = "".join(ch for ch in str(value) if ch.isprintable())
    return value.strip().lower().replace("_", "-")


def _voice_locales(voice: Any) -> list:
    locales = [_normalize_locale(lang) for lang in getattr(voice, "languages", None) or []]
    # Some drivers only encode the locale in the voice id, e.g. "...\\uz-UZ".
    voice_id = _normalize_locale(getattr(voice, "id", ""))
    locales.append(voice_id.rsplit("\\", 1)[-1].rsplit("/", 1)[-1])
    return [locale for locale in locales if locale]


def select_voice(voices: Iterable[Any], language: str, fallbacks: Sequence[str] = ()) -> Optional[Any]:
    """Pick the voice for `language`.

    Exact locale match first, then each fallback locale in order (exact match
    or same base language), then None so the engine default is used.
    """
    voices = list(voices or [])
    wanted = [_normalize_locale(language)] + [_normalize_locale(f) for f in fallbacks]

    for voice in voices:
        if wanted[0] in _voice_locales(voice):
            return voice

    for locale in wanted:
        base = locale.split("-", 1)[0]
        for voice in voices:
            for candidate in _voice_locales(voice):
                if candidate == locale or candidate.split("-", 1)[0] == base:
                    return voice
    return None


class SpeechOutput:
    """Speak one utterance at a time on a dedicated pyttsx3 worker thread.

    Every `speak` call supersedes whatever is playing or queued. The engine is
    created and driven only from the worker thread; cancellation is signalled
    through a generation counter that the engine's word callback checks.
    """

    def __init__(
        self,
        language: str = "uz-UZ",
        fallbacks: Sequence[str] = (),
        rate: float = 1.0,
        engine_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.language = language
        self.fallbacks = list(fallbacks)
        self.rate = rate
        self._engine_factory = engine_factory or pyttsx3.init
        self._queue: "queue.Queue[Optional[tuple[int, str]]]" = queue.Queue()
        self._lock = threading.Lock()
        self._generation = 0
        self._active_generation: Optional[int] = None
        self._engine: Any = None
        self._thread: Optional[threading.Thread] = None

    @property
    def speaking(self) -> bool:
        return self._active_generation is not None

    def speak(self, text: str) -> None:
        """Cancel current speech and queue `text`. Never raises."""
        cleaned = clean_text(text)
        with self._lock:
            self._generation += 1
            generation = self._generation
        if not cleaned:
            return
        try:
            self._ensure_worker()
            self._queue.put((generation, cleaned))
        except Exception as exc:
            logger.error("Failed to queue speech: %s", exc)

    def cancel(self) -> None:
        """Drop queued speech and interrupt the current utterance."""
        with self._lock:
            self._generation += 1

    def flush(self) -> None:
        """Block until every queued utterance has been handled."""
        if self._thread is not None:
            self._queue.join()

    def close(self, timeout: float = 2.0) -> None:
        self.cancel()
        if self._thread is None:
            return
        self._queue.put(None)
        self._thread.join(timeout=timeout)
        self._thread = None

    def _ensure_worker(self) -> None:
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self._worker, name="speech-output", daemon=True)
            self._thread.start()

    def _setup_engine(self) -> Any:
        engine = self._engine_factory()
        voice = select_voice(engine.getProperty("voices"), self.language, self.fallbacks)
        if voice is not None:
            engine.setProperty("voice", voice.id)
        else:
            logger.info("No %s voice installed; using the engine default", self.language)
        base_rate = engine.getProperty("rate") or 200
        engine.setProperty("rate", int(base_rate * self.rate))
        engine.connect("started-word", self._on_word)
        return engine

    def _worker(self) -> None:
        try:
            self._engine = self._setup_engine()
        except Exception as exc:
            logger.error("Text-to-speech engine unavailable: %s", exc)
            self._engine = None

        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                generation, text = item
                if self._engine is None or generation != self._generation:
                    continue
                self._active_generation = generation
                try:
                    self._engine.say(text)
                    self._engine.runAndWait()
                except Exception as exc:
                    logger.error("Speech synthesis failed: %s", exc)
                finally:
                    self._active_generation = None
            finally:
                self._queue.task_done()

    def _on_word(self, name: Any, location: int, length: int) -> None:
        if self._active_generation is not None and self._active_generation != self._generation:
            self._engine.stop()
