"""Tests for text-to-speech voice selection and single-utterance playback."""

import threading
from types import SimpleNamespace

import pytest

from services.speech.speech_output import SpeechOutput, clean_text, select_voice

from conftest import FakeEngine


def voice(voice_id, *languages):
    return SimpleNamespace(id=voice_id, languages=list(languages))


VOICES = [
    voice("english", "en-US"),
    voice("turkish", "tr_TR"),
    voice("russian", b"\x05ru"),
]


class TestCleanText:
    def test_strips_markup_and_urls(self):
        text = "**Salom** <b>dunyo</b> # `kod` https://image.pollinations.ai/prompt/cat?x=1"

        assert clean_text(text) == "Salom dunyo kod image link"

    def test_empty_input(self):
        assert clean_text(None) == ""


class TestSelectVoice:
    def test_exact_locale_wins(self):
        voices = VOICES + [voice("uzbek", "uz-UZ")]

        assert select_voice(voices, "uz-UZ", ["tr-TR"]).id == "uzbek"

    def test_fallbacks_are_tried_in_order(self):
        assert select_voice(VOICES, "uz-UZ", ["uz", "tr-TR", "ru-RU"]).id == "turkish"

    def test_base_language_match(self):
        assert select_voice(VOICES, "uz-UZ", ["ru-RU"]).id == "russian"

    def test_locale_encoded_in_voice_id(self):
        voices = [voice(r"HKEY\Voices\Tokens\uz-UZ")]

        assert select_voice(voices, "uz-UZ") is voices[0]

    def test_no_match_uses_engine_default(self):
        assert select_voice(VOICES, "uz-UZ", ["ja-JP"]) is None


class TestSpeechOutput:
    @pytest.fixture
    def engine(self):
        return FakeEngine(voices=VOICES)

    @pytest.fixture
    def speech(self, engine):
        output = SpeechOutput("uz-UZ", ["tr-TR"], rate=0.5, engine_factory=lambda: engine)
        yield output
        output.close()

    def test_engine_is_configured_once(self, speech, engine):
        speech.speak("Salom")
        speech.flush()

        assert engine.said == ["Salom"]
        assert engine.properties["voice"] == "turkish"
        assert engine.properties["rate"] == 100
        assert "started-word" in engine.callbacks

    def test_new_utterance_interrupts_current(self, speech, engine):
        gate = threading.Event()
        engine.gate = gate
        speech.speak("first")
        assert engine.started.wait(timeout=5)

        speech.speak("second")
        gate.set()
        speech.flush()

        assert engine.said == ["first", "second"]
        assert engine.stop_calls == 1

    def test_cancel_drops_queued_speech(self, speech, engine):
        gate = threading.Event()
        engine.gate = gate
        speech.speak("first")
        assert engine.started.wait(timeout=5)

        speech.speak("second")
        speech.cancel()
        gate.set()
        speech.flush()

        assert engine.said == ["first"]
        assert engine.stop_calls == 1
        assert speech.speaking is False

    def test_blank_text_is_not_spoken(self, speech, engine):
        speech.speak("  **  ")
        speech.flush()

        assert engine.said == []

    def test_missing_engine_never_raises(self):
        def broken():
            raise RuntimeError("no driver")

        output = SpeechOutput(engine_factory=broken)
        output.speak("Salom")
        output.flush()
        output.close()
