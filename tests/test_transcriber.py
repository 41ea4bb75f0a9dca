"""Tests for clip transcription."""

import pytest

from services.speech.transcriber import Transcriber, filename_for_mime
from utils.errors import EmptyTranscriptError, NetworkFailure

from conftest import connection_error


@pytest.mark.parametrize(
    "mime, expected",
    [
        ("audio/webm;codecs=opus", "clip.webm"),
        ("audio/ogg;codecs=opus", "clip.ogg"),
        ("audio/mp4", "clip.m4a"),
        ("audio/wav", "clip.wav"),
        ("AUDIO/FLAC", "clip.flac"),
    ],
)
def test_filename_for_mime(mime, expected):
    assert filename_for_mime(mime) == expected


def test_unknown_mime_is_rejected():
    with pytest.raises(ValueError):
        filename_for_mime("text/plain")


class TestTranscribe:
    async def test_request_parameters(self, transcriber, fake_client):
        fake_client.audio.transcriptions.texts = ["  salom qandaysiz  "]

        transcript = await transcriber.transcribe(b"\x1aE\xdf\xa3", "audio/webm;codecs=opus")

        assert transcript == "salom qandaysiz"
        call = fake_client.transcription_calls[0]
        assert call["model"] == "whisper-test"
        assert call["language"] == "uz"
        assert call["file"] == ("clip.webm", b"\x1aE\xdf\xa3", "audio/webm")
        assert call["temperature"] == 0

    async def test_language_is_optional(self, fake_client):
        fake_client.audio.transcriptions.texts = ["hello"]
        transcriber = Transcriber(fake_client, model="whisper-test")

        await transcriber.transcribe(b"data", "audio/wav")

        assert "language" not in fake_client.transcription_calls[0]

    async def test_empty_clip_is_not_uploaded(self, transcriber, fake_client):
        with pytest.raises(EmptyTranscriptError):
            await transcriber.transcribe(b"", "audio/wav")

        assert fake_client.transcription_calls == []

    async def test_no_speech_detected(self, transcriber, fake_client):
        fake_client.audio.transcriptions.texts = ["   "]

        with pytest.raises(EmptyTranscriptError):
            await transcriber.transcribe(b"data", "audio/wav")

    async def test_api_errors_become_network_failures(self, transcriber, fake_client):
        fake_client.audio.transcriptions.texts = [connection_error()]

        with pytest.raises(NetworkFailure):
            await transcriber.transcribe(b"data", "audio/wav")
