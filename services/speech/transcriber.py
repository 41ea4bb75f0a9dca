"""Transcribe recorded clips through the OpenAI-compatible transcription endpoint."""

from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from utils.errors import EmptyTranscriptError, NetworkFailure

logger = logging.getLogger(__name__)


def filename_for_mime(mime_type: str) -> str:
	"""Return a filename for a given audio or video MIME type.

	Map common MIME types to extensions accepted by the transcription
	service. Unknown types raise ValueError so callers never upload a clip
	the API cannot decode.
	"""
	# Strip any MIME parameters (e.g. 'audio/webm;codecs=opus') and normalize
	mime = (mime_type or "").lower().split(";", 1)[0].strip()
	mapping = {
		"audio/webm": "webm",
		"video/webm": "webm",
		"audio/wav": "wav",
		"audio/x-wav": "wav",
		"audio/mpeg": "mp3",
		"audio/mp3": "mp3",
		"audio/mp4": "m4a",
		"video/mp4": "mp4",
		"audio/m4a": "m4a",
		"audio/aac": "m4a",
		"audio/ogg": "ogg",
		"audio/opus": "ogg",
		"audio/flac": "flac",
		"audio/x-flac": "flac",
	}
	if mime in mapping:
		suffix = mapping[mime]
	elif "/" in mime and mime.split("/")[-1] in {"webm", "wav", "mp3", "mp4", "mpeg", "mpga", "oga", "ogg", "flac", "m4a"}:
		suffix = mime.split("/")[-1]
	else:
		raise ValueError(f"Unsupported or unknown audio MIME type: '{mime_type}'")
	return f"clip.{suffix}"


class Transcriber:
	"""Convert recorded clips into text."""

	def __init__(
		self,
		client: AsyncOpenAI,
		*,
		model: str = "whisper-large-v3",
		language: Optional[str] = None,
	) -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client
		self.model = model
		self.language = language

	async def transcribe(self, clip: bytes, mime_type: str = "audio/webm") -> str:
		"""Return the whitespace-trimmed transcript for `clip`.

		Raises:
			EmptyTranscriptError: the clip is empty or no speech was detected.
			NetworkFailure: the transcription request failed.
		"""
		if not clip:
			raise EmptyTranscriptError("Clip contains no audio data.")

		filename = filename_for_mime(mime_type)
		params = {
			"model": self.model,
			"file": (filename, clip, mime_type.split(";", 1)[0]),
			"response_format": "json",
			"temperature": 0,
		}
		if self.language:
			params["language"] = self.language

		try:
			response = await self.client.audio.transcriptions.create(**params)
		except openai.APIError as exc:
			logger.error("Transcription request failed: %s", exc)
			raise NetworkFailure(f"Transcription failed: {exc}") from exc

		transcript = (getattr(response, "text", None) or "").strip()
		if not transcript:
			raise EmptyTranscriptError("No speech detected.")
		return transcript
