"""State models for the live camera/microphone session."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Optional


class Facing(str, Enum):
	FRONT = "front"
	BACK = "back"

	@property
	def opposite(self) -> "Facing":
		return Facing.BACK if self is Facing.FRONT else Facing.FRONT


class CaptureState(str, Enum):
	STARTING = "starting"
	READY = "ready"
	RECORDING = "recording"
	PROCESSING = "processing"
	ERROR = "error"
	CLOSED = "closed"


class CaptureErrorReason(str, Enum):
	PERMISSION_DENIED = "permission_denied"
	DEVICE_NOT_FOUND = "device_not_found"
	UNKNOWN = "unknown"


@dataclass(frozen=True)
class Exchange:
	"""One spoken question and the model's reply."""

	user_text: str
	reply: str


@dataclass
class CaptureSession:
	"""Live capture state owned by a single LiveCaptureLoop."""

	facing: Facing = Facing.FRONT
	window_size: int = 2
	stream: Any = None
	state: CaptureState = CaptureState.STARTING
	recording: bool = False
	camera_enabled: bool = True
	last_frame: Optional[str] = None
	status: str = "Waiting..."
	last_ai_response: str = ""
	error_reason: Optional[CaptureErrorReason] = None
	conversation_window: Deque[Exchange] = field(init=False)

	def __post_init__(self) -> None:
		self.conversation_window = deque(maxlen=self.window_size)

	def remember(self, user_text: str, reply: str) -> None:
		"""Append an exchange, dropping the oldest once the window is full."""
		if self.window_size:
			self.conversation_window.append(Exchange(user_text=user_text, reply=reply))

	def to_dict(self) -> Dict[str, Any]:
		return {
			"state": self.state.value,
			"status": self.status,
			"facing": self.facing.value,
			"recording": self.recording,
			"camera_enabled": self.camera_enabled,
			"last_ai_response": self.last_ai_response,
			"error_reason": self.error_reason.value if self.error_reason else None,
		}
