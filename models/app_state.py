"""Process-wide interaction state shared by the dispatcher and reveal engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from models.conversation_models import Mode, PendingAttachment


@dataclass
class AppState:
	"""Explicit replacement for the UI's global flags.

	Each field has one writer: controllers own `mode` and `pending_attachment`,
	the request dispatcher owns `loading`, the reveal engine owns `typing`.
	"""

	mode: Mode = Mode.NORMAL
	pending_attachment: Optional[PendingAttachment] = None
	loading: bool = False
	typing: bool = False

	@property
	def busy(self) -> bool:
		return self.loading or self.typing

	def set_mode(self, mode: Mode) -> Mode:
		self.mode = Mode(mode)
		return self.mode

	def take_attachment(self) -> Optional[PendingAttachment]:
		"""Return the pending attachment and clear it for the next turn."""
		attachment, self.pending_attachment = self.pending_attachment, None
		return attachment

	def to_dict(self) -> dict:
		return {
			"mode": self.mode.value,
			"loading": self.loading,
			"typing": self.typing,
			"attachment": self.pending_attachment.to_dict() if self.pending_attachment else None,
		}
