"""Dispatch live capture websocket events to the capture loop."""
from __future__ import annotations

from typing import Any, Callable, Dict

from models.capture_models import CaptureState
from services.live.capture_loop import LiveCaptureLoop

Send = Callable[[Dict[str, Any]], None]


class LiveSessionHandler:
	"""Route websocket messages for one live camera session."""

	def __init__(self, loop: LiveCaptureLoop, send: Send) -> None:
		self.loop = loop
		self.send = send

	async def handle(self, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "live.record.toggle":
				accepted = await self.loop.toggle_recording()
			elif message_type == "live.record.start":
				accepted = await self.loop.start_recording()
			elif message_type == "live.record.stop":
				accepted = await self.loop.stop_recording()
			elif message_type == "live.camera.toggle":
				self.loop.toggle_camera()
				accepted = True
			elif message_type == "live.facing.switch":
				accepted = await self.loop.switch_facing()
			elif message_type == "live.retry":
				accepted = self.loop.state == CaptureState.ERROR and await self.loop.start()
			elif message_type == "live.state":
				accepted = True
			else:
				raise ValueError("Unsupported message type.")
			self.send(
				{
					"type": "live.ack",
					"request_id": request_id,
					"accepted": bool(accepted),
					**self.loop.session.to_dict(),
				}
			)
		except Exception as exc:
			self.send({"type": "error", "request_id": request_id, "detail": str(exc)})
