"""Dispatch chat websocket events to the request dispatcher."""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException

from models.app_state import AppState
from models.conversation_models import Mode
from services.chat.dispatcher import RequestDispatcher
from utils.media_validation import attachment_from_data_uri

Send = Callable[[Dict[str, Any]], None]


class ChatSessionHandler:
	"""Route websocket messages for the chat view."""

	def __init__(self, dispatcher: RequestDispatcher, state: AppState, send: Send) -> None:
		self.dispatcher = dispatcher
		self.state = state
		self.send = send

	def handle(self, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "chat.send":
				result = self._send_message(payload)
			elif message_type == "chat.stop":
				result = {"type": "chat.stopped", "cancelled": self.dispatcher.cancel()}
			elif message_type == "mode.set":
				result = self._set_mode(payload)
			elif message_type == "attachment.set":
				result = self._set_attachment(payload)
			elif message_type == "attachment.clear":
				self.state.pending_attachment = None
				result = {"type": "chat.state", **self.state.to_dict()}
			elif message_type == "chat.state":
				result = {"type": "chat.state", **self.state.to_dict()}
			else:
				raise ValueError("Unsupported message type.")
			if result is not None:
				result["request_id"] = request_id
				self.send(result)
		except HTTPException as exc:
			self._send_error(request_id, str(exc.detail))
		except Exception as exc:
			self._send_error(request_id, str(exc))

	def _send_message(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
		turn = self.dispatcher.submit(payload.get("text") or "")
		if turn is None:
			raise ValueError("Message text or an image is required.")
		return {
			"type": "chat.accepted",
			"conversation_id": turn.conversation_id,
			"operation": turn.operation.value,
		}

	def _set_mode(self, payload: Dict[str, Any]) -> Dict[str, Any]:
		mode = Mode(payload.get("mode") or Mode.NORMAL.value)
		self.state.set_mode(mode)
		return {"type": "chat.state", **self.state.to_dict()}

	def _set_attachment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
		self.state.pending_attachment = attachment_from_data_uri(payload.get("data_uri") or "")
		return {"type": "chat.state", **self.state.to_dict()}

	def _send_error(self, request_id: Any, detail: str) -> None:
		self.send({"type": "error", "request_id": request_id, "detail": detail})
