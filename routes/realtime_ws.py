"""WebSocket endpoints for the chat view and the live camera session."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Dict, Set

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.live.capture_loop import LiveCaptureLoop
from services.realtime.ws_chat import ChatSessionHandler
from services.realtime.ws_live import LiveSessionHandler

router = APIRouter()
logger = logging.getLogger(__name__)


async def _forward(websocket: WebSocket, outbox: asyncio.Queue) -> None:
	"""Send queued events to the socket in order."""
	while True:
		event = await outbox.get()
		await websocket.send_text(json.dumps(event, ensure_ascii=False))


async def _receive_payload(websocket: WebSocket, outbox: asyncio.Queue) -> Dict[str, Any] | None:
	"""Return the next JSON payload, reporting malformed frames on the outbox."""
	raw = await websocket.receive_text()
	try:
		payload = json.loads(raw)
	except Exception:
		outbox.put_nowait({"type": "error", "detail": "Payload must be JSON"})
		return None
	if not isinstance(payload, dict):
		outbox.put_nowait({"type": "error", "detail": "Payload must be a JSON object"})
		return None
	return payload


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
	"""Accept chat turns and stream reveal/state events back."""
	await websocket.accept()
	hub = websocket.app.state.event_hub
	outbox = hub.subscribe()
	sender = asyncio.create_task(_forward(websocket, outbox))
	handler = ChatSessionHandler(websocket.app.state.dispatcher, websocket.app.state.app_state, outbox.put_nowait)
	outbox.put_nowait({"type": "chat.state", **websocket.app.state.app_state.to_dict()})
	try:
		while True:
			try:
				payload = await _receive_payload(websocket, outbox)
			except WebSocketDisconnect:
				break
			if payload is not None:
				handler.handle(payload)
	finally:
		hub.unsubscribe(outbox)
		sender.cancel()
		with contextlib.suppress(asyncio.CancelledError, Exception):
			await sender
		with contextlib.suppress(Exception):
			await websocket.close()


@router.websocket("/ws/live")
async def live_socket(websocket: WebSocket):
	"""Run one live capture session for as long as the socket stays open."""
	await websocket.accept()
	state = websocket.app.state
	settings = state.settings
	outbox: asyncio.Queue = asyncio.Queue()
	sender = asyncio.create_task(_forward(websocket, outbox))
	pending: Set[asyncio.Task] = set()

	loop = LiveCaptureLoop(
		state.media_devices,
		state.transcriber,
		state.completion_service,
		state.speech_output,
		frame_interval=settings.live_frame_interval,
		window_size=settings.live_window_exchanges,
		max_tokens=settings.live_max_tokens,
		spoken_apology=settings.live_spoken_apology,
		frame_encoder=state.frame_encoder,
		on_change=lambda session: outbox.put_nowait({"type": "live.status", **session}),
	)
	try:
		async with loop:
			handler = LiveSessionHandler(loop, outbox.put_nowait)
			while True:
				try:
					payload = await _receive_payload(websocket, outbox)
				except WebSocketDisconnect:
					break
				if payload is None:
					continue
				task = asyncio.create_task(handler.handle(payload))
				pending.add(task)
				task.add_done_callback(pending.discard)
			for task in list(pending):
				task.cancel()
	finally:
		for task in list(pending):
			task.cancel()
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)
		sender.cancel()
		with contextlib.suppress(asyncio.CancelledError, Exception):
			await sender
		with contextlib.suppress(Exception):
			await websocket.close()
		logger.debug("Live session closed")
