"""Conversation, mode and attachment helpers behind the REST routes."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request, UploadFile

from models.app_state import AppState
from models.conversation_models import Conversation, Mode
from services.chat.reveal_engine import RevealEngine
from services.conversation_store import ConversationStore
from utils.media_validation import read_image_attachment


def _store(request: Request) -> ConversationStore:
	return request.app.state.conversation_store


def _app_state(request: Request) -> AppState:
	return request.app.state.app_state


def _reveal(request: Request) -> RevealEngine:
	return request.app.state.reveal_engine


def _require(store: ConversationStore, conversation_id: str) -> Conversation:
	conversation = store.get(conversation_id)
	if conversation is None:
		raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
	return conversation


async def list_conversations(request: Request) -> Dict[str, Any]:
	store = _store(request)
	return {
		"current_id": store.current_id,
		"conversations": [{"id": c.id, "title": c.title, "message_count": len(c.messages)} for c in store.conversations],
		"state": _app_state(request).to_dict(),
	}


async def get_conversation(request: Request, conversation_id: str) -> Dict[str, Any]:
	conversation = _require(_store(request), conversation_id)
	return _reveal(request).render(conversation)


async def create_conversation(request: Request) -> Dict[str, Any]:
	conversation = _store(request).create_conversation()
	return conversation.to_dict()


async def select_conversation(request: Request, conversation_id: str) -> Dict[str, Any]:
	store = _store(request)
	conversation = _require(store, conversation_id)
	store.select(conversation.id)
	return _reveal(request).render(conversation)


async def delete_conversation(request: Request, conversation_id: str) -> Dict[str, Any]:
	store = _store(request)
	_require(store, conversation_id)
	store.delete_conversation(conversation_id)
	request.app.state.event_hub.toast("Conversation deleted")
	return {"deleted": conversation_id, "current_id": store.current_id}


async def toggle_feedback(request: Request, conversation_id: str, index: int, flag: str) -> Dict[str, Any]:
	"""Flip `liked` or `disliked` on one message."""
	store = _store(request)
	_require(store, conversation_id)
	if flag == "liked":
		message = store.toggle_liked(conversation_id, index)
	elif flag == "disliked":
		message = store.toggle_disliked(conversation_id, index)
	else:
		raise HTTPException(status_code=400, detail=f"Unknown feedback flag: {flag}")
	if message is None:
		raise HTTPException(status_code=404, detail=f"Message {index} not found")
	return {"index": index, **message.to_dict()}


async def speak_message(request: Request, conversation_id: str, index: int) -> Dict[str, Any]:
	conversation = _require(_store(request), conversation_id)
	if not 0 <= index < len(conversation.messages):
		raise HTTPException(status_code=404, detail=f"Message {index} not found")
	request.app.state.speech_output.speak(conversation.messages[index].content)
	return {"speaking": True, "index": index}


async def stop_speech(request: Request) -> Dict[str, Any]:
	request.app.state.speech_output.cancel()
	return {"speaking": False}


async def set_mode(request: Request, mode: Mode) -> Dict[str, Any]:
	state = _app_state(request)
	state.set_mode(mode)
	return state.to_dict()


async def set_attachment(request: Request, image_file: UploadFile) -> Dict[str, Any]:
	state = _app_state(request)
	state.pending_attachment = await read_image_attachment(image_file)
	return state.to_dict()


async def clear_attachment(request: Request) -> Dict[str, Any]:
	state = _app_state(request)
	state.pending_attachment = None
	return state.to_dict()
