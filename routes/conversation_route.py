"""FastAPI routes for the conversation list and per-message actions."""

from fastapi import APIRouter, HTTPException, Request

from controllers.conversation_controller import (
	create_conversation,
	delete_conversation,
	get_conversation,
	list_conversations,
	select_conversation,
	speak_message,
	toggle_feedback,
)

router = APIRouter(prefix="/conversations")


@router.get("")
async def list_conversations_route(request: Request):
	try:
		return await list_conversations(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("")
async def create_conversation_route(request: Request):
	try:
		return await create_conversation(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{conversation_id}")
async def get_conversation_route(request: Request, conversation_id: str):
	try:
		return await get_conversation(request, conversation_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{conversation_id}/select")
async def select_conversation_route(request: Request, conversation_id: str):
	try:
		return await select_conversation(request, conversation_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{conversation_id}")
async def delete_conversation_route(request: Request, conversation_id: str):
	try:
		return await delete_conversation(request, conversation_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{conversation_id}/messages/{index}/like")
async def like_message_route(request: Request, conversation_id: str, index: int):
	"""Toggle `liked` on a message and clear `disliked`."""
	try:
		return await toggle_feedback(request, conversation_id, index, "liked")
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{conversation_id}/messages/{index}/dislike")
async def dislike_message_route(request: Request, conversation_id: str, index: int):
	"""Toggle `disliked` on a message and clear `liked`."""
	try:
		return await toggle_feedback(request, conversation_id, index, "disliked")
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{conversation_id}/messages/{index}/speak")
async def speak_message_route(request: Request, conversation_id: str, index: int):
	"""Read a message aloud, interrupting anything already playing."""
	try:
		return await speak_message(request, conversation_id, index)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
