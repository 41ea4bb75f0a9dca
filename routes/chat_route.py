"""FastAPI routes for the active mode, pending attachment and speech."""

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.conversation_controller import clear_attachment, set_attachment, set_mode, stop_speech
from models.conversation_models import Mode

router = APIRouter()


class ModePayload(BaseModel):
	mode: Mode


@router.put("/mode")
async def set_mode_route(request: Request, payload: ModePayload):
	try:
		return await set_mode(request, payload.mode)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/attachment")
async def set_attachment_route(request: Request, file: UploadFile = File(...)):
	"""Hold an uploaded image for the next turn."""
	try:
		return await set_attachment(request, file)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/attachment")
async def clear_attachment_route(request: Request):
	try:
		return await clear_attachment(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/speech/stop")
async def stop_speech_route(request: Request):
	try:
		return await stop_speech(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
