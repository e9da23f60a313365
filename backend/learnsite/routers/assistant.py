from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..deps import get_client
from ..errors import GenerationError
from ..gemini_client import GeminiClient
from ..levels import CONTENT_TYPES, DEFAULT_LEVEL
from ..services.chat import ChatService
from ..services.text_modifier import TextModifier
from .content import _validate_content_type, _validate_level

router = APIRouter(tags=["assistant"])


class ChatRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	message: str
	prompt_title: str = Field(alias="promptTitle")
	level: str = DEFAULT_LEVEL


class ModifyRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	selected_text: str = Field(alias="selectedText")
	instruction: str
	level: str = DEFAULT_LEVEL
	content_type: str = Field(default=CONTENT_TYPES[0], alias="contentType")


@router.post("/chat")
async def chat(req: ChatRequest, client: GeminiClient = Depends(get_client)):
	if not req.message.strip():
		raise HTTPException(status_code=400, detail="message must not be empty")
	level = _validate_level(req.level)
	reply = await ChatService(client).reply(req.message, req.prompt_title, level)
	return {"reply": reply}


@router.post("/modify")
async def modify(req: ModifyRequest, client: GeminiClient = Depends(get_client)):
	if not req.selected_text.strip() or not req.instruction.strip():
		raise HTTPException(status_code=400, detail="selectedText and instruction are required")
	level = _validate_level(req.level)
	content_type = _validate_content_type(req.content_type)
	try:
		html = await TextModifier(client).modify(req.selected_text, req.instruction, level, content_type)
	except GenerationError as e:
		raise HTTPException(status_code=502, detail=str(e))
	return {"html": html}
