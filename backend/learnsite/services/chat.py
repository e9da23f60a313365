from __future__ import annotations
import logging

from ..gemini_client import GeminiClient
from ..levels import level_display

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Something went wrong. Please try again."


class ChatService:
	"""Answers learner questions about the topic they are reading."""

	def __init__(self, client: GeminiClient) -> None:
		self.client = client

	async def reply(self, message: str, prompt_title: str, level: str) -> str:
		prompt = (
			f'Context: User asks about "{prompt_title}" at "{level_display(level)}" level. '
			"Provide a brief, clear response.\n"
			f"User: {message}"
		)
		try:
			text = await self.client.generate(prompt)
		except Exception as e:
			logger.warning("Chat reply failed: %s", e)
			return FALLBACK_REPLY
		text = (text or "").strip()
		if not text:
			logger.warning("Chat reply was empty")
			return "I couldn't process your request."
		return text
