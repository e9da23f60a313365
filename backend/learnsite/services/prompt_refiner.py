from __future__ import annotations
import logging

from ..gemini_client import GeminiClient
from ..levels import content_type_prompt, level_audience

logger = logging.getLogger(__name__)


def _refinement_prompt(original_prompt: str, level: str, content_type: str) -> str:
	audience = level_audience(level)
	length = content_type_prompt(content_type)
	return (
		"You are a sophisticated website content generator. Your task is to take a simple user prompt for a concept "
		"and expand it into a detailed request, considering the user's specified level and content type.\n\n"
		f"**User Prompt:** {original_prompt}\n\n"
		f"**Level:** {audience}\n\n"
		f"**Content Type:** {length}\n\n"
		"**Instructions:**\n"
		f'1. Identify the key aspects of "{original_prompt}" that are most educational.\n'
		f'2. Tailor the explanation and depth of information based on the "{audience}" level.\n'
		f'3. Adjust the length and detail of the content based on the "{length}" preference.\n'
		"4. Include requirements for animations, illustrations, topic-wise information, and references.\n"
		"5. Return ONLY the refined prompt as a single paragraph with no explanations.\n\n"
		"**Refined Prompt:**"
	)


class PromptRefiner:
	"""Expands a short topic into a detailed generation prompt."""

	def __init__(self, client: GeminiClient) -> None:
		self.client = client

	async def refine(self, original_prompt: str, level: str, content_type: str) -> str:
		try:
			text = await self.client.generate(_refinement_prompt(original_prompt, level, content_type))
		except Exception as e:
			logger.warning("Prompt refinement failed, using the original prompt: %s", e)
			return original_prompt
		refined = (text or "").strip()
		if not refined:
			logger.warning("Prompt refinement returned nothing, using the original prompt")
			return original_prompt
		return refined
