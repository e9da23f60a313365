from __future__ import annotations
import logging
import re
from typing import Optional

from ..errors import GenerationError
from ..gemini_client import GeminiClient
from ..levels import content_type_display, level_display
from .animations import AnimationResolver
from .refinement import ICON_BASE_URL, WRAPPER_OPEN

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```[a-zA-Z]*\s*")
_MD_LIST_PREFIX = re.compile(r"^(?:[-*+]|\d+\.)\s+", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")


def _modify_prompt(selected_text: str, instruction: str, level: str, content_type: str) -> str:
	target = level_display(level)
	kind = content_type_display(content_type)
	return f"""
Original text: "{selected_text}"
Instruction: {instruction}
Target Level: {target}
Content Type: {kind}

Return the response in HTML format only. Do not use markdown.

Modify the text according to the instruction while keeping these rules:
1. Match the complexity and language of the target level ({target})
2. Keep the style consistent with the content type ({kind})
3. Preserve the core meaning and information
4. Use these HTML structures and classes:
   - Main container: {WRAPPER_OPEN}...</div>
   - Headings: <h2 class="content-subtitle"><img src="{ICON_BASE_URL}idea.svg" class="flat-color-icon" alt="Idea icon" />Subtitle</h2>
   - Lists: <ul class="content-list"><li class="content-list-item"><img src="{ICON_BASE_URL}checkmark.svg" class="flat-color-icon" alt="Checkmark icon" />List item</li></ul>
   - Blockquotes: <blockquote class="content-quote">...</blockquote>
   - Important text: <div class="content-highlight"><img src="{ICON_BASE_URL}info.svg" class="flat-color-icon" alt="Important icon" />...</div>
   - Code blocks: <div class="content-code"><pre><code>...</code></pre></div>
   - Animations: [animation: search_term : detailed_prompt] where search_term is a short keyword and detailed_prompt describes what the animation should show

Return ONLY the modified HTML. The response must start with the main container div.
""".strip()


def strip_markdown_artifacts(text: str) -> str:
	text = _FENCE.sub("", text)
	text = text.replace("`", "").replace("**", "")
	text = _MD_LIST_PREFIX.sub("", text)
	return _BLANK_RUNS.sub("\n\n", text).strip()


class TextModifier:
	"""Rewrites a selected passage of a page following a learner's instruction."""

	def __init__(self, client: GeminiClient, animations: Optional[AnimationResolver] = None) -> None:
		self.client = client
		self.animations = animations or AnimationResolver()

	async def modify(self, selected_text: str, instruction: str, level: str, content_type: str) -> str:
		try:
			text = await self.client.generate(_modify_prompt(selected_text, instruction, level, content_type))
		except Exception as e:
			raise GenerationError(f"Text modification request failed: {e}") from e
		if not (text or "").strip():
			raise GenerationError("Empty response from the generation backend")
		html = strip_markdown_artifacts(text)
		if '<div class="content-wrapper' not in html:
			html = f"{WRAPPER_OPEN}{html}</div>"
		return self.animations.process_animation_placeholders(html)
