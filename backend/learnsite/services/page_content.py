from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..gemini_client import GeminiClient
from ..levels import content_type_prompt, level_display
from .outline import REFERENCES_TITLE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageResult:
	"""Outcome of generating one page: html on success, a reason on failure."""

	ok: bool
	html: str = ""
	reason: Optional[str] = None

	@classmethod
	def success(cls, html: str) -> "PageResult":
		return cls(ok=True, html=html)

	@classmethod
	def failure(cls, reason: str) -> "PageResult":
		return cls(ok=False, reason=reason)


def _visual_instructions(requires: List[str]) -> List[str]:
	lines: List[str] = []
	if "Image" in requires:
		lines.append(
			"Include at least one illustration using EXACTLY this placeholder syntax: "
			"[image:<short search phrase>:<detailed description for generating the image>]. "
			"The short phrase must not contain ':' or ']'."
		)
	if "Animation" in requires or "Simulation" in requires:
		lines.append(
			"Include an interactive animation or simulation using EXACTLY this placeholder syntax: "
			"[animation: <one or two keyword search term> : <description of what it should show>]."
		)
	if "Table" in requires:
		lines.append("Present comparative or numerical information in an HTML <table>.")
	if "List" in requires:
		lines.append("Summarise key points in an HTML <ul> list.")
	return lines


def _page_prompt(
	refined_prompt: str,
	level: str,
	content_type: str,
	page_title: str,
	page_summary: str,
	page_number: int,
	requires: List[str],
) -> str:
	display = level_display(level)
	lines = [
		"You are a highly skilled website content creator and educational material developer. Your task is to generate "
		"the exact content for a specific page of an educational website, based on the provided page outline, level, "
		"content type, and visual aid requirements.",
		"",
		f"**Website Brief:** {refined_prompt}",
		"",
		"**Page Outline:**",
		f"* **Page Number:** {page_number}",
		f"* **Page Title:** {page_title}",
		f"* **Summary:** {page_summary}",
		f"* **Image:** {'Yes' if 'Image' in requires else 'No'}",
		f"* **Simulation:** {'Yes' if 'Simulation' in requires else 'No'}",
		f"* **Animation:** {'Yes' if 'Animation' in requires else 'No'}",
		"",
		f"**Level:** {display}",
		f"**Content Type:** {content_type_prompt(content_type)}",
		"",
		"**Instructions:**",
		f'1. Generate the content for "{page_title}", expanding significantly on the summary and thoroughly covering the topic.',
		f'2. Tailor the language, depth, and complexity to the "{display}" level, with in-depth explanations and examples.',
		f'3. Adjust the length and detail to "{content_type_prompt(content_type)}".',
		"4. Generate the content in HTML using only these tags and class names:",
		"    * Headings: <h1>, <h2>, <h3>",
		"    * Paragraphs: <p>",
		"    * Lists: <ul>, <li>",
		"    * Emphasis: <strong> for bold text",
		'    * Highlights: <span class="highlight">',
		'    * Boxed Content: <div class="box">',
		'    * Important Text: <span class="important">',
		"5. For any mathematical expressions use KaTeX delimiters: \\(...\\) for inline math and \\[...\\] for block math.",
	]
	extra = _visual_instructions(requires)
	if page_title.strip().lower() == REFERENCES_TITLE.lower():
		extra.append(
			"This is the References page: output a <ul> citation list of reputable books, articles and websites "
			"used for this topic, one <li> per source, with authors, title, year and URL where available."
		)
	for offset, line in enumerate(extra, start=6):
		lines.append(f"{offset}. {line}")
	lines.append(f"{6 + len(extra)}. Return only the HTML content, without any extra text, explanations or markdown fences.")
	return "\n".join(lines)


class PageContentGenerator:
	"""Generates raw HTML for one subtopic, memoised for the lifetime of the object."""

	def __init__(self, client: GeminiClient) -> None:
		self.client = client
		self._memo: Dict[Tuple[str, str, str], str] = {}

	async def generate_page_content(
		self,
		refined_prompt: str,
		level: str,
		content_type: str,
		page_title: str,
		page_summary: str,
		page_number: int,
		requires: Optional[List[str]] = None,
	) -> PageResult:
		memo_key = (page_title, level, content_type)
		if memo_key in self._memo:
			return PageResult.success(self._memo[memo_key])
		prompt = _page_prompt(refined_prompt, level, content_type, page_title, page_summary, page_number, requires or [])
		try:
			text = await self.client.generate(prompt)
		except Exception as e:
			logger.error("Error generating page %d (%s): %s", page_number, page_title, e)
			return PageResult.failure(f"Error generating content: {e}")
		html = (text or "").strip()
		if not html:
			return PageResult.failure("Error generating content: empty response")
		self._memo[memo_key] = html
		return PageResult.success(html)
