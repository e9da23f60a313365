from __future__ import annotations
import logging
from typing import Dict, Optional, Tuple

from ..gemini_client import GeminiClient
from ..html_utils import markdown_bold_to_html, strip_code_fences
from ..levels import content_type_prompt, level_display

logger = logging.getLogger(__name__)

ICON_BASE_URL = "https://cdn.jsdelivr.net/gh/icons8/flat-color-icons@master/svg/"

WRAPPER_OPEN = '<div class="content-wrapper prose dark:prose-invert max-w-none">'


def _refinement_prompt(raw_content: str, level: Optional[str], content_type: Optional[str]) -> str:
	audience = ""
	if level:
		audience += f"- Adjust tone and complexity for a {level_display(level)} audience.\n"
	if content_type:
		audience += f"- Adjust verbosity for {content_type_prompt(content_type)} content.\n"
	return f"""
You are an expert content refiner focused on maintaining perfect design consistency. Your task is to refine the HTML content while preserving the website's design system.

**Input HTML Content:**
```html
{raw_content}
```

**Design System Requirements:**
1. Maintain these class names and structure:
   - Main container: {WRAPPER_OPEN}
   - Headings: <h2 class="content-subtitle"><img src="{ICON_BASE_URL}idea.svg" class="flat-color-icon" alt="Idea icon" />Subtitle</h2>
   - Lists: <ul class="content-list"><li class="content-list-item"><img src="{ICON_BASE_URL}checkmark.svg" class="flat-color-icon" alt="Checkmark icon" />List item</li></ul>
   - Tables: <div class="content-table-wrapper"><table class="content-table">...</table></div>
   - Blockquotes: <blockquote class="content-quote">...</blockquote>
   - Important text: <div class="content-highlight"><img src="{ICON_BASE_URL}info.svg" class="flat-color-icon" alt="Important icon" />...</div>
   - Code blocks: <div class="content-code"><pre><code>...</code></pre></div>
   - Illustrations: <div class="content-illustration"><h4>Illustration Title</h4>[image: {{search_term}} : {{detailed_prompt}}]<p>Caption text here</p></div>
2. Keep every existing [image:...] and [animation:...] placeholder exactly as written.
3. Keep math expressions in \\(...\\) and \\[...\\] delimiters.
4. Improve readability, heading hierarchy and accessibility (descriptive alt text, semantic elements).
{audience}
Return ONLY the refined HTML content. Do not include any markdown or additional text.
""".strip()


def post_process_html(html: str) -> str:
	html = strip_code_fences(html)
	html = markdown_bold_to_html(html)
	html = html.replace("&lt;", "<").replace("&gt;", ">")
	if '<div class="content-wrapper' not in html:
		html = f"{WRAPPER_OPEN}{html}</div>"
	return html


class ContentRefiner:
	"""Polishes generated page HTML; memoised by the raw HTML, level and content type."""

	def __init__(self, client: GeminiClient) -> None:
		self.client = client
		self._memo: Dict[Tuple[str, Optional[str], Optional[str]], str] = {}

	async def refine(self, raw_content: str, *, level: Optional[str] = None, content_type: Optional[str] = None) -> str:
		memo_key = (raw_content, level, content_type)
		if memo_key in self._memo:
			return self._memo[memo_key]
		try:
			text = await self.client.generate(_refinement_prompt(raw_content, level, content_type))
		except Exception as e:
			logger.warning("Content refinement failed, keeping unrefined content: %s", e)
			return raw_content
		if not (text or "").strip():
			logger.warning("Content refinement returned nothing, keeping unrefined content")
			return raw_content
		refined = post_process_html(text)
		self._memo[memo_key] = refined
		return refined
