from __future__ import annotations
import logging
import math
from collections import Counter
from typing import Any, Dict, List

from ..errors import OutlineError
from ..gemini_client import GeminiClient
from ..html_utils import extract_json_object
from ..levels import content_type_prompt, level_display
from ..schemas import Outline, Subtopic, Topic

logger = logging.getLogger(__name__)

REFERENCES_TITLE = "References"


def _outline_prompt(refined_prompt: str, level: str, content_type: str) -> str:
	return f"""
You are an expert website architect and educational content planner. Your task is to analyze a refined topic prompt and generate a structured website outline for an educational website, considering the specified level and content type.

**Refined Topic Prompt:** "{refined_prompt}"

**Level:** {level_display(level)}

**Content Type:** {content_type_prompt(content_type)}

**Instructions:**
1. Analyze the refined topic and extract the core concepts and learning objectives.
2. Organize the topic into logical sections with **topics and subtopics**, ensuring depth and complexity align with the specified **"Level"**.
3. Determine the optimal number of pages needed to cover the topic, adjusting detail and length based on **"Content Type"**.
4. Generate **clear and concise page titles** that accurately reflect the content of each page.
5. Provide a **more detailed summary** (4-6 sentences) of the content that should be included on each page, outlining key points, examples, and intended learning outcomes, adjusting the detail and vocabulary based on the "Level".
6. Determine whether **images, simulations, animations, tables or lists** should be included for each page.
    - Return these as an **array of strings** in "requires", e.g. ["Image", "Simulation"] or [] if none.
7. Number pages sequentially from 1 across the whole website; every page number must be unique.
8. **Ensure the last topic (containing the last page, with page number equal to totalPages) has the title "References".**
9. Output the website structure outline in **strict JSON format ONLY**, with NO explanations or additional text.

**Example JSON Format:**
{{
    "topics": [
        {{
            "title": "Topic Title",
            "subtopics": [
                {{
                    "title": "Subtopic Title",
                    "page": 1,
                    "summary": "Short summary of the content.",
                    "requires": ["Image", "Simulation"]
                }}
            ]
        }}
    ],
    "totalPages": 5
}}
""".strip()


def _is_number(value: Any) -> bool:
	if isinstance(value, bool):
		return False
	if isinstance(value, int):
		return True
	return isinstance(value, float) and math.isfinite(value)


def _validate_outline_data(data: Dict[str, Any]) -> Outline:
	topics = data.get("topics")
	if not isinstance(topics, list) or not topics:
		raise OutlineError("Outline is missing a non-empty topics array")
	parsed: List[Topic] = []
	for t_index, topic in enumerate(topics, start=1):
		if not isinstance(topic, dict):
			raise OutlineError(f"Topic {t_index} is not an object")
		title = topic.get("title")
		subtopics = topic.get("subtopics")
		if not isinstance(title, str) or not title.strip():
			raise OutlineError(f"Topic {t_index} has no title")
		if not isinstance(subtopics, list):
			raise OutlineError(f"Topic '{title}' has no subtopics array")
		items: List[Subtopic] = []
		for s_index, sub in enumerate(subtopics, start=1):
			if not isinstance(sub, dict):
				raise OutlineError(f"Subtopic {s_index} of '{title}' is not an object")
			sub_title = sub.get("title")
			summary = sub.get("summary")
			page = sub.get("page")
			if not isinstance(sub_title, str) or not sub_title.strip():
				raise OutlineError(f"Subtopic {s_index} of '{title}' has no title")
			if not isinstance(summary, str):
				raise OutlineError(f"Subtopic '{sub_title}' has no summary")
			if not _is_number(page):
				raise OutlineError(f"Subtopic '{sub_title}' has no numeric page")
			requires = sub.get("requires")
			if isinstance(requires, list):
				requires = [r for r in requires if isinstance(r, str)]
			else:
				requires = []
			items.append(Subtopic(title=sub_title.strip(), page=int(page), summary=summary.strip(), requires=requires))
		parsed.append(Topic(title=title.strip(), subtopics=items))
	return Outline(topics=parsed, total_pages=sum(len(t.subtopics) for t in parsed))


def normalize_outline(outline: Outline) -> Outline:
	"""Force the References topic last and renumber pages 1..N in traversal order."""
	topics = [t.model_copy(deep=True) for t in outline.topics]
	if topics and topics[-1].title != REFERENCES_TITLE:
		topics[-1].title = REFERENCES_TITLE

	pages = [s.page for t in topics for s in t.subtopics]
	duplicates = sorted(p for p, n in Counter(pages).items() if n > 1)
	if duplicates:
		logger.warning("Outline has duplicate page numbers %s; renumbering sequentially", duplicates)

	number = 0
	for topic in topics:
		for sub in topic.subtopics:
			number += 1
			sub.page = number
	return Outline(topics=topics, total_pages=number)


def parse_outline(raw: str) -> Outline:
	try:
		data = extract_json_object(raw)
	except ValueError as e:
		raise OutlineError(f"Failed to parse outline: {e}", raw=raw) from e
	return normalize_outline(_validate_outline_data(data))


class OutlineGenerator:
	def __init__(self, client: GeminiClient) -> None:
		self.client = client

	async def generate_outline(self, refined_prompt: str, level: str, content_type: str) -> Outline:
		try:
			raw = await self.client.generate(_outline_prompt(refined_prompt, level, content_type))
		except Exception as e:
			raise OutlineError(f"Outline generation request failed: {e}") from e
		outline = parse_outline(raw)
		logger.info("Generated outline with %d topics and %d pages", len(outline.topics), outline.total_pages)
		return outline
