from __future__ import annotations
import json
import re
from typing import Any, Dict, Optional

_FENCE = re.compile(r"```[a-zA-Z]*\s*")
_BLOCK_MATH = re.compile(r"\$\$(.*?)\$\$", re.DOTALL)
_INLINE_MATH = re.compile(r"\$(.*?)\$")
_MD_BOLD = re.compile(r"\*\*(.*?)\*\*")


def strip_code_fences(text: str) -> str:
	"""Drop markdown code fences (```json, ```html, bare ```) the model wraps output in."""
	return _FENCE.sub("", text or "").strip()


def _balanced_object_end(text: str, start: int) -> Optional[int]:
	depth = 0
	in_string = False
	escaped = False
	for i in range(start, len(text)):
		ch = text[i]
		if in_string:
			if escaped:
				escaped = False
			elif ch == "\\":
				escaped = True
			elif ch == '"':
				in_string = False
			continue
		if ch == '"':
			in_string = True
		elif ch == "{":
			depth += 1
		elif ch == "}":
			depth -= 1
			if depth == 0:
				return i
	return None


def extract_json_object(text: str) -> Dict[str, Any]:
	"""Return the first top-level JSON object embedded in free text.

	Models often surround JSON with prose or markdown fences, so this scans for
	balanced braces instead of parsing the whole response.
	"""
	text = text or ""
	start = text.find("{")
	while start != -1:
		end = _balanced_object_end(text, start)
		if end is None:
			break
		try:
			data = json.loads(text[start : end + 1])
		except json.JSONDecodeError:
			data = None
		if isinstance(data, dict):
			return data
		start = text.find("{", start + 1)
	raise ValueError("No JSON object found in model output")


def convert_markdown_math(html: str) -> str:
	"""Rewrite $$..$$ and $..$ into the KaTeX \\[..\\] and \\(..\\) delimiters."""
	html = _BLOCK_MATH.sub(lambda m: f"\\[ {m.group(1)} \\]", html)
	return _INLINE_MATH.sub(lambda m: f"\\( {m.group(1)} \\)", html)


def markdown_bold_to_html(html: str) -> str:
	return _MD_BOLD.sub(r'<strong class="font-semibold">\1</strong>', html)


def clean_page_html(html: str) -> str:
	return convert_markdown_math(strip_code_fences(html))
