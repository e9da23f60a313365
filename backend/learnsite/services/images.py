from __future__ import annotations
import html
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from ..gemini_client import GeminiClient
from ..settings import settings

logger = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = re.compile(r"\[image:(.*?):(.*?)\]")

CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


@dataclass
class ResolvedImage:
	url: str
	is_generated: bool


class ImageSearch:
	"""Google Programmable Search image lookup."""

	def __init__(self, api_key: Optional[str] = None, cse_id: Optional[str] = None, *, max_results: int = 6) -> None:
		self.api_key = api_key or settings.google_search_api_key
		self.cse_id = cse_id or settings.google_cse_id
		self.max_results = max_results
		self._client = httpx.AsyncClient(timeout=20)

	async def search(self, query: str) -> List[str]:
		if not self.api_key or not self.cse_id:
			return []
		params = {"q": query, "searchType": "image", "key": self.api_key, "cx": self.cse_id}
		try:
			r = await self._client.get(CUSTOM_SEARCH_URL, params=params)
			r.raise_for_status()
			data = r.json()
		except (httpx.HTTPError, ValueError) as e:
			logger.warning("Image search failed for %r: %s", query, e)
			return []
		items = data.get("items") or []
		return [item["link"] for item in items[: self.max_results] if item.get("link")]

	async def aclose(self) -> None:
		await self._client.aclose()


def _image_html(image: ResolvedImage, label: str) -> str:
	alt = html.escape(label, quote=True)
	badge = (
		'<div class="ai-generated-badge" style="position: absolute; bottom: 0; left: 0; right: 0; '
		"background: rgba(0, 0, 0, 0.7); color: white; padding: 4px 8px; font-size: 12px; "
		'border-bottom-left-radius: 8px; border-bottom-right-radius: 8px;">AI Generated</div>'
		if image.is_generated
		else ""
	)
	return (
		'<div class="content-image" style="text-align: center; margin: 10px 0; position: relative;">'
		f'<img src="{html.escape(image.url, quote=True)}" alt="{alt}" title="Prompt: {alt}" '
		'style="width: 300px; height: 200px; object-fit: cover; border-radius: 8px;" />'
		f"{badge}</div>"
	)


def _failure_html(label: str) -> str:
	return f'<p class="image-error" style="color: red;">Failed to load image: {html.escape(label)}</p>'


class ImageResolver:
	"""Replaces [image:<short>:<detailed>] placeholders with image markup."""

	def __init__(self, client: GeminiClient, search: ImageSearch) -> None:
		self.client = client
		self.search = search
		self._generated: Dict[str, str] = {}

	async def generate_image(self, prompt: str) -> Optional[ResolvedImage]:
		if prompt in self._generated:
			return ResolvedImage(url=self._generated[prompt], is_generated=True)
		try:
			data = await self.client.generate_image(
				f"Generate a detailed, educational image for: {prompt}. "
				"The image should be clear, informative, and suitable for educational content."
			)
		except Exception as e:
			logger.warning("Image generation failed for %r: %s", prompt, e)
			return None
		if not data:
			return None
		url = f"data:image/png;base64,{data}"
		self._generated[prompt] = url
		return ResolvedImage(url=url, is_generated=True)

	async def resolve(self, short_prompt: str, detailed_prompt: str) -> Optional[ResolvedImage]:
		links = await self.search.search(short_prompt)
		if links:
			return ResolvedImage(url=links[0], is_generated=False)
		logger.info("No image found for %r, generating one", short_prompt)
		return await self.generate_image(detailed_prompt or short_prompt)

	async def process_content(self, content: str) -> str:
		parts: List[str] = []
		cursor = 0
		for match in IMAGE_PLACEHOLDER.finditer(content):
			short_prompt = match.group(1).strip()
			detailed_prompt = match.group(2).strip()
			image = await self.resolve(short_prompt, detailed_prompt)
			parts.append(content[cursor : match.start()])
			parts.append(_image_html(image, short_prompt) if image else _failure_html(short_prompt))
			cursor = match.end()
		parts.append(content[cursor:])
		return "".join(parts)
