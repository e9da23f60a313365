"""
Content flow - drives one generation run from a topic prompt to finished pages.

    idle -> refiningPrompt -> generatingOutline -> generatingPages -> complete
    (any step) -> error

Each stage checks the cache first. Finished pages are cached and published to
listeners one by one so a client can render them before the run completes.
"""

from __future__ import annotations
import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..cache import CacheService
from ..errors import GenerationError, OutlineError, QuizError
from ..gemini_client import GeminiClient
from ..html_utils import clean_page_html
from ..levels import content_type_display, level_display
from ..schemas import Content, FlowSnapshot, FlowState, Outline, PageContent, Quiz, Subtopic, Topic
from ..settings import settings
from .animations import AnimationResolver
from .images import ImageResolver, ImageSearch
from .outline import REFERENCES_TITLE, OutlineGenerator, normalize_outline
from .page_content import PageContentGenerator
from .prompt_refiner import PromptRefiner
from .quiz import QuizGenerator
from .refinement import ContentRefiner

logger = logging.getLogger(__name__)

Listener = Callable[[FlowSnapshot], None]


def cache_key(kind: str, prompt: str, level: str, content_type: str, *extra: object) -> str:
	return "-".join([kind, prompt, level, content_type, *(str(e) for e in extra)])


@dataclass
class FlowServices:
	prompt_refiner: PromptRefiner
	outline_generator: OutlineGenerator
	page_generator: PageContentGenerator
	content_refiner: ContentRefiner
	image_resolver: ImageResolver
	animation_resolver: AnimationResolver
	quiz_generator: QuizGenerator
	client: Optional[GeminiClient] = None

	@classmethod
	def from_client(cls, client: GeminiClient, search: Optional[ImageSearch] = None) -> "FlowServices":
		return cls(
			prompt_refiner=PromptRefiner(client),
			outline_generator=OutlineGenerator(client),
			page_generator=PageContentGenerator(client),
			content_refiner=ContentRefiner(client),
			image_resolver=ImageResolver(client, search or ImageSearch()),
			animation_resolver=AnimationResolver(),
			quiz_generator=QuizGenerator(client),
			client=client,
		)

	async def aclose(self) -> None:
		await self.image_resolver.search.aclose()
		if self.client is not None:
			await self.client.aclose()


class ContentFlow:
	def __init__(
		self,
		original_prompt: str,
		level: str,
		content_type: str,
		*,
		services: FlowServices,
		cache: CacheService,
		on_update: Optional[Listener] = None,
		page_concurrency: Optional[int] = None,
		skip_references_quiz: Optional[bool] = None,
	) -> None:
		self.original_prompt = original_prompt
		self.level = level
		self.content_type = content_type
		self.services = services
		self.cache = cache
		self.page_concurrency = max(1, page_concurrency or settings.page_concurrency)
		self.skip_references_quiz = (
			settings.quiz_skip_references if skip_references_quiz is None else skip_references_quiz
		)
		self._listeners: List[Listener] = [on_update] if on_update else []

		self.state = FlowState.IDLE
		self.progress = 0.0
		self.refined_prompt: Optional[str] = None
		self.content: Optional[Content] = None
		self.pages: Dict[int, PageContent] = {}
		self.error: Optional[str] = None
		self._completed = 0

	def subscribe(self, listener: Listener) -> None:
		self._listeners.append(listener)

	def snapshot(self) -> FlowSnapshot:
		return FlowSnapshot(
			state=self.state,
			progress=self.progress,
			content=self.content,
			pages=[self.pages[p] for p in sorted(self.pages)],
			error=self.error,
		)

	def _emit(self) -> None:
		snap = self.snapshot()
		for listener in self._listeners:
			listener(snap)

	def _key(self, kind: str, *extra: object) -> str:
		return cache_key(kind, self.original_prompt, self.level, self.content_type, *extra)

	async def start(self) -> FlowSnapshot:
		try:
			refined = await self._refine_prompt()
			content = await self._generate_outline(refined)
			await self._generate_pages(content, refined)
		except OutlineError as e:
			self._fail(f"Failed to generate outline: {e}")
		except QuizError as e:
			self._fail(f"Failed to generate quiz: {e}")
		except GenerationError as e:
			self._fail(f"Failed to generate content: {e}")
		except Exception as e:
			logger.exception("Content generation crashed")
			self._fail(f"Failed to generate content: {e}")
		else:
			self.state = FlowState.COMPLETE
			self.progress = 100.0
			logger.info("Generated %d pages for %r", len(self.pages), self.original_prompt)
			self._emit()
		return self.snapshot()

	def _fail(self, message: str) -> None:
		logger.error(message)
		self.state = FlowState.ERROR
		self.error = message
		self._emit()

	async def _refine_prompt(self) -> str:
		self.state = FlowState.REFINING_PROMPT
		self.progress = 10.0
		self._emit()
		key = self._key("refinedPrompt")
		refined = self.cache.get(key)
		if not refined:
			refined = await self.services.prompt_refiner.refine(self.original_prompt, self.level, self.content_type)
			self.cache.set(key, refined)
		self.refined_prompt = refined
		self.progress = 20.0
		self._emit()
		return refined

	def _cached_content(self, key: str) -> Optional[Content]:
		cached = self.cache.get(key)
		if not cached:
			return None
		try:
			content = Content.model_validate_json(cached)
		except ValidationError as e:
			logger.warning("Ignoring unreadable cached outline %s: %s", key, e)
			return None
		outline = normalize_outline(Outline(topics=content.topics, total_pages=content.total_pages))
		return content.model_copy(update={"topics": outline.topics, "total_pages": outline.total_pages})

	async def _generate_outline(self, refined: str) -> Content:
		self.state = FlowState.GENERATING_OUTLINE
		self._emit()
		key = self._key("outline")
		content = self._cached_content(key)
		if content is None:
			outline = await self.services.outline_generator.generate_outline(refined, self.level, self.content_type)
			content = Content(
				title=self.original_prompt,
				level=level_display(self.level),
				content_type=content_type_display(self.content_type),
				topics=outline.topics,
				total_pages=outline.total_pages,
			)
			self.cache.set(key, content.to_json())
		self.content = content
		self.progress = 40.0
		self._emit()
		return content

	async def _generate_pages(self, content: Content, refined: str) -> None:
		self.state = FlowState.GENERATING_PAGES
		self._emit()
		work: List[Tuple[Topic, Subtopic]] = sorted(
			((topic, sub) for topic in content.topics for sub in topic.subtopics),
			key=lambda item: item[1].page,
		)
		total = len(work)
		if self.page_concurrency == 1:
			for topic, sub in work:
				self._publish(await self._build_page(topic, sub, refined), total)
			return

		semaphore = asyncio.Semaphore(self.page_concurrency)

		async def worker(topic: Topic, sub: Subtopic) -> None:
			async with semaphore:
				page = await self._build_page(topic, sub, refined)
			self._publish(page, total)

		tasks = [asyncio.create_task(worker(topic, sub)) for topic, sub in work]
		try:
			await asyncio.gather(*tasks)
		except BaseException:
			for task in tasks:
				task.cancel()
			raise

	def _publish(self, page: PageContent, total: int) -> None:
		self.pages.setdefault(page.page, page)
		self._completed += 1
		self.progress = 40.0 + (self._completed / total) * 60.0
		self._emit()

	def _needs_quiz(self, topic: Topic, sub: Subtopic) -> bool:
		if not topic.subtopics or sub.page != topic.subtopics[-1].page:
			return False
		return not (self.skip_references_quiz and topic.title == REFERENCES_TITLE)

	async def _build_page(self, topic: Topic, sub: Subtopic, refined: str) -> PageContent:
		key = self._key("page", sub.page, sub.title)
		cached = self.cache.get(key)
		if cached:
			try:
				return PageContent.model_validate_json(cached)
			except ValidationError as e:
				logger.warning("Ignoring unreadable cached page %s: %s", key, e)

		result = await self.services.page_generator.generate_page_content(
			refined,
			self.level,
			self.content_type,
			sub.title,
			sub.summary,
			sub.page,
			sub.requires,
		)
		if not result.ok:
			logger.warning("Page %d (%s) failed: %s", sub.page, sub.title, result.reason)
			return PageContent(
				page=sub.page,
				raw_content=result.reason or "Error generating content.",
				refined_content=(
					f'<p class="page-error">Error generating content for "{html.escape(sub.title)}". '
					"Please try again later.</p>"
				),
			)

		final_html = await self._enrich(result.html)
		quiz: Optional[Quiz] = None
		if self._needs_quiz(topic, sub):
			quiz = await self.services.quiz_generator.generate_quiz(sub.title, final_html, level_display(self.level))
		page = PageContent(page=sub.page, raw_content=result.html, refined_content=final_html, quiz=quiz)
		if not self.cache.set(key, page.to_json()):
			logger.warning("Page %d was not cached; continuing without it", sub.page)
		return page

	async def _enrich(self, raw_html: str) -> str:
		refined = await self.services.content_refiner.refine(
			raw_html, level=self.level, content_type=self.content_type
		)
		page_html = clean_page_html(refined)
		page_html = await self.services.image_resolver.process_content(page_html)
		return self.services.animation_resolver.process_animation_placeholders(page_html)
