import json
import warnings
from pathlib import Path
from typing import List

import pytest

from conftest import OUTLINE, FakeGemini, FakeSearch, make_services
from learnsite.cache import CacheService
from learnsite.schemas import Content, FlowSnapshot, FlowState, PageContent
from learnsite.services.content_flow import ContentFlow, cache_key


def _flow(client: FakeGemini, cache: CacheService, updates: List[FlowSnapshot], **kwargs) -> ContentFlow:
    return ContentFlow(
        "Photosynthesis",
        "school-kid",
        "concise",
        services=make_services(client, kwargs.pop("search", None)),
        cache=cache,
        on_update=updates.append,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_full_run_completes_with_every_page(cache: CacheService) -> None:
    updates: List[FlowSnapshot] = []
    snap = await _flow(FakeGemini(), cache, updates).start()

    assert snap.state == FlowState.COMPLETE
    assert snap.progress == 100
    assert snap.error is None
    assert snap.content is not None
    assert snap.content.title == "Photosynthesis"
    assert snap.content.level == "School Kid"
    assert snap.content.content_type == "Quick Read"
    assert snap.content.topics[-1].title == "References"
    assert [p.page for p in snap.pages] == [1, 2, 3]
    assert snap.content.total_pages == len(snap.pages)


@pytest.mark.asyncio
async def test_state_sequence_and_progress_are_monotonic(cache: CacheService) -> None:
    updates: List[FlowSnapshot] = []
    await _flow(FakeGemini(), cache, updates).start()

    states = [u.state for u in updates]
    first_seen = list(dict.fromkeys(states))
    assert first_seen == [
        FlowState.REFINING_PROMPT,
        FlowState.GENERATING_OUTLINE,
        FlowState.GENERATING_PAGES,
        FlowState.COMPLETE,
    ]
    progress = [u.progress for u in updates]
    assert progress == sorted(progress)
    assert progress[0] == 10
    assert 20 in progress and 40 in progress
    assert progress[-1] == 100
    page_progress = [u.progress for u in updates if u.state == FlowState.GENERATING_PAGES and u.pages]
    assert page_progress == pytest.approx([60, 80, 100])


@pytest.mark.asyncio
async def test_pages_are_published_one_by_one_in_order(cache: CacheService) -> None:
    updates: List[FlowSnapshot] = []
    await _flow(FakeGemini(), cache, updates).start()

    counts = [len(u.pages) for u in updates if u.state == FlowState.GENERATING_PAGES]
    assert [c for c in counts if c] == [1, 2, 3]
    for u in updates:
        assert [p.page for p in u.pages] == list(range(1, len(u.pages) + 1))


@pytest.mark.asyncio
async def test_page_pipeline_enriches_content(cache: CacheService) -> None:
    search = FakeSearch({"green leaf": ["https://img.example/leaf.jpg"]})
    snap = await _flow(FakeGemini(), cache, [], search=search).start()

    first, second, _ = snap.pages
    assert first.raw_content.startswith("<h1>Sunlight and Leaves</h1>")
    assert "[image:" in first.raw_content
    assert first.refined_content is not None
    assert first.refined_content.startswith('<div class="content-wrapper')
    assert "https://img.example/leaf.jpg" in first.refined_content
    assert "\\( E = h\\nu \\)" in first.refined_content
    assert "[image:" not in first.refined_content
    assert second.refined_content is not None
    assert "states-of-matter" in second.refined_content


@pytest.mark.asyncio
async def test_quiz_generated_for_last_subtopic_of_each_topic(cache: CacheService) -> None:
    client = FakeGemini()
    snap = await _flow(client, cache, []).start()

    assert [p.quiz is not None for p in snap.pages] == [False, True, True]
    quiz_prompts = client.calls_of("quiz")
    assert len(quiz_prompts) == 2
    assert "Topic: Making Food" in quiz_prompts[0]
    assert "Level: School Kid" in quiz_prompts[0]
    assert len(snap.pages[1].quiz.questions) == 6


@pytest.mark.asyncio
async def test_references_quiz_can_be_skipped(cache: CacheService) -> None:
    client = FakeGemini()
    snap = await _flow(client, cache, [], skip_references_quiz=True).start()
    assert [p.quiz is not None for p in snap.pages] == [False, True, False]
    assert len(client.calls_of("quiz")) == 1


@pytest.mark.asyncio
async def test_second_run_is_served_from_cache(cache: CacheService) -> None:
    await _flow(FakeGemini(), cache, []).start()

    client = FakeGemini()
    snap = await _flow(client, cache, []).start()

    assert snap.state == FlowState.COMPLETE
    assert [p.page for p in snap.pages] == [1, 2, 3]
    assert client.calls == []
    assert client.image_calls == []


@pytest.mark.asyncio
async def test_cache_keys_use_prompt_level_and_type(cache: CacheService) -> None:
    await _flow(FakeGemini(), cache, []).start()

    refined = cache.get("refinedPrompt-Photosynthesis-school-kid-concise")
    assert refined is not None and refined.startswith("A detailed")
    outline = Content.model_validate_json(cache.get("outline-Photosynthesis-school-kid-concise"))
    assert outline.total_pages == 3
    page = PageContent.model_validate_json(
        cache.get("page-Photosynthesis-school-kid-concise-2-Making Food")
    )
    assert page.page == 2 and page.quiz is not None
    assert cache_key("page", "P", "expert", "detailed", 1, "Intro") == "page-P-expert-detailed-1-Intro"


@pytest.mark.asyncio
async def test_corrupt_cached_outline_is_regenerated(cache: CacheService, caplog) -> None:
    cache.set("outline-Photosynthesis-school-kid-concise", "{not json")
    client = FakeGemini()
    with caplog.at_level("WARNING"):
        snap = await _flow(client, cache, []).start()
    assert snap.state == FlowState.COMPLETE
    assert len(client.calls_of("outline")) == 1
    assert "unreadable cached outline" in caplog.text


@pytest.mark.asyncio
async def test_cached_refined_prompt_skips_refinement(cache: CacheService) -> None:
    cache.set("refinedPrompt-Photosynthesis-school-kid-concise", "Cached brief about leaves")
    client = FakeGemini()
    await _flow(client, cache, []).start()
    assert client.calls_of("refine_prompt") == []
    assert "Cached brief about leaves" in client.calls_of("outline")[0]


@pytest.mark.asyncio
async def test_prompt_refinement_failure_falls_back_to_original(cache: CacheService) -> None:
    client = FakeGemini(fail_on={"refine_prompt"})
    snap = await _flow(client, cache, []).start()
    assert snap.state == FlowState.COMPLETE
    assert '**Refined Topic Prompt:** "Photosynthesis"' in client.calls_of("outline")[0]


@pytest.mark.asyncio
async def test_outline_failure_halts_with_error(cache: CacheService) -> None:
    updates: List[FlowSnapshot] = []
    client = FakeGemini(fail_on={"outline"})
    snap = await _flow(client, cache, updates).start()

    assert snap.state == FlowState.ERROR
    assert snap.error is not None and snap.error.startswith("Failed to generate outline")
    assert snap.pages == []
    assert client.calls_of("page") == []
    assert updates[-1].state == FlowState.ERROR


@pytest.mark.asyncio
async def test_quiz_failure_halts_and_keeps_earlier_pages(cache: CacheService) -> None:
    client = FakeGemini(quiz=json.dumps({"quizTitle": "short", "questions": []}))
    snap = await _flow(client, cache, []).start()

    assert snap.state == FlowState.ERROR
    assert snap.error is not None and "quiz" in snap.error.lower()
    assert [p.page for p in snap.pages] == [1]
    assert client.calls_of("page") and "Further Reading" not in "".join(client.calls_of("page"))
    assert cache.get("page-Photosynthesis-school-kid-concise-1-Sunlight and Leaves") is not None


@pytest.mark.asyncio
async def test_failed_page_renders_error_and_run_continues(cache: CacheService) -> None:
    client = FakeGemini(fail_pages={"Sunlight and Leaves"})
    snap = await _flow(client, cache, []).start()

    assert snap.state == FlowState.COMPLETE
    failed = snap.pages[0]
    assert failed.refined_content is not None
    assert 'class="page-error"' in failed.refined_content
    assert "Sunlight and Leaves" in failed.refined_content
    assert failed.quiz is None
    assert cache.get("page-Photosynthesis-school-kid-concise-1-Sunlight and Leaves") is None
    assert snap.pages[1].quiz is not None


@pytest.mark.asyncio
async def test_outline_pages_are_renumbered_before_generation(cache: CacheService) -> None:
    outline = json.loads(json.dumps(OUTLINE))
    outline["topics"][0]["subtopics"][1]["page"] = 1
    outline["topics"][1]["subtopics"][0]["page"] = 9
    snap = await _flow(FakeGemini(outline=outline), cache, []).start()
    assert [p.page for p in snap.pages] == [1, 2, 3]
    assert snap.content is not None
    assert [s.page for s in snap.content.subtopics()] == [1, 2, 3]


@pytest.mark.asyncio
async def test_bounded_concurrency_produces_same_pages(cache: CacheService) -> None:
    updates: List[FlowSnapshot] = []
    snap = await _flow(FakeGemini(), cache, updates, page_concurrency=3).start()

    assert snap.state == FlowState.COMPLETE
    assert [p.page for p in snap.pages] == [1, 2, 3]
    assert snap.progress == 100
    progress = [u.progress for u in updates]
    assert progress == sorted(progress)


def test_module_source_compiles_without_escape_warnings() -> None:
    from learnsite.services import content_flow

    source = Path(content_flow.__file__).read_text(encoding="utf-8")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, content_flow.__file__, "exec")
