import json
import os
import re
from typing import Any, Dict, Iterable, List, Optional, cast

# Must be set before learnsite.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("GEMINI_API_KEY", "test-key")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from learnsite import models  # noqa: F401  (registers tables on Base)
from learnsite.cache import CacheService
from learnsite.db import Base
from learnsite.services.content_flow import FlowServices


OUTLINE: Dict[str, Any] = {
    "topics": [
        {
            "title": "What is Photosynthesis",
            "subtopics": [
                {
                    "title": "Sunlight and Leaves",
                    "page": 1,
                    "summary": "How leaves catch sunlight.",
                    "requires": ["Image"],
                },
                {
                    "title": "Making Food",
                    "page": 2,
                    "summary": "Plants turn light, water and air into sugar.",
                    "requires": ["Animation"],
                },
            ],
        },
        {
            "title": "Sources",
            "subtopics": [
                {"title": "Further Reading", "page": 3, "summary": "Books and websites.", "requires": []},
            ],
        },
    ],
    "totalPages": 3,
}


def quiz_payload(questions: int = 6, answers: int = 4) -> Dict[str, Any]:
    return {
        "quizTitle": "Photosynthesis Quiz",
        "quizSynopsis": "Check what you learned.",
        "progressBarColor": "#9de1f6",
        "nrOfQuestions": str(questions),
        "questions": [
            {
                "question": f"Question {i}?",
                "questionType": "text",
                "answerSelectionType": "single",
                "answers": [f"Option {a}" for a in range(1, answers + 1)],
                "correctAnswer": "2",
                "messageForCorrectAnswer": "Correct answer. Good job.",
                "messageForIncorrectAnswer": "Incorrect answer. Please try again.",
                "explanation": "Because.",
                "point": "20",
            }
            for i in range(1, questions + 1)
        ],
    }


_PAGE_TITLE = re.compile(r"\*\*Page Title:\*\* (.+)")
_RAW_HTML = re.compile(r"```html\n(.*?)\n```", re.DOTALL)


def classify(prompt: str) -> str:
    if prompt.startswith("You are a sophisticated website content generator"):
        return "refine_prompt"
    if prompt.startswith("You are an expert website architect"):
        return "outline"
    if prompt.startswith("You are a highly skilled website content creator"):
        return "page"
    if prompt.startswith("You are an expert content refiner"):
        return "refine_content"
    if prompt.startswith("Create a quiz"):
        return "quiz"
    if prompt.startswith("Context:"):
        return "chat"
    if prompt.startswith("Original text:"):
        return "modify"
    return "unknown"


class FakeGemini:
    """Stands in for GeminiClient; answers by recognising which stage sent the prompt."""

    def __init__(
        self,
        *,
        outline: Optional[Dict[str, Any]] = None,
        quiz: Optional[Any] = None,
        fail_on: Iterable[str] = (),
        fail_pages: Iterable[str] = (),
        image_data: Optional[str] = "aW1hZ2U=",
        replies: Optional[Dict[str, str]] = None,
    ) -> None:
        self.outline = OUTLINE if outline is None else outline
        self.quiz = quiz_payload() if quiz is None else quiz
        self.fail_on = set(fail_on)
        self.fail_pages = set(fail_pages)
        self.image_data = image_data
        self.replies = replies or {}
        self.calls: List[str] = []
        self.image_calls: List[str] = []
        self.closed = False

    def calls_of(self, kind: str) -> List[str]:
        return [p for p in self.calls if classify(p) == kind]

    async def generate(self, prompt: str, *, thinking_budget: Optional[int] = None) -> str:
        self.calls.append(prompt)
        kind = classify(prompt)
        if kind in self.fail_on:
            raise RuntimeError(f"{kind} backend down")
        if kind in self.replies:
            return self.replies[kind]
        if kind == "refine_prompt":
            return "A detailed, friendly walk through photosynthesis for elementary school readers."
        if kind == "outline":
            return "```json\n" + json.dumps(self.outline) + "\n```"
        if kind == "page":
            match = _PAGE_TITLE.search(prompt)
            title = match.group(1).strip() if match else "Untitled"
            if title in self.fail_pages:
                raise RuntimeError(f"page {title} failed")
            html = f"<h1>{title}</h1><p>Plants make food with $E = h\\nu$ from light.</p>"
            if "* **Image:** Yes" in prompt:
                html += "[image:green leaf:A green leaf in bright sunlight]"
            if "* **Animation:** Yes" in prompt:
                html += "[animation: matter : Molecules moving inside a leaf]"
            return html
        if kind == "refine_content":
            match = _RAW_HTML.search(prompt)
            raw = match.group(1) if match else ""
            return f'```html\n<div class="content-wrapper prose dark:prose-invert max-w-none">{raw}</div>\n```'
        if kind == "quiz":
            return self.quiz if isinstance(self.quiz, str) else json.dumps(self.quiz)
        if kind == "chat":
            return "Leaves use sunlight to make sugar."
        if kind == "modify":
            return "```html\n<p>**Simpler** text</p>\n```"
        return ""

    async def generate_image(self, prompt: str) -> Optional[str]:
        self.image_calls.append(prompt)
        return self.image_data

    async def aclose(self) -> None:
        self.closed = True


class FakeSearch:
    def __init__(self, results: Optional[Dict[str, List[str]]] = None) -> None:
        self.results = results or {}
        self.queries: List[str] = []
        self.closed = False

    async def search(self, query: str) -> List[str]:
        self.queries.append(query)
        return list(self.results.get(query, []))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def cache(session_factory) -> CacheService:
    return CacheService(session_factory)


@pytest.fixture
def fake_client() -> FakeGemini:
    return FakeGemini()


def make_services(client: FakeGemini, search: Optional[FakeSearch] = None) -> FlowServices:
    return FlowServices.from_client(cast(Any, client), cast(Any, search or FakeSearch()))
