"""
Data models shared by the pipeline, the cache and the HTTP layer.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON the generation backend is asked to produce.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class Subtopic(CamelModel):
    title: str
    page: int
    summary: str
    # Capability tags such as "Image", "Animation", "Simulation", "Table", "List"
    requires: List[str] = Field(default_factory=list)


class Topic(CamelModel):
    title: str
    subtopics: List[Subtopic]


class Outline(CamelModel):
    topics: List[Topic]
    total_pages: int


class Content(CamelModel):
    title: str
    level: str
    content_type: str
    topics: List[Topic]
    total_pages: int

    def subtopics(self) -> List[Subtopic]:
        return [s for t in self.topics for s in t.subtopics]


class QuizQuestion(CamelModel):
    question: str
    question_type: str = "text"
    answer_selection_type: str = "single"
    answers: List[str]
    # 1-based index into answers, kept as a string
    correct_answer: str
    message_for_correct_answer: str = "Correct answer. Good job."
    message_for_incorrect_answer: str = "Incorrect answer. Please try again."
    explanation: str = ""
    point: str = "20"

    @field_validator("correct_answer", "point", mode="before")
    @classmethod
    def _numbers_as_strings(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v


class Quiz(CamelModel):
    quiz_title: str
    quiz_synopsis: str = ""
    progress_bar_color: str = "#9de1f6"
    nr_of_questions: str = "6"
    questions: List[QuizQuestion]

    @field_validator("nr_of_questions", mode="before")
    @classmethod
    def _count_as_string(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class PageContent(CamelModel):
    page: int
    raw_content: str
    refined_content: Optional[str] = None
    quiz: Optional[Quiz] = None


class StorageInfo(CamelModel):
    used_bytes: int
    total_bytes: int
    percentage_used: float


class FlowState(str, Enum):
    IDLE = "idle"
    REFINING_PROMPT = "refiningPrompt"
    GENERATING_OUTLINE = "generatingOutline"
    GENERATING_PAGES = "generatingPages"
    COMPLETE = "complete"
    ERROR = "error"


class FlowSnapshot(CamelModel):
    state: FlowState
    progress: float
    content: Optional[Content] = None
    pages: List[PageContent] = Field(default_factory=list)
    error: Optional[str] = None
