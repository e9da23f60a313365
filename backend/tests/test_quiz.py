import json
from typing import Any, cast

import pytest

from conftest import FakeGemini, quiz_payload
from learnsite.errors import QuizError
from learnsite.services.quiz import QuizGenerator, parse_quiz


def test_parse_quiz_accepts_fenced_json() -> None:
    quiz = parse_quiz("```json\n" + json.dumps(quiz_payload()) + "\n```")
    assert len(quiz.questions) == 6
    assert all(len(q.answers) == 4 for q in quiz.questions)
    assert quiz.questions[0].correct_answer == "2"
    assert quiz.nr_of_questions == "6"


def test_parse_quiz_serialises_camel_case() -> None:
    quiz = parse_quiz(json.dumps(quiz_payload()))
    data = json.loads(quiz.to_json())
    assert data["quizTitle"] == "Photosynthesis Quiz"
    assert data["questions"][0]["correctAnswer"] == "2"
    assert data["questions"][0]["messageForIncorrectAnswer"] == "Incorrect answer. Please try again."


def test_numeric_correct_answer_is_normalised_to_string() -> None:
    payload = quiz_payload()
    for q in payload["questions"]:
        q["correctAnswer"] = 3
        q["point"] = 20
    quiz = parse_quiz(json.dumps(payload))
    assert {q.correct_answer for q in quiz.questions} == {"3"}
    assert quiz.questions[0].point == "20"


@pytest.mark.parametrize("count", [5, 7])
def test_wrong_question_count_is_rejected(count: int) -> None:
    with pytest.raises(QuizError, match=f"Invalid number of questions: {count}"):
        parse_quiz(json.dumps(quiz_payload(questions=count)))


def test_wrong_answer_count_is_rejected() -> None:
    with pytest.raises(QuizError, match="has 3 answers"):
        parse_quiz(json.dumps(quiz_payload(answers=3)))


@pytest.mark.parametrize("answer", ["0", "5", "B"])
def test_correct_answer_out_of_range_is_rejected(answer: str) -> None:
    payload = quiz_payload()
    payload["questions"][2]["correctAnswer"] = answer
    with pytest.raises(QuizError, match="Question 3"):
        parse_quiz(json.dumps(payload))


def test_unparseable_quiz_is_rejected() -> None:
    with pytest.raises(QuizError):
        parse_quiz("Sorry, I cannot make a quiz today.")


@pytest.mark.asyncio
async def test_generate_quiz_passes_topic_content_and_level() -> None:
    client = FakeGemini()
    quiz = await QuizGenerator(cast(Any, client)).generate_quiz("Making Food", "<p>sugar</p>", "School Kid")
    assert quiz.quiz_title == "Photosynthesis Quiz"
    prompt = client.calls_of("quiz")[0]
    assert "Topic: Making Food" in prompt
    assert "Content: <p>sugar</p>" in prompt
    assert "Level: School Kid" in prompt


@pytest.mark.asyncio
async def test_generate_quiz_wraps_transport_errors() -> None:
    client = FakeGemini(fail_on={"quiz"})
    with pytest.raises(QuizError):
        await QuizGenerator(cast(Any, client)).generate_quiz("t", "c", "School Kid")
