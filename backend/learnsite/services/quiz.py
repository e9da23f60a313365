from __future__ import annotations
import json
import logging
from typing import Any, Dict

from pydantic import ValidationError

from ..errors import QuizError
from ..gemini_client import GeminiClient
from ..html_utils import extract_json_object, strip_code_fences
from ..schemas import Quiz

logger = logging.getLogger(__name__)

QUESTION_COUNT = 6
ANSWER_COUNT = 4


def _quiz_prompt(topic: str, content: str, level: str) -> str:
	return f"""
Create a quiz with EXACTLY {QUESTION_COUNT} multiple-choice questions for the following topic and content:
Topic: {topic}
Content: {content}
Level: {level}

Requirements:
1. Generate EXACTLY {QUESTION_COUNT} questions
2. Each question must have exactly {ANSWER_COUNT} answer options
3. Each question must test different aspects of the topic
4. Questions should progress from basic to more complex concepts
5. Include clear explanations for correct answers
6. Match the specified difficulty level

Return the quiz in this exact JSON format:
{{
  "quizTitle": "Quiz Title",
  "quizSynopsis": "Brief description of what the quiz covers",
  "progressBarColor": "#9de1f6",
  "nrOfQuestions": "{QUESTION_COUNT}",
  "questions": [
    {{
      "question": "Question text",
      "questionType": "text",
      "answerSelectionType": "single",
      "answers": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": "1",
      "messageForCorrectAnswer": "Correct answer. Good job.",
      "messageForIncorrectAnswer": "Incorrect answer. Please try again.",
      "explanation": "Explanation of why this is the correct answer",
      "point": "20"
    }}
  ]
}}

Important rules:
1. You MUST generate EXACTLY {QUESTION_COUNT} questions
2. correctAnswer must be a string number (1-based index)
3. Each question MUST have exactly {ANSWER_COUNT} answers
4. Return ONLY the JSON object, no markdown and no additional text
""".strip()


def _load_json(raw: str) -> Dict[str, Any]:
	cleaned = strip_code_fences(raw)
	try:
		data = json.loads(cleaned)
	except json.JSONDecodeError:
		try:
			data = extract_json_object(cleaned)
		except ValueError as e:
			raise QuizError("Failed to parse quiz response", raw=raw) from e
	if not isinstance(data, dict):
		raise QuizError("Quiz response is not a JSON object", raw=raw)
	return data


def parse_quiz(raw: str) -> Quiz:
	data = _load_json(raw)
	questions = data.get("questions")
	count = len(questions) if isinstance(questions, list) else 0
	if count != QUESTION_COUNT:
		raise QuizError(f"Invalid number of questions: {count}. Expected {QUESTION_COUNT}.", raw=raw)
	for number, question in enumerate(questions, start=1):
		answers = question.get("answers") if isinstance(question, dict) else None
		if not isinstance(answers, list) or len(answers) != ANSWER_COUNT:
			got = len(answers) if isinstance(answers, list) else 0
			raise QuizError(f"Question {number} has {got} answers. Expected {ANSWER_COUNT}.", raw=raw)
	try:
		quiz = Quiz.model_validate(data)
	except ValidationError as e:
		raise QuizError(f"Quiz response failed validation: {e}", raw=raw) from e
	for number, question in enumerate(quiz.questions, start=1):
		if question.correct_answer.strip() not in {str(i) for i in range(1, ANSWER_COUNT + 1)}:
			raise QuizError(f"Question {number} has correctAnswer {question.correct_answer!r}; expected 1-{ANSWER_COUNT}.", raw=raw)
	return quiz


class QuizGenerator:
	def __init__(self, client: GeminiClient) -> None:
		self.client = client

	async def generate_quiz(self, topic: str, content: str, level: str) -> Quiz:
		logger.info("Generating quiz for topic %r", topic)
		try:
			raw = await self.client.generate(_quiz_prompt(topic, content, level))
		except Exception as e:
			raise QuizError(f"Quiz generation request failed: {e}") from e
		return parse_quiz(raw)
