from __future__ import annotations


class GenerationError(Exception):
	"""A generation step failed in a way its caller has to handle."""

	kind = "generation"

	def __init__(self, message: str, *, raw: str | None = None) -> None:
		super().__init__(message)
		# Raw backend text, kept for logging
		self.raw = raw


class OutlineError(GenerationError):
	kind = "outline"


class QuizError(GenerationError):
	kind = "quiz"
