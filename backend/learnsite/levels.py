from __future__ import annotations
from typing import Dict, List

LEVELS: List[str] = ["explain-like-im-5", "school-kid", "high-school", "graduate-student", "expert"]
CONTENT_TYPES: List[str] = ["concise", "detailed"]

DEFAULT_LEVEL = "school-kid"

LEVEL_DISPLAY: Dict[str, str] = {
	"explain-like-im-5": "Explain Like I'm 5",
	"school-kid": "School Kid",
	"high-school": "High School",
	"graduate-student": "Graduate Student",
	"expert": "Expert",
}

# Audience wording used when expanding the user's prompt
LEVEL_AUDIENCE: Dict[str, str] = {
	"explain-like-im-5": "5-year-old",
	"school-kid": "elementary school",
	"high-school": "high school",
	"graduate-student": "graduate student",
	"expert": "expert",
}


def level_display(level: str) -> str:
	return LEVEL_DISPLAY.get(level, LEVEL_DISPLAY[DEFAULT_LEVEL])


def level_audience(level: str) -> str:
	return LEVEL_AUDIENCE.get(level, LEVEL_AUDIENCE[DEFAULT_LEVEL])


def content_type_prompt(content_type: str) -> str:
	return "Concise - Quick Reads" if content_type == "concise" else "Long form - Detailed"


def content_type_display(content_type: str) -> str:
	return "Quick Read" if content_type == "concise" else "Detailed Explanation"
