"""Normalize stored template questions into one record shape.

Templates written by different editor versions store questions as plain
strings, legacy ``{"text": ...}`` objects, newer ``{"title": ..., "points": ...}``
objects, or wrapped in ``{"questions": [...]}``.
"""

from typing import Any

DEFAULT_QUESTION_TYPE = "text_response"


def normalize_question(raw: Any) -> Any:
    if isinstance(raw, str):
        return {"type": DEFAULT_QUESTION_TYPE, "text": raw}

    if isinstance(raw, dict):
        if raw.get("title"):
            return {
                "type": raw.get("type") or DEFAULT_QUESTION_TYPE,
                "text": raw["title"],
                "category": raw.get("category"),
                "weight": raw.get("points"),
            }
        if raw.get("text"):
            return {
                "type": raw.get("type") or DEFAULT_QUESTION_TYPE,
                "text": raw["text"],
                "category": raw.get("category"),
                "weight": raw.get("weight"),
            }

    # Unknown shapes pass through untouched
    return raw


def normalize_questions(raw: Any) -> list:
    """Return the ordered question records for a template; never raises."""
    if isinstance(raw, dict) and isinstance(raw.get("questions"), list):
        raw = raw["questions"]

    if not isinstance(raw, list):
        return []

    return [normalize_question(item) for item in raw]


def question_text(question: Any) -> str:
    """Text of a normalized question, or an empty string for pass-through shapes."""
    if isinstance(question, dict):
        for key in ("text", "question", "content"):
            text = question.get(key)
            if isinstance(text, str) and text.strip():
                return text
        return ""
    if isinstance(question, str):
        return question
    return ""


def question_texts(raw: Any) -> list[str]:
    return [text for text in (question_text(q) for q in normalize_questions(raw)) if text]
