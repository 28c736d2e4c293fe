"""
Book Candidates

Structures the vision model's answer into BookCandidate objects:
- Tolerant JSON array extraction (prose, fenced code blocks)
- Defaulting rules applied once, at the boundary
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from loguru import logger

from booktender.exceptions import IdentificationError


UNKNOWN_TITLE = "Unknown"


class Confidence(str, Enum):
    """How sure the vision model is about a candidate."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def coerce(cls, value: Any) -> "Confidence":
        """Map any value onto a confidence level, defaulting to low."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.LOW


@dataclass
class BookCandidate:
    """A single book guess produced by vision identification."""

    title: str = UNKNOWN_TITLE
    author: str = ""
    spine_text: Optional[str] = None
    confidence: Confidence = Confidence.LOW
    position: Optional[str] = None
    isbn: Optional[str] = None

    @property
    def is_unknown(self) -> bool:
        return self.title == UNKNOWN_TITLE

    @classmethod
    def from_dict(cls, data: Any) -> "BookCandidate":
        """Build a candidate from one item of the vision response."""
        if isinstance(data, str):
            # Bare strings are whatever text the model could read
            return cls(spine_text=data or None)
        if not isinstance(data, dict):
            return cls()

        return cls(
            title=_text(data.get("title")) or UNKNOWN_TITLE,
            author=_text(data.get("author")) or "",
            spine_text=_text(data.get("spine_text")) or None,
            confidence=Confidence.coerce(data.get("confidence")),
            position=_text(data.get("position")) or None,
            isbn=_clean_isbn(data.get("isbn")),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "author": self.author,
            "spine_text": self.spine_text,
            "confidence": self.confidence.value,
            "position": self.position,
            "isbn": self.isbn,
        }


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def _clean_isbn(value: Any) -> Optional[str]:
    isbn = _text(value).replace("-", "").replace(" ", "").upper()
    return isbn or None


def extract_json_array(text: str) -> Optional[list]:
    """
    Find the first top-level JSON array embedded in text.

    Scans for balanced brackets outside string literals, so a fenced code
    block or a sentence around the array does not matter.

    Returns:
        The decoded list, or None if no span decodes to a list
    """
    start = text.find("[")
    while start != -1:
        end = _matching_bracket(text, start)
        if end is None:
            return None
        try:
            value = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        start = text.find("[", start + 1)
    return None


def _matching_bracket(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return index

    return None


def parse_vision_response(text: str) -> list[BookCandidate]:
    """
    Parse the vision model's text answer into candidates.

    Args:
        text: Raw text content of the model response

    Returns:
        Candidates in response order

    Raises:
        IdentificationError: No JSON array could be recovered
    """
    if text is None or not text.strip():
        raise IdentificationError("Empty response from vision model")

    try:
        items = json.loads(text)
    except json.JSONDecodeError:
        items = extract_json_array(text)
        if items is None:
            raise IdentificationError(
                "No JSON array found in vision response",
                detail=text[:200],
            )
        logger.debug("Recovered JSON array from surrounding text")

    if not isinstance(items, list):
        raise IdentificationError(
            "Vision response is not an array",
            detail=type(items).__name__,
        )

    return [BookCandidate.from_dict(item) for item in items]
