"""
Permissive parser for LLM trend-extraction responses.

The model is asked for a JSON array of strings but does not always comply.
Parsing cascades through three strategies and reports which one matched:

1. ``STRUCTURED``: the text (minus markdown fences) is a JSON array.
2. ``BULLET_LIST``: lines starting with ``-``, ``*`` or ``1.`` markers.
3. ``SENTENCES``: sentence split, keeping sentences longer than 20 chars.

``EMPTY`` means nothing usable was found.  Callers decide whether
``SENTENCES`` output is good enough for them.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from ideaslot.tools.claude_client import strip_code_fences

MAX_ITEMS = 30
MIN_SENTENCE_LENGTH = 20

_BULLET_LINE = re.compile(r"^(?:[-*]|\d+\.)")
_BULLET_PREFIX = re.compile(r"^[-*\d.\s]*")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


class ParseKind(Enum):
    STRUCTURED = "structured"
    BULLET_LIST = "bullet_list"
    SENTENCES = "sentences"
    EMPTY = "empty"


@dataclass
class ParseResult:
    """Items extracted from an LLM response, tagged with the strategy used."""

    kind: ParseKind
    items: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.kind is ParseKind.EMPTY


def _parse_json_array(text: str) -> List[str]:
    try:
        parsed = json.loads(strip_code_fences(text))
    except (json.JSONDecodeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return [str(item).strip() for item in parsed if str(item).strip()]


def _parse_bullets(text: str) -> List[str]:
    items = []
    for line in text.splitlines():
        line = line.strip()
        if not _BULLET_LINE.match(line):
            continue
        cleaned = _BULLET_PREFIX.sub("", line).strip()
        if cleaned:
            items.append(cleaned)
    return items


def _parse_sentences(text: str) -> List[str]:
    return [
        sentence.strip()
        for sentence in _SENTENCE_SPLIT.split(text)
        if len(sentence.strip()) > MIN_SENTENCE_LENGTH
    ]


def parse_trend_response(text: str, max_items: int = MAX_ITEMS) -> ParseResult:
    """Extract trend strings from *text*.

    Args:
        text: Raw model output.
        max_items: Cap on the number of items returned.

    Returns:
        A :class:`ParseResult`; never raises.
    """
    if not text or not text.strip():
        return ParseResult(ParseKind.EMPTY)

    for kind, strategy in (
        (ParseKind.STRUCTURED, _parse_json_array),
        (ParseKind.BULLET_LIST, _parse_bullets),
        (ParseKind.SENTENCES, _parse_sentences),
    ):
        items = strategy(text)
        if items:
            return ParseResult(kind, items[:max_items])
    return ParseResult(ParseKind.EMPTY)
