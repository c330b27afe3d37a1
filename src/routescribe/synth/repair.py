from __future__ import annotations

import json
import re
from typing import Any, Callable

from routescribe.errors import AnalysisParseError

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?")
_JSON_PREFIX = re.compile(r"""^\s*["']?json["']?\s*""")
_PREAMBLES = (
    re.compile(r"Here is the?.*?:", re.IGNORECASE),
    re.compile(r"Based on.*?:", re.IGNORECASE),
)

_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_NEWLINES = re.compile(r"[\r\n]+")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})
_SINGLE_QUOTED = re.compile(r"'([^'\"\\\n]*)'")


def extract_json_text(content: str) -> str:
    """Isolate the JSON object from a chatty model answer."""
    text = _FENCE.sub("", content)

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        text = text[start:end + 1]

    text = _JSON_PREFIX.sub("", text)
    for preamble in _PREAMBLES:
        # only when the slice above could not drop the prose
        if not text.lstrip().startswith("{"):
            text = preamble.sub("", text, count=1)
    return text.strip()


def quote_bare_keys(text: str) -> str:
    return _BARE_KEY.sub(r'\1"\2"\3', text)


def drop_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def collapse_newlines(text: str) -> str:
    return _NEWLINES.sub(" ", text)


def normalize_quotes(text: str) -> str:
    text = text.translate(_SMART_QUOTES)
    return _SINGLE_QUOTED.sub(r'"\1"', text)


# Applied cumulatively, in order, with a parse attempt after each step.
REPAIR_TRANSFORMS: tuple[Callable[[str], str], ...] = (
    quote_bare_keys,
    drop_trailing_commas,
    collapse_newlines,
    normalize_quotes,
)


def parse_analysis_payload(content: str) -> dict[str, Any]:
    """
    Turn a model answer into a JSON object. Strict parse first, then the
    repair transforms. Raises AnalysisParseError when nothing works.
    """
    if not content or not content.strip():
        raise AnalysisParseError("empty response")

    text = extract_json_text(content)
    candidates = [text]
    for transform in REPAIR_TRANSFORMS:
        text = transform(text)
        candidates.append(text)

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except ValueError as e:
            last_error = e
            continue
        if not isinstance(value, dict):
            raise AnalysisParseError(f"expected a JSON object, got {type(value).__name__}")
        return value

    raise AnalysisParseError(f"unparseable response: {last_error}")
