"""Extract a JSON object from LLM output.

Models wrap JSON in markdown fences, append prose after it, or stop mid-way
when they hit the output token limit. Recovery order:

    1. plain json.loads after stripping fences
    2. first object in the text, ignoring anything after it
    3. close the open string and brackets of a truncated object
    4. cut back to earlier commas until a prefix closes cleanly
"""

import json
import logging
import re

from services.errors import MalformedResponseError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)

# Applied repeatedly to the tail of a truncated object
_DANGLING_PATTERNS = (
    (re.compile(r',\s*"[^"\\]*"\s*:\s*$'), ""),   # , "key":
    (re.compile(r'\{\s*"[^"\\]*"\s*:\s*$'), "{"),  # { "key":
    (re.compile(r',\s*"[^"\\]*"\s*$'), ""),        # , "key"   (or a half array item)
    (re.compile(r'[,:\s]+$'), ""),
)
_TRAILING_COMMA_RE = re.compile(r",(\s*[\]}])")

MAX_CUT_POINTS = 50


def _try_parse(text: str) -> dict | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _scan(text: str) -> tuple[list[str], bool]:
    """Return the stack of unclosed brackets and whether a string is open."""
    stack: list[str] = []
    in_string = False
    escape = False
    for c in text:
        if escape:
            escape = False
            continue
        if in_string:
            if c == "\\":
                escape = True
            elif c == '"':
                in_string = False
            continue
        if c == '"':
            in_string = True
        elif c == "{":
            stack.append("}")
        elif c == "[":
            stack.append("]")
        elif c in "}]" and stack:
            stack.pop()
    return stack, in_string


def _trim_dangling(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        for pattern, replacement in _DANGLING_PATTERNS:
            text = pattern.sub(replacement, text)
    return text


def close_truncated(text: str) -> str:
    """Best-effort completion of a JSON object cut off mid-stream."""
    _, in_string = _scan(text)
    if in_string:
        if text.endswith("\\"):
            text = text[:-1]
        text += '"'
    text = _trim_dangling(text)
    stack, _ = _scan(text)
    closed = text + "".join(reversed(stack))
    return _TRAILING_COMMA_RE.sub(r"\1", closed)


def _repair(candidate: str) -> dict | None:
    result = _try_parse(close_truncated(candidate))
    if result is not None:
        return result

    # Back off to earlier member boundaries
    cut_points = [i for i, c in enumerate(candidate) if c == ","][::-1][:MAX_CUT_POINTS]
    for pos in cut_points:
        result = _try_parse(close_truncated(candidate[:pos]))
        if result:
            return result
    return None


def extract_json_from_llm(text: str | None) -> dict:
    """Parse the JSON object in ``text``.

    Raises:
        MalformedResponseError: nothing recoverable in the response.
    """
    if not text or not text.strip():
        raise MalformedResponseError("Empty response from model")

    cleaned = _FENCE_RE.sub("", text).strip()
    result = _try_parse(cleaned)
    if result is not None:
        return result

    start = cleaned.find("{")
    if start == -1:
        raise MalformedResponseError("No JSON object found in model response")
    candidate = cleaned[start:]

    try:
        value, _ = json.JSONDecoder().raw_decode(candidate)
        if isinstance(value, dict):
            return value
    except json.JSONDecodeError:
        pass

    result = _repair(candidate)
    if result is not None:
        logger.warning("Recovered truncated JSON from model response (%d keys)", len(result))
        return result

    raise MalformedResponseError(
        "Failed to parse JSON from LLM response. Output may be truncated or malformed."
    )
