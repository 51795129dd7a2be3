# veritas/json_utils.py
"""
Helpers for pulling JSON out of free-form LLM output.

Model responses often wrap the object in prose or markdown fences, and long
responses get cut off at the output token limit. The functions here isolate a
JSON candidate, repair truncated candidates and, as a last resort, regex-extract
the few top-level fields that scoring needs.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .prompts import AnalysisType

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_WIDEST_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
# Dangling fragments left at the end of a truncated document
_INCOMPLETE_TAIL_RES = [
    (re.compile(r'\[([^\]]*),\s*"[^"]*$'), r"[\1"),            # unterminated string in array
    (re.compile(r"\[([^\]]*),\s*\{[^}]*$"), r"[\1"),            # unterminated object in array
    (re.compile(r"\[([^\]]*),\s*\[[^\]]*$"), r"[\1"),           # unterminated nested array
    (re.compile(r'\{([^}]*),\s*"[^"]*:\s*[^,}]*$'), r"{\1"),    # unterminated property
    (re.compile(r'([{,])\s*"[^"]*"\s*:\s*$'), r"\1"),           # key with no value yet
]
# A truncated document ending on one of these ends on a complete value; numbers may be cut short
_COMPLETE_VALUE_END_RE = re.compile(r'(?:"|\]|\}|\btrue|\bfalse|\bnull)\s*$')
# How far back from the decoder's error position a cut point may be
_CUT_WINDOW = 200
_BALANCE_TOLERANCE = 2

_PARTIAL_SCORE_FIELDS = ("content_score", "overall_score")
_PARTIAL_STRING_FIELDS = ("content_quality", "credibility_level", "summary")
_TRUNCATION_NOTE = "Response was truncated. Please verify information independently."


# --- Candidate isolation ---
def extract_fenced_block(text: str) -> Optional[str]:
    """Content of the first markdown code fence, if it looks like a JSON object or array."""
    match = _FENCED_BLOCK_RE.search(text)
    if match:
        content = match.group(1).strip()
        if content.startswith(("{", "[")):
            return content
    return None


def scan_top_level_object(text: str) -> Tuple[Optional[str], Optional[int]]:
    """
    Walks the text tracking brace depth outside of string literals.

    Returns ``(span, None)`` for the first balanced top-level ``{...}`` span, or
    ``(None, start)`` when a top-level object opened at ``start`` is still open
    at the end of the text (a truncated response). ``(None, None)`` when the text
    holds no object at all.
    """
    depth = 0
    start = -1
    in_string = False
    escape_next = False
    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start:i + 1], None
    if depth > 0:
        return None, start
    return None, None


def extract_widest_object(text: str) -> Optional[str]:
    match = _WIDEST_OBJECT_RE.search(text)
    return match.group(0) if match else None


# --- Repair ---
def strip_trailing_commas(json_string: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", json_string)


def _open_containers(text: str) -> Tuple[List[str], bool]:
    """Stack of unclosed '{' / '[' (outside strings) and whether the text ends inside a string."""
    stack: List[str] = []
    in_string = False
    escape_next = False
    for char in text:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            stack.append(char)
        elif char in "}]" and stack:
            stack.pop()
    return stack, in_string


def _bracket_balance(text: str) -> Tuple[int, int]:
    braces = brackets = 0
    in_string = False
    escape_next = False
    for char in text:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{": braces += 1
        elif char == "}": braces -= 1
        elif char == "[": brackets += 1
        elif char == "]": brackets -= 1
    return braces, brackets


def _last_separator_comma(text: str) -> int:
    """Index of the last comma outside a string literal, or -1."""
    last = -1
    in_string = False
    escape_next = False
    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if not in_string and char == ",":
            last = i
    return last


def close_open_containers(json_string: str) -> str:
    """Appends the closing '}' / ']' for every container still open, innermost first."""
    stack, _ = _open_containers(json_string)
    if not stack:
        return json_string
    closers = "".join("}" if opener == "{" else "]" for opener in reversed(stack))
    return json_string.rstrip() + closers


def _close_after_complete_value(json_string: str) -> Optional[str]:
    """Closes a top-level object cut off right after a complete field, or None if that does not parse."""
    stack, in_string = _open_containers(json_string)
    if stack != ["{"] or in_string or not _COMPLETE_VALUE_END_RE.search(json_string):
        return None
    closed = json_string.rstrip() + "}"
    try:
        json.loads(closed)
    except json.JSONDecodeError:
        return None
    return closed


def repair_json(json_string: str) -> str:
    """
    Best-effort repair of a truncated or sloppy JSON document.

    A top-level object cut off right after a complete string, literal or
    container is simply closed. Otherwise the document is cut back to the last
    complete element before the decoder's error position, dangling fragments
    are removed and whatever is still open is closed. The result is not
    guaranteed to parse.
    """
    fixed = strip_trailing_commas(json_string.strip())
    try:
        json.loads(fixed)
        return fixed
    except json.JSONDecodeError as parse_error:
        error_pos = parse_error.pos

    closed = _close_after_complete_value(fixed)
    if closed is not None:
        return closed

    cut_pos = min(error_pos, len(fixed))
    before_error = fixed[:cut_pos]

    last_comma = _last_separator_comma(before_error)
    if last_comma > 0 and last_comma > cut_pos - _CUT_WINDOW:
        candidate = fixed[:last_comma]
        braces, brackets = _bracket_balance(candidate)
        if abs(braces) <= _BALANCE_TOLERANCE and abs(brackets) <= _BALANCE_TOLERANCE:
            fixed = candidate
    else:
        fixed = before_error
        for pattern, replacement in _INCOMPLETE_TAIL_RES:
            fixed = pattern.sub(replacement, fixed)

    fixed = re.sub(r",\s*$", "", fixed.rstrip())
    fixed = close_open_containers(fixed)
    return strip_trailing_commas(fixed).strip()


def loads_with_repair(json_string: str) -> Tuple[Any, bool]:
    """
    ``json.loads`` with one repair attempt. Returns ``(value, repaired)``.

    Raises:
        json.JSONDecodeError: If the repaired document still does not parse.
    """
    try:
        return json.loads(json_string), False
    except json.JSONDecodeError as parse_error:
        logger.debug(f"JSON parse error, attempting repair: {parse_error}")
    return json.loads(repair_json(json_string)), True


# --- Partial extraction ---
def _int_field(text: str, name: str) -> Optional[int]:
    match = re.search(rf'"{name}"\s*:\s*(\d+)', text)
    return int(match.group(1)) if match else None


def _string_field(text: str, name: str) -> Optional[str]:
    # Unterminated strings are accepted: the value runs to the next quote or end of text
    match = re.search(rf'"{name}"\s*:\s*"([^"]*)', text)
    return match.group(1) if match else None


def extract_partial_fields(text: str, analysis_type: AnalysisType) -> Optional[Dict[str, Any]]:
    """
    Last-resort extraction of top-level fields from text that is not valid JSON.

    Only ``fact_check`` and ``url_content`` can be rebuilt from partial data; for
    every other type, or when nothing recognisable is found, returns None.
    """
    if not text or not isinstance(text, str):
        return None
    if analysis_type not in (AnalysisType.FACT_CHECK, AnalysisType.URL_CONTENT):
        return None

    found: Dict[str, Any] = {}
    for name in _PARTIAL_SCORE_FIELDS:
        value = _int_field(text, name)
        if value is not None:
            found[name] = value
    for name in _PARTIAL_STRING_FIELDS:
        value = _string_field(text, name)
        if value is not None:
            found[name] = value
    alternative_score = _int_field(text, "score")

    if analysis_type == AnalysisType.URL_CONTENT:
        score = found.get("content_score", alternative_score)
        if score is None and "content_quality" not in found:
            return None
        return {
            "content_score": score if score is not None else 50,
            "content_quality": found.get("content_quality") or "unknown",
            "content_preview": {
                "title": "Unknown",
                "description": "Response was truncated - partial data only",
                "main_topics": [],
                "content_type": "unknown",
            },
            "credibility_indicators": [],
            "red_flags": [],
            "recommendations": [_TRUNCATION_NOTE],
        }

    score = found.get("overall_score", alternative_score)
    if score is None and "credibility_level" not in found and "summary" not in found:
        return None
    return {
        "overall_score": score if score is not None else 50,
        "credibility_level": found.get("credibility_level") or "moderate",
        "summary": found.get("summary") or "Analysis was truncated. Partial results only - please verify information independently.",
        "claims": [],
        "recommendations": [_TRUNCATION_NOTE],
    }
