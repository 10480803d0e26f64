"""
Utilities for pulling a JSON object out of free-form model output.

Models often wrap JSON in markdown fences or surround it with prose, so the
object is isolated by scanning for the matching closing brace rather than
by trusting the whole response.
"""
import json
import logging
import re
from typing import Any, Dict

from lesson_pipeline.errors import PlanParseError

logger = logging.getLogger(__name__)


LEADING_FENCE_PATTERN = re.compile(r'^```[a-zA-Z]*\s*')
TRAILING_FENCE_PATTERN = re.compile(r'```$')


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang marker and a trailing ``` marker."""
    cleaned = text.strip()
    cleaned = LEADING_FENCE_PATTERN.sub('', cleaned)
    cleaned = TRAILING_FENCE_PATTERN.sub('', cleaned)
    return cleaned


def extract_json_object(text: str) -> str:
    """
    Isolate the first balanced ``{...}`` object in text.

    Braces inside string literals (including escaped quotes) are ignored.
    When the object never closes, everything from the first ``{`` onward is
    returned and left for the parser to judge.

    Raises:
        PlanParseError: if the text contains no ``{`` at all
    """
    start = text.find('{')
    if start == -1:
        raise PlanParseError("Invalid response format: no JSON object detected")

    balance = 0
    in_string = False
    escape = False

    for index in range(start, len(text)):
        char = text[index]

        if in_string:
            if escape:
                escape = False
            elif char == '\\':
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == '{':
            balance += 1
        elif char == '}':
            balance -= 1
            if balance == 0:
                return text[start:index + 1]

    logger.warning("Unbalanced JSON detected, using the rest of the response")
    return text[start:]


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Strip fences, isolate the object and parse it.

    Raises:
        PlanParseError: if no object can be isolated or it is not a JSON object
    """
    candidate = extract_json_object(strip_code_fences(text))
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise PlanParseError(f"Invalid JSON in model response: {e}") from e

    if not isinstance(parsed, dict):
        raise PlanParseError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
