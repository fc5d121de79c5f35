# response_parser.py
import json
import logging
from typing import Any, Dict, Union

from pydantic import ValidationError

from ..schemas.food import AnalysisResult

logger = logging.getLogger(__name__)


class FormatError(Exception):
    """Model output could not be turned into an AnalysisResult"""
    pass


def extract_json_object(text: str) -> str:
    """
    Locate the first balanced {...} span in free-form model output

    Braces inside JSON string literals are ignored.

    Raises:
        FormatError: If no balanced object is present
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            char = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        # unbalanced from here on; an opening brace further along may still close
        start = text.find("{", start + 1)
    raise FormatError("No structured data found in response")


def normalize(data: Union[Dict[str, Any], AnalysisResult]) -> AnalysisResult:
    """
    Lowercase ingredient names and default missing numbers to 0

    Applying it to an already normalized result returns an equal result.
    """
    if isinstance(data, AnalysisResult):
        data = data.model_dump()
    if not isinstance(data, dict) or not isinstance(data.get("ingredients"), list):
        raise FormatError("Malformed response: 'ingredients' must be a list")
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise FormatError(f"Malformed response: {e.error_count()} invalid field(s)")


def parse_analysis(raw_text: str) -> AnalysisResult:
    """
    Parse raw model text into a normalized AnalysisResult

    Args:
        raw_text: Text returned by the model, possibly wrapping JSON in commentary

    Returns:
        Normalized AnalysisResult

    Raises:
        FormatError: No JSON object, invalid JSON or wrong shape
    """
    payload = extract_json_object(raw_text or "")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON response: {payload}")
        raise FormatError(f"Malformed response: {str(e)}")

    try:
        return normalize(data)
    except FormatError:
        logger.error(f"Unexpected response shape: {payload}")
        raise
