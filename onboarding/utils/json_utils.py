"""
Helpers for JSON embedded in language model output.
"""
import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)


def parse_json_response(response_text: str) -> Any:
    """Extract JSON from the model response (handles markdown code blocks)."""
    if not response_text:
        return {}

    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response_text)
    if json_match:
        json_str = json_match.group(1)
    else:
        json_match = re.search(r"\{[\s\S]*\}|\[[\s\S]*\]", response_text)
        if json_match:
            json_str = json_match.group(0)
        else:
            logger.error(f"Could not find JSON in response: {response_text[:500]}")
            return {}

    try:
        return json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON: {e}\nJSON string: {json_str[:500]}")
        return {}
