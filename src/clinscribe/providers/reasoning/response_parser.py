import json
from typing import Any
from ..base import ContractViolation


def parse_json_response(content: str) -> Any:
    """Parse a JSON response, tolerating a markdown code fence around it."""
    content = (content or "").strip()
    if not content:
        raise ContractViolation("Empty response where JSON was required")

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    # Models sometimes wrap JSON in a markdown code block despite instructions
    if "```json" in content:
        json_str = content.split("```json")[1].split("```")[0].strip()
    elif "```" in content:
        json_str = content.split("```")[1].split("```")[0].strip()
    else:
        raise ContractViolation("Response is not valid JSON")

    try:
        return json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ContractViolation(f"Response is not valid JSON: {e}")
