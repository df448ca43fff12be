import json
import re

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_llm_json(text: str) -> dict:
    """Parse a JSON object out of model output, tolerating code fences and prose."""
    if not text:
        return {}
    candidate = _FENCE.sub("", text.strip())
    try:
        parsed = json.loads(candidate)
    except ValueError:
        match = re.search(r"\{.*\}", candidate, re.DOTALL)
        if not match:
            return {}
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            return {}
    return parsed if isinstance(parsed, dict) else {}
