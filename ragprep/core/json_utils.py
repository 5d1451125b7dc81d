from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", flags=re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _loads_object(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from an LLM response.

    Recovers from Markdown code fences, explanatory text around the object,
    trailing commas and missing closing braces. Returns the parsed object or
    ``None`` if nothing usable is found.
    """
    if not isinstance(text, str):
        return None

    candidate = text.strip()
    if not candidate:
        return None

    fence_match = _FENCE_RE.search(candidate)
    candidate = fence_match.group(1).strip() if fence_match else candidate.strip("`")
    candidate = re.sub(r"^json\s*", "", candidate, flags=re.IGNORECASE)

    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed

    start = candidate.find("{")
    if start == -1:
        return None
    end = candidate.rfind("}")
    snippet = candidate[start:] if end <= start else candidate[start : end + 1]
    parsed = _loads_object(snippet)
    if parsed is not None:
        return parsed

    snippet = _TRAILING_COMMA_RE.sub(r"\1", snippet)
    parsed = _loads_object(snippet)
    if parsed is not None:
        return parsed

    # Truncated responses usually only lose their closing braces
    missing = snippet.count("{") - snippet.count("}")
    if missing > 0:
        return _loads_object(snippet + "}" * missing)

    return None


def coerce_str_list(value: Any, *, limit: int | None = None, lower: bool = False) -> list[str]:
    """Normalize an LLM-provided value into a list of non-empty strings."""
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    elif isinstance(value, list | tuple):
        items = [str(item).strip() for item in value if item is not None]
    else:
        return []

    result: list[str] = []
    for item in items:
        if not item:
            continue
        if lower:
            item = item.lower()
        if item not in result:
            result.append(item)
    return result[:limit] if limit is not None else result
