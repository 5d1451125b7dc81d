from __future__ import annotations

from typing import Any


def validate_model_name(model: str) -> str:
    """Validate a Gemini model identifier such as ``gemini-2.0-flash``."""
    if not model:
        msg = "Model name cannot be empty"
        raise ValueError(msg)
    if len(model) > 100:
        msg = "Model name too long"
        raise ValueError(msg)

    if ".." in model or "<" in model or ">" in model or "\\" in model:
        msg = "Model name contains invalid characters"
        raise ValueError(msg)

    allowed = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_.:/")
    if any(ch not in allowed for ch in model):
        msg = "Model name contains invalid characters"
        raise ValueError(msg)

    return model


def _optional_api_key(value: Any, *, name: str) -> str | None:
    """Normalize an optional credential; blank values mean "not configured"."""
    if value in (None, ""):
        return None
    key = str(value).strip()
    if not key:
        return None
    if len(key) > 500:
        msg = f"{name} API key appears to be too long"
        raise ValueError(msg)
    if any(char in key for char in (" ", "\n", "\t")):
        msg = f"{name} API key contains invalid characters"
        raise ValueError(msg)
    return key


def _parse_bool(value: Any, *, default: bool) -> bool:
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    msg = f"Invalid boolean value: {value!r}"
    raise ValueError(msg)


def _parse_bounded_int(value: Any, *, default: int, minimum: int, maximum: int, label: str) -> int:
    try:
        parsed = int(str(value if value not in (None, "") else default))
    except ValueError as exc:
        msg = f"{label} must be a valid integer"
        raise ValueError(msg) from exc
    if parsed < minimum or parsed > maximum:
        msg = f"{label} must be between {minimum} and {maximum}"
        raise ValueError(msg)
    return parsed
