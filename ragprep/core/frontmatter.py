"""YAML front matter parsing and serialization for Markdown documents."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from ragprep.models.enhancement import MAX_METADATA_ARRAY_ITEMS

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_EMPTY_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n---[ \t]*(?:\r?\n|\Z)")


@dataclass(frozen=True)
class ParsedDocument:
    """Front matter mapping plus the Markdown body that follows it."""

    data: dict[str, Any] = field(default_factory=dict)
    body: str = ""


def parse(text: str) -> ParsedDocument:
    """Split ``text`` into front matter and body.

    Text without a front matter block, or with a block that is not a YAML
    mapping, yields empty data and the text unchanged as body.
    """
    empty_match = _EMPTY_FRONTMATTER_RE.match(text)
    if empty_match:
        return ParsedDocument(data={}, body=text[empty_match.end() :])

    match = _FRONTMATTER_RE.match(text)
    if not match:
        return ParsedDocument(data={}, body=text)

    try:
        loaded = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        logger.warning("frontmatter_parse_failed", extra={"error": str(exc)})
        return ParsedDocument(data={}, body=text)

    if not isinstance(loaded, dict):
        return ParsedDocument(data={}, body=text)

    return ParsedDocument(data={str(k): v for k, v in loaded.items()}, body=text[match.end() :])


def stringify(body: str, data: dict[str, Any]) -> str:
    """Serialize ``data`` as a front matter block followed by ``body``."""
    if not data:
        return body if body.endswith("\n") else body + "\n"

    dumped = yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=10_000,
    )
    if not body.endswith("\n"):
        body += "\n"
    return f"---\n{dumped}---\n{body}"


def _clean_text(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip().replace('"', "'")


def clean_metadata_for_yaml(metadata: dict[str, Any]) -> dict[str, Any]:
    """Flatten proposed metadata into values that round-trip as simple YAML.

    Strings are collapsed to a single line, string lists are trimmed and
    capped, numbers and booleans are kept, and anything else is dropped.
    """
    cleaned: dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, bool | int | float):
            cleaned[key] = value
        elif isinstance(value, str):
            text = _clean_text(value)
            if text:
                cleaned[key] = text
        elif isinstance(value, list | tuple):
            items = [_clean_text(item) for item in value if isinstance(item, str) and item.strip()]
            cleaned[key] = items[:MAX_METADATA_ARRAY_ITEMS]
    return cleaned
