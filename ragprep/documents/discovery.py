"""Discovers Markdown documents to enhance."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from ragprep.core import frontmatter
from ragprep.core.markdown import word_count
from ragprep.models.enhancement import Document

logger = logging.getLogger(__name__)

ENHANCED_AT_FIELD = "enhanced_at"


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


def is_recently_enhanced(
    metadata: dict[str, Any], hours: int, now: datetime | None = None
) -> bool:
    """True when ``enhanced_at`` lies within the last ``hours`` hours."""
    enhanced_at = _parse_timestamp(metadata.get(ENHANCED_AT_FIELD))
    if enhanced_at is None:
        return False
    now = now or datetime.now(UTC)
    return now - enhanced_at < timedelta(hours=hours)


def _relative_path(path: Path, base: Path, root: Path) -> str:
    resolved = path.resolve()
    if resolved.is_relative_to(base):
        return resolved.relative_to(base).as_posix()
    return path.relative_to(root).as_posix()


def discover_documents(
    docs_dir: str | Path,
    *,
    reenhance_after_hours: int = 24,
    repo_root: str | Path | None = None,
    now: datetime | None = None,
) -> list[Document]:
    """Load every ``*.md`` file directly under ``docs_dir``, sorted by name.

    A missing directory is created and yields no documents. Files that
    cannot be read are skipped with a warning. Relative paths are taken from
    ``repo_root`` (the working directory by default) so they can be committed
    as-is; files outside it fall back to paths relative to ``docs_dir``.
    """
    root = Path(docs_dir)
    base = Path(repo_root or Path.cwd()).resolve()
    if not root.exists():
        root.mkdir(parents=True, exist_ok=True)
        logger.info("docs_directory_created", extra={"path": str(root)})
        return []

    documents: list[Document] = []
    for path in sorted(root.glob("*.md")):
        if ".backup" in path.name or not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "document_read_failed", extra={"path": str(path), "error": str(exc)}
            )
            continue

        parsed = frontmatter.parse(text)
        title = parsed.data.get("title")
        documents.append(
            Document(
                relative_path=_relative_path(path, base, root),
                absolute_path=str(path.resolve()),
                title=title.strip() if isinstance(title, str) and title.strip() else path.stem,
                body=parsed.body,
                frontmatter=parsed.data,
                word_count=word_count(parsed.body),
                needs_enhancement=not is_recently_enhanced(
                    parsed.data, reenhance_after_hours, now
                ),
            )
        )

    logger.info(
        "documents_discovered",
        extra={
            "path": str(root),
            "total": len(documents),
            "to_enhance": sum(1 for doc in documents if doc.needs_enhancement),
        },
    )
    return documents
