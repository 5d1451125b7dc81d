"""Lightweight Markdown structure extraction used to build agent context."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_HEADING_RE = re.compile(r"^(#+)\s+(.+)$", re.MULTILINE)
_CODE_BLOCK_RE = re.compile(r"```(\w*)\n(.*?)```", re.DOTALL)
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_CONTEXT_BEFORE_RE = re.compile(r"example|following|shows|demonstrates", re.IGNORECASE)
_CONTEXT_AFTER_RE = re.compile(r"above|previous|this code|example", re.IGNORECASE)

_TECHNICAL_TERM_PATTERNS = (
    re.compile(r"\b[A-Z]{2,}(?:[A-Z][a-z]+)*\b"),
    re.compile(r"\b\w+(?:js|JS|\.js)\b"),
    re.compile(r"\b\w+(?:SQL|DB|Database)\b", re.IGNORECASE),
    re.compile(r"\b(?:HTTP|HTTPS|REST|GraphQL|gRPC)\b", re.IGNORECASE),
    re.compile(r"\b\w+(?:Auth|Authentication|Authorization)\b", re.IGNORECASE),
)

_STEP_PATTERNS = (
    re.compile(r"^\d+\.\s+", re.MULTILINE),
    re.compile(r"^-\s+", re.MULTILINE),
    re.compile(r"first|second|third|next|then|finally|lastly", re.IGNORECASE),
    re.compile(r"(?:step|phase|stage)\s+\d+", re.IGNORECASE),
)


@dataclass(frozen=True)
class Heading:
    level: int
    text: str
    line: int


@dataclass(frozen=True)
class CodeBlock:
    language: str
    code: str
    offset: int
    has_context: bool


@dataclass(frozen=True)
class Link:
    text: str
    url: str


@dataclass
class Section:
    heading: str
    start_line: int
    lines: list[str] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return word_count(" ".join(self.lines))


@dataclass(frozen=True)
class ProcedureSummary:
    step_count: int

    @property
    def has_steps(self) -> bool:
        return self.step_count > 2

    @property
    def is_procedural(self) -> bool:
        return self.step_count > 5


def word_count(text: str) -> int:
    return len(text.split())


def extract_headings(content: str) -> list[Heading]:
    """Return ATX headings in document order with their line numbers."""
    headings: list[Heading] = []
    for match in _HEADING_RE.finditer(content):
        text = re.sub(r"[#*`]", "", match.group(2)).strip()
        line = content.count("\n", 0, match.start())
        headings.append(Heading(level=len(match.group(1)), text=text, line=line))
    return headings


def _code_has_context(content: str, position: int) -> bool:
    before = content[max(0, position - 200) : position]
    after = content[position + 100 : position + 300]
    return bool(_CONTEXT_BEFORE_RE.search(before) or _CONTEXT_AFTER_RE.search(after))


def extract_code_blocks(content: str) -> list[CodeBlock]:
    return [
        CodeBlock(
            language=match.group(1) or "text",
            code=match.group(2).strip(),
            offset=match.start(),
            has_context=_code_has_context(content, match.start()),
        )
        for match in _CODE_BLOCK_RE.finditer(content)
    ]


def extract_links(content: str) -> list[Link]:
    return [Link(text=m.group(1), url=m.group(2)) for m in _LINK_RE.finditer(content)]


def split_sections(content: str) -> list[Section]:
    """Group lines under the heading that precedes them.

    Text before the first heading belongs to an ``Introduction`` section.
    Sections without any body lines are omitted.
    """
    sections: list[Section] = []
    current = Section(heading="Introduction", start_line=0)
    for index, line in enumerate(content.split("\n")):
        heading_match = re.match(r"^#+\s+(.*)$", line)
        if heading_match:
            if current.lines:
                sections.append(current)
            current = Section(heading=heading_match.group(1).strip(), start_line=index)
        else:
            current.lines.append(line)
    if current.lines:
        sections.append(current)
    return sections


def extract_technical_terms(content: str, limit: int = 10) -> list[str]:
    terms: list[str] = []
    for pattern in _TECHNICAL_TERM_PATTERNS:
        for match in pattern.findall(content):
            term = match.lower()
            if term not in terms:
                terms.append(term)
    return terms[:limit]


def summarize_procedure(content: str) -> ProcedureSummary:
    return ProcedureSummary(step_count=sum(len(p.findall(content)) for p in _STEP_PATTERNS))


def find_line(content: str, needle: str) -> int:
    """Return the index of the first line containing ``needle``, or -1."""
    if not needle:
        return -1
    for index, line in enumerate(content.split("\n")):
        if needle in line:
            return index
    return -1


def truncate_for_prompt(content: str, limit: int = 2500) -> str:
    return content if len(content) <= limit else content[:limit] + "..."
