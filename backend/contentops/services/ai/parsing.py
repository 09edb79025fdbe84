"""
Extraction of title, meta description and body from raw provider output.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

TITLE_PATTERN = re.compile(r"TITLE:\s*(.+?)(?:\n|$)")
META_PATTERN = re.compile(r"META_DESCRIPTION:\s*(.+?)(?:\n|$)")
CONTENT_PATTERN = re.compile(r"CONTENT:\s*([\s\S]+?)(?:\n\n---|\n\n\[|\n\nNote:|$)")
HEADING_PATTERN = re.compile(r"^(#+)\s+(.+)$", re.MULTILINE)

META_DESCRIPTION_LIMIT = 160


@dataclass
class ParsedContent:
    title: str
    meta_description: str
    body: str
    headings: List[str] = field(default_factory=list)
    keywords: Tuple[str, ...] = ()
    structured: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "meta_description": self.meta_description,
            "body": self.body,
            "headings": self.headings,
            "keywords": list(self.keywords),
            "structured": self.structured,
        }


def extract_headings(content: str) -> List[str]:
    return [match.group(2).strip() for match in HEADING_PATTERN.finditer(content)]


def _strip_markup(line: str) -> str:
    return line.lstrip("#").strip().strip("*").strip()


def _summarize(body: str) -> str:
    for paragraph in body.split("\n\n"):
        text = paragraph.strip()
        if text and not text.startswith("#"):
            text = " ".join(text.split())
            if len(text) <= META_DESCRIPTION_LIMIT:
                return text
            return text[:META_DESCRIPTION_LIMIT - 3].rsplit(" ", 1)[0] + "..."
    return ""


def parse_content(raw: str, fallback_title: str = "", keywords: Tuple[str, ...] = ()) -> ParsedContent:
    """Parse marker-delimited output, degrading to a heuristic split.

    Output that ignores the TITLE/META_DESCRIPTION/CONTENT format is still
    usable: the first non-empty line becomes the title and the rest the body.
    """
    text = raw.strip()
    title_match = TITLE_PATTERN.search(text)
    content_match = CONTENT_PATTERN.search(text)

    if title_match and content_match:
        meta_match = META_PATTERN.search(text)
        body = content_match.group(1).strip()
        return ParsedContent(
            title=title_match.group(1).strip(),
            meta_description=meta_match.group(1).strip() if meta_match else _summarize(body),
            body=body,
            headings=extract_headings(body),
            keywords=keywords,
            structured=True,
        )

    lines = text.split("\n")
    first = next((i for i, line in enumerate(lines) if line.strip()), None)
    if first is None:
        title, body = fallback_title, ""
    else:
        title = _strip_markup(lines[first]) or fallback_title
        body = "\n".join(lines[first + 1:]).strip()
        if not body:
            body = text

    return ParsedContent(
        title=title,
        meta_description=_summarize(body),
        body=body,
        headings=extract_headings(body),
        keywords=keywords,
        structured=False,
    )
