"""Helpers for locating and rewriting diagram blocks inside document text."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

from docforge.documents.models import Document


MERMAID_BLOCK_RE = re.compile(r"```mermaid\s*[\r\n]+([\s\S]*?)```")
_ANY_FENCE_RE = re.compile(r"```[\w-]*\s*[\r\n]+([\s\S]*?)```")
_LEADING_MARKDOWN_FENCE_RE = re.compile(r"^```markdown\s*\n", re.IGNORECASE)

_BOILERPLATE_PREFIXES = ("of course", "certainly", "absolutely", "sure")
_BOILERPLATE_PHRASES = (
    "as a software documentation expert",
    "as an ai language model",
)
_BOILERPLATE_OPENERS = ("this document provides comprehensive documentation",)


@dataclass(frozen=True)
class DiagramSource:
    """A diagram extracted from a document.

    ``fenced`` is the exact text the diagram occupies in its origin, used for
    literal replacement when a repair lands.
    """

    source: str
    origin: Literal["text", "visual"]
    fenced: str


def fenced_block(source: str) -> str:
    return f"```mermaid\n{source.strip()}\n```"


def extract_diagram(document: Document) -> Optional[DiagramSource]:
    """Return the first mermaid block in the text, else the visual content."""
    match = MERMAID_BLOCK_RE.search(document.text_content or "")
    if match:
        chart = match.group(1).strip()
        if chart:
            return DiagramSource(source=chart, origin="text", fenced=match.group(0))
    visual = (document.visual_content or "").strip()
    if visual:
        chart = strip_diagram_fences(visual)
        if chart:
            return DiagramSource(source=chart, origin="visual", fenced=document.visual_content or "")
    return None


def strip_diagram_fences(text: str) -> str:
    """Return the diagram inside a fenced block, or the stripped raw text."""
    if not text:
        return ""
    match = MERMAID_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()
    match = _ANY_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def replace_literal(text: str, previous: str, replacement: str) -> Optional[str]:
    """Replace the first literal occurrence of ``previous``.

    Returns None when ``previous`` is absent or the text would not change.
    """
    if not previous or previous not in text:
        return None
    updated = text.replace(previous, replacement, 1)
    if updated == text:
        return None
    return updated


def clean_generated_text(text: str) -> str:
    """Drop a leading markdown fence and boilerplate opening paragraphs."""
    if not text:
        return text
    cleaned = _LEADING_MARKDOWN_FENCE_RE.sub("", text, count=1)
    paragraphs = [paragraph.rstrip() for paragraph in re.split(r"\n{2,}", cleaned)]
    while paragraphs:
        normalized = paragraphs[0].strip().lower()
        should_drop = (
            normalized.startswith(_BOILERPLATE_PREFIXES)
            or any(phrase in normalized for phrase in _BOILERPLATE_PHRASES)
            or normalized.startswith(_BOILERPLATE_OPENERS)
        )
        if not should_drop:
            break
        paragraphs.pop(0)
    return "\n\n".join(paragraphs).lstrip()
