"""Best-effort cleanup of Mermaid node labels.

Mermaid's flowchart grammar breaks when a bracketed node label itself
contains brackets, quotes or angle brackets. The rewrite below quotes every
``id[[label]]`` and ``id[label]`` label and neutralises those characters.
It is a heuristic built from observed failures and cannot repair arbitrary
syntax errors.

Applying ``sanitize_mermaid_chart`` to its own output returns it unchanged.
"""
from __future__ import annotations

import re


# Subroutine shape: id[[label]]
_SUBROUTINE_LABEL_RE = re.compile(r"(\b[\w.-]+)\[\[([^\]]*?)\]\]")
# Rectangle shape: id[label], skipping the subroutine form handled above
_RECT_LABEL_RE = re.compile(r"(\b[\w.-]+)\[(?!\[)([^\]]*?)\]")

_UNESCAPED_QUOTE_RE = re.compile(r'(?<!\\)"')


def _sanitize_label(label: str) -> str:
    label = label.replace("[", "(").replace("]", ")")
    label = _UNESCAPED_QUOTE_RE.sub(r'\\"', label)
    return label.replace("<", "&lt;").replace(">", "&gt;")


def _wrap_with_quotes(label: str) -> str:
    trimmed = label.strip()
    if not trimmed:
        return '""'
    if trimmed.startswith('"') and trimmed.endswith('"'):
        trimmed = trimmed[1:-1]
    return f'"{_sanitize_label(trimmed)}"'


def sanitize_mermaid_chart(chart: str) -> str:
    """Quote and escape bracketed node labels in a Mermaid chart."""
    if not chart:
        return chart
    sanitized = _SUBROUTINE_LABEL_RE.sub(
        lambda m: f"{m.group(1)}[[{_wrap_with_quotes(m.group(2))}]]", chart
    )
    sanitized = _RECT_LABEL_RE.sub(
        lambda m: f"{m.group(1)}[{_wrap_with_quotes(m.group(2))}]", sanitized
    )
    return sanitized
