"""Prompt text for diagram repair requests."""
from __future__ import annotations

from docforge.documents.models import GenerationMetadata


_REPAIR_TEMPLATE = """You previously generated project documentation for the request below.

--- ORIGINAL REQUEST ---
{prompt}
--- END ORIGINAL REQUEST ---

The Mermaid diagram you produced fails to render{reason}.

```mermaid
{source}
```

Return ONLY a corrected Mermaid diagram inside a single ```mermaid fenced block.
Keep the same nodes and relationships. Quote node labels that contain
brackets, parentheses or quotes. Do not add any explanation."""


def build_repair_prompt(metadata: GenerationMetadata, source: str, error_detail: str = "") -> str:
    detail = " ".join((error_detail or "").split())
    if len(detail) > 300:
        detail = detail[:300] + "..."
    reason = f" with the error: {detail}" if detail else ""
    return _REPAIR_TEMPLATE.format(
        prompt=metadata.prompt_text.strip() or "(not recorded)",
        reason=reason,
        source=source.strip(),
    )
