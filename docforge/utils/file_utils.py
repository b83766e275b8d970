"""File utilities."""
from __future__ import annotations

from pathlib import Path

from docforge.errors import ExportIOError


def write_export(path: str | Path, payload: str | bytes) -> Path:
    """Write an export payload, creating parent directories.

    Text payloads are written as UTF-8. Any filesystem failure is raised as
    ``ExportIOError`` so callers can notify and reset their loading state.
    """
    p = Path(path)
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(payload, bytes):
            p.write_bytes(payload)
        else:
            p.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise ExportIOError(f"Unable to write export file: {p}", path=str(p)) from exc
    return p


def read_text_file(path: str) -> str:
    """Safely read a file as UTF-8 with fallbacks.

    - Tries a strict UTF-8 read first, then falls back to UTF-8 with errors="ignore".
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Missing file: {path}")
    try:
        return p.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return p.read_text(encoding="utf-8", errors="ignore")
