"""Error taxonomy for parsing, rendering, repair and export."""
from __future__ import annotations


class DocforgeError(Exception):
    """Base class for all docforge errors."""


class ParseError(DocforgeError, ValueError):
    """Malformed markdown construct. Recorded by the parser, never fatal."""

    def __init__(self, message: str, line_number: int | None = None):
        super().__init__(message)
        self.line_number = line_number


class RenderError(DocforgeError, RuntimeError):
    """The diagram engine rejected a source.

    The underlying engine failure is chained as ``__cause__``.
    """

    def __init__(self, message: str, source: str = "", detail: str = ""):
        super().__init__(message)
        self.source = source
        self.detail = detail


class RepairDeclined(DocforgeError):
    """Credentials or generation metadata are missing; no attempt is made."""


class RepairFailed(DocforgeError):
    """The repair request timed out, failed in transport or returned nothing usable."""


class ImageDecodeError(DocforgeError, ValueError):
    """An image block could not be decoded. Fatal to a PDF export."""

    def __init__(self, message: str, src: str = ""):
        super().__init__(message)
        self.src = src


class ExportIOError(DocforgeError, OSError):
    """An export file could not be created or written."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path
