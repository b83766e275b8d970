"""Render cycle for the diagram attached to a document."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from docforge.diagrams.renderer import DiagramRenderer
from docforge.diagrams.sanitizer import sanitize_mermaid_chart
from docforge.documents.models import Document
from docforge.documents.text import DiagramSource, extract_diagram
from docforge.errors import RenderError
from docforge.repair.coordinator import RepairCoordinator, RepairOutcome
from docforge.storage.store import DocumentStore


logger = logging.getLogger(__name__)

NO_DIAGRAM_MESSAGE = "No diagram available"
RENDER_FAILED_MESSAGE = "Diagram could not be rendered"
REPAIR_PENDING_MESSAGE = "Diagram repair in progress"


class ViewStatus(str, Enum):
    EMPTY = "empty"
    RENDERED = "rendered"
    ERROR = "error"
    PENDING = "pending"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DiagramViewState:
    status: ViewStatus
    source: Optional[str] = None
    svg: Optional[str] = None
    panel_text: Optional[str] = None
    message: str = ""


class DiagramView:
    """Render the document's diagram, delegating failures to the repair coordinator.

    ``close()`` or a change of diagram source invalidates any cycle still
    awaiting a render or repair; its late results are discarded.
    """

    def __init__(
        self,
        documents: DocumentStore,
        renderer: DiagramRenderer,
        coordinator: RepairCoordinator,
    ) -> None:
        self.documents = documents
        self.renderer = renderer
        self.coordinator = coordinator
        self._closed = False
        self._generation = 0
        self._source: Optional[str] = None

    @property
    def source(self) -> Optional[str]:
        return self._source

    def close(self) -> None:
        self._closed = True

    def _switch_source(self, source: str) -> int:
        if source != self._source:
            self._generation += 1
            self._source = source
        return self._generation

    def _commit(self, repaired: DiagramSource) -> None:
        self._source = repaired.source

    async def render(self, document: Optional[Document] = None) -> DiagramViewState:
        if self._closed:
            return DiagramViewState(ViewStatus.CANCELLED)
        doc = document if document is not None else self.documents.get_document()
        diagram = extract_diagram(doc) if doc is not None else None
        if diagram is None:
            return DiagramViewState(ViewStatus.EMPTY, message=NO_DIAGRAM_MESSAGE)

        generation = self._switch_source(diagram.source)

        def is_current() -> bool:
            return not self._closed and generation == self._generation

        while True:
            try:
                result = await self.renderer.render(diagram.source)
            except RenderError as exc:
                if not is_current():
                    return DiagramViewState(ViewStatus.CANCELLED, source=diagram.source)
                repair = await self.coordinator.handle_render_failure(
                    diagram, exc, is_current=is_current, on_commit=self._commit
                )
                if not is_current() or repair.outcome is RepairOutcome.CANCELLED:
                    return DiagramViewState(ViewStatus.CANCELLED, source=diagram.source)
                if repair.outcome is RepairOutcome.REPAIRED and repair.repaired is not None:
                    logger.info("Re-rendering repaired diagram")
                    diagram = repair.repaired
                    self._source = diagram.source
                    continue
                if repair.outcome is RepairOutcome.BUSY:
                    return DiagramViewState(
                        ViewStatus.PENDING,
                        source=diagram.source,
                        panel_text=repair.panel_text,
                        message=REPAIR_PENDING_MESSAGE,
                    )
                return DiagramViewState(
                    ViewStatus.ERROR,
                    source=diagram.source,
                    panel_text=sanitize_mermaid_chart(diagram.source) or diagram.source,
                    message=RENDER_FAILED_MESSAGE,
                )

            if not is_current():
                return DiagramViewState(ViewStatus.CANCELLED, source=diagram.source)
            return DiagramViewState(ViewStatus.RENDERED, source=result.source, svg=result.svg)
