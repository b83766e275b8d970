"""Automatic repair of diagrams that fail to render.

One repair request is made per distinct diagram source, and only one repair
may be in flight at a time. A successful repair is committed locally first,
then written to the document store, then broadcast as a diagram update.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from docforge.diagrams.sanitizer import sanitize_mermaid_chart
from docforge.documents.models import DiagramUpdate
from docforge.documents.text import DiagramSource, fenced_block
from docforge.errors import RenderError, RepairDeclined, RepairFailed
from docforge.events import DIAGRAM_UPDATED, EventBus
from docforge.notifications import LoggingNotifier, Notifier
from docforge.repair.client import RepairClient, parse_repair_response
from docforge.repair.prompts import build_repair_prompt
from docforge.repair.state import DiagramRepairState, RepairPhase
from docforge.storage.store import DocumentStore


logger = logging.getLogger(__name__)

REPAIRED_MESSAGE = "Diagram repaired automatically"
EXHAUSTED_MESSAGE = "Unable to repair the diagram automatically"
SAVE_FAILED_MESSAGE = "Diagram repaired but the document could not be saved"

# Oldest settled sources are forgotten past this many.
MAX_TRACKED_SOURCES = 256


class RepairOutcome(str, Enum):
    REPAIRED = "repaired"
    EXHAUSTED = "exhausted"
    DECLINED = "declined"
    BUSY = "busy"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RepairResult:
    outcome: RepairOutcome
    source: str
    repaired: Optional[DiagramSource] = None

    @property
    def panel_text(self) -> str:
        """Text shown in the inert error panel: sanitized source, else raw."""
        return sanitize_mermaid_chart(self.source) or self.source


def _repaired_diagram(diagram: DiagramSource, repaired: str) -> DiagramSource:
    if diagram.origin == "visual" and "```" not in diagram.fenced:
        return DiagramSource(source=repaired, origin="visual", fenced=repaired)
    return DiagramSource(source=repaired, origin=diagram.origin, fenced=fenced_block(repaired))


def _diagram_update(diagram: DiagramSource, repaired: DiagramSource) -> DiagramUpdate:
    if diagram.origin == "text":
        return DiagramUpdate(previous=diagram.fenced, next=repaired.fenced, origin="text")
    return DiagramUpdate(
        previous=fenced_block(diagram.source),
        next=fenced_block(repaired.source),
        origin="visual",
    )


class RepairCoordinator:
    def __init__(
        self,
        documents: DocumentStore,
        bus: EventBus,
        client: Optional[RepairClient] = None,
        notifier: Optional[Notifier] = None,
        max_tracked_sources: int = MAX_TRACKED_SOURCES,
    ) -> None:
        self.documents = documents
        self.bus = bus
        self.client = client or RepairClient()
        self.notifier = notifier or LoggingNotifier()
        self._states: Dict[str, DiagramRepairState] = {}
        self._in_flight: Optional[str] = None
        self.max_tracked_sources = max_tracked_sources

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    def state_for(self, source: str) -> DiagramRepairState:
        state = self._states.get(source)
        if state is None:
            self._evict_settled_states()
            state = DiagramRepairState(source=source)
            self._states[source] = state
        return state

    def _credentials(self):
        metadata = self.documents.get_metadata()
        if metadata is None:
            raise RepairDeclined("No generation metadata stored")
        api_key = self.documents.get_credential(metadata.provider)
        if api_key is None:
            raise RepairDeclined(f"No API key stored for provider {metadata.provider}")
        return metadata, api_key

    async def handle_render_failure(
        self,
        diagram: DiagramSource,
        error: RenderError,
        is_current: Callable[[], bool] = lambda: True,
        on_commit: Optional[Callable[[DiagramSource], None]] = None,
    ) -> RepairResult:
        state = self.state_for(diagram.source)
        if state.phase is RepairPhase.REPAIRED and state.repaired_source:
            return RepairResult(
                RepairOutcome.REPAIRED,
                diagram.source,
                _repaired_diagram(diagram, state.repaired_source),
            )
        if state.phase is RepairPhase.EXHAUSTED:
            return RepairResult(RepairOutcome.EXHAUSTED, diagram.source)
        if state.in_flight or self.in_flight:
            return RepairResult(RepairOutcome.BUSY, diagram.source)

        try:
            metadata, api_key = self._credentials()
        except RepairDeclined as exc:
            logger.debug("Diagram repair declined: %s", exc)
            return RepairResult(RepairOutcome.DECLINED, diagram.source)

        state.begin()
        self._in_flight = diagram.source
        try:
            prompt = build_repair_prompt(metadata, diagram.source, getattr(error, "detail", "") or str(error))
            try:
                payload = await self.client.request_repair(metadata, api_key, prompt)
            except RepairFailed:
                logger.exception("Diagram repair request failed", extra={"provider": metadata.provider})
                repaired_text = None
            else:
                repaired_text = parse_repair_response(payload)

            if not is_current():
                logger.info("Discarding diagram repair for a superseded source")
                state.exhaust()
                return RepairResult(RepairOutcome.CANCELLED, diagram.source)

            if not repaired_text or repaired_text.strip() == diagram.source.strip():
                state.exhaust()
                self.notifier.error(EXHAUSTED_MESSAGE)
                return RepairResult(RepairOutcome.EXHAUSTED, diagram.source)

            repaired = _repaired_diagram(diagram, repaired_text)
            update = _diagram_update(diagram, repaired)
            state.succeed(repaired_text)
            if on_commit is not None:
                on_commit(repaired)
            if not self.documents.apply_diagram_update(update):
                logger.warning("Stored document no longer contains the repaired diagram")
            self.bus.publish(DIAGRAM_UPDATED, update)
            logger.info("Diagram repaired", extra={"provider": metadata.provider, "model": metadata.model})
            self.notifier.success(REPAIRED_MESSAGE)
            return RepairResult(RepairOutcome.REPAIRED, diagram.source, repaired)
        except Exception:
            logger.exception("Unexpected error while repairing diagram")
            if state.phase is RepairPhase.REPAIRED and state.repaired_source:
                # Committed locally; persisting failed afterwards.
                self.notifier.error(SAVE_FAILED_MESSAGE)
                return RepairResult(
                    RepairOutcome.REPAIRED,
                    diagram.source,
                    _repaired_diagram(diagram, state.repaired_source),
                )
            if state.in_flight:
                state.exhaust()
                self.notifier.error(EXHAUSTED_MESSAGE)
            return RepairResult(RepairOutcome.EXHAUSTED, diagram.source)
        finally:
            self._in_flight = None

    def _evict_settled_states(self) -> None:
        excess = len(self._states) + 1 - self.max_tracked_sources
        if excess <= 0:
            return
        for source in [s for s, st in self._states.items() if not st.in_flight][:excess]:
            del self._states[source]
