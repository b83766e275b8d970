"""Assemble the store, event bus, renderer and repair loop."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from docforge.diagrams.renderer import DiagramEngine, DiagramRenderer
from docforge.diagrams.view import DiagramView
from docforge.events import EventBus
from docforge.notifications import LoggingNotifier, Notifier
from docforge.renderers.mermaid_cli import MermaidCliEngine
from docforge.repair.client import RepairClient
from docforge.repair.coordinator import RepairCoordinator
from docforge.storage.store import DocumentStore, KeyValueStore, SqlKeyValueStore
from docforge.utils.config import settings


@dataclass
class Services:
    documents: DocumentStore
    bus: EventBus
    renderer: DiagramRenderer
    coordinator: RepairCoordinator

    def diagram_view(self) -> DiagramView:
        return DiagramView(self.documents, self.renderer, self.coordinator)


def build_services(
    store: Optional[KeyValueStore] = None,
    engine: Optional[DiagramEngine] = None,
    client: Optional[RepairClient] = None,
    notifier: Optional[Notifier] = None,
) -> Services:
    documents = DocumentStore(store if store is not None else SqlKeyValueStore.from_url(settings.database_url))
    bus = EventBus()
    renderer = DiagramRenderer(engine or MermaidCliEngine())
    coordinator = RepairCoordinator(documents, bus, client=client, notifier=notifier or LoggingNotifier())
    return Services(documents=documents, bus=bus, renderer=renderer, coordinator=coordinator)
