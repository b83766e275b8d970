from __future__ import annotations

import io
from typing import Callable, List, Optional, Tuple

import pytest
from PIL import Image

from docforge.diagrams import rasterizer
from docforge.documents.models import Document, GenerationMetadata
from docforge.errors import RenderError
from docforge.notifications import RecordingNotifier
from docforge.services import Services, build_services
from docforge.storage.store import InMemoryStore


SVG = '<svg xmlns="http://www.w3.org/2000/svg" width="100" height="50"></svg>'


class FakeEngine:
    """Diagram engine that accepts sources matching ``accept``."""

    def __init__(self, accept: Callable[[str], bool] = lambda source: True, svg: str = SVG):
        self.accept = accept
        self.svg = svg
        self.calls: List[str] = []

    async def render_svg(self, source: str) -> str:
        self.calls.append(source)
        if not self.accept(source):
            raise RenderError("Parse error", source=source, detail="Parse error on line 2")
        return self.svg


class FakeRepairClient:
    def __init__(self, payload: str = "", error: Optional[Exception] = None, before_return=None):
        self.payload = payload
        self.error = error
        self.before_return = before_return
        self.calls: List[Tuple[GenerationMetadata, str, str]] = []

    async def request_repair(self, metadata, api_key, prompt):
        self.calls.append((metadata, api_key, prompt))
        if self.before_return is not None:
            await self.before_return()
        if self.error is not None:
            raise self.error
        return self.payload


def make_png(width: int = 40, height: int = 30, mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    with io.BytesIO() as out:
        Image.new(mode, (width, height), color).save(out, format="PNG")
        return out.getvalue()


@pytest.fixture
def fake_png_conversion(monkeypatch):
    """Replace the cairo conversion with a transparent PNG of the requested size."""
    calls = []

    def _fake(svg_bytes, width, height):
        calls.append((width, height))
        return make_png(width, height, mode="RGBA", color=(0, 0, 0, 0))

    monkeypatch.setattr(rasterizer, "_svg_to_png", _fake)
    return calls


@pytest.fixture
def make_services():
    def _make(
        document: Optional[Document] = None,
        engine: Optional[FakeEngine] = None,
        client: Optional[FakeRepairClient] = None,
        credentials: bool = True,
    ) -> Tuple[Services, RecordingNotifier]:
        notifier = RecordingNotifier()
        services = build_services(
            store=InMemoryStore(),
            engine=engine or FakeEngine(),
            client=client or FakeRepairClient(),
            notifier=notifier,
        )
        if document is not None:
            services.documents.save_document(document)
        if credentials:
            services.documents.save_metadata(
                GenerationMetadata(provider="openai", model="gpt-4o", prompt="Document this repository")
            )
            services.documents.save_credential("openai", "sk-test")
        return services, notifier

    return _make
