"""Diagram rendering with a sanitize-and-retry fallback."""
from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from docforge.diagrams.rasterizer import RasterImage, rasterize_svg
from docforge.diagrams.sanitizer import sanitize_mermaid_chart
from docforge.errors import RenderError
from docforge.utils.config import settings


logger = logging.getLogger(__name__)


class DiagramEngine(Protocol):
    async def render_svg(self, source: str) -> str: ...


@dataclass(frozen=True)
class RenderResult:
    svg: str
    source: str


@dataclass(frozen=True)
class RasterResult:
    svg: str
    source: str
    image: RasterImage

    def data_url(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.image.png).decode("ascii")


class DiagramRenderer:
    """Render diagram sources through an engine.

    ``render`` tries the source as given, then its sanitized form if that
    differs, and reports which text actually rendered.
    """

    def __init__(self, engine: DiagramEngine, scale: Optional[float] = None) -> None:
        self.engine = engine
        self.scale = settings.raster_scale if scale is None else scale

    async def render(self, source: str) -> RenderResult:
        candidates: List[str] = [source]
        sanitized = sanitize_mermaid_chart(source)
        if sanitized and sanitized != source:
            candidates.append(sanitized)

        last_error: Optional[BaseException] = None
        for candidate in candidates:
            try:
                svg = await self.engine.render_svg(candidate)
            except Exception as exc:
                last_error = exc
                logger.debug("Diagram candidate failed to render: %s", exc)
                continue
            return RenderResult(svg=svg, source=candidate)

        detail = getattr(last_error, "detail", "") or str(last_error or "")
        raise RenderError("Failed to render Mermaid diagram", source=source, detail=detail) from last_error

    async def rasterize(self, source: str) -> RasterResult:
        return await self.rasterize_rendered(await self.render(source))

    async def rasterize_rendered(self, result: RenderResult) -> RasterResult:
        """Convert an already rendered SVG to PNG without calling the engine."""
        try:
            image = await asyncio.to_thread(rasterize_svg, result.svg, self.scale)
        except Exception as exc:
            raise RenderError("Failed to convert diagram to PNG", source=result.source, detail=str(exc)) from exc
        return RasterResult(svg=result.svg, source=result.source, image=image)
