"""REST API server."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from pydantic import BaseModel

from docforge.diagrams.renderer import RenderResult
from docforge.diagrams.view import ViewStatus
from docforge.documents.models import Document, GenerationMetadata
from docforge.errors import ImageDecodeError, RenderError
from docforge.exports import MARKDOWN_FILENAME, PDF_FILENAME, build_pdf, convert_mermaid_markdown_to_images
from docforge.markdown.html import render_html
from docforge.markdown.parser import parse_blocks
from docforge.services import Services, build_services


app = FastAPI(title="Documentation Rendering API")


class DocumentPayload(BaseModel):
    document: Document
    metadata: Optional[GenerationMetadata] = None


class CredentialPayload(BaseModel):
    api_key: str


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services()


def _require_document(services: Services) -> Document:
    document = services.documents.get_document()
    if document is None:
        raise HTTPException(status_code=404, detail="No documentation results found")
    return document


@app.get("/document")
def get_document(services: Services = Depends(get_services)):
    document = _require_document(services)
    return document.model_dump(by_alias=True)


@app.get("/", response_class=HTMLResponse)
def view_document(services: Services = Depends(get_services)):
    document = _require_document(services)
    return HTMLResponse(render_html(parse_blocks(document.text_content)))


@app.put("/document")
def put_document(payload: DocumentPayload, services: Services = Depends(get_services)):
    services.documents.save_document(payload.document)
    if payload.metadata is not None:
        services.documents.save_metadata(payload.metadata)
    return {"status": "saved"}


@app.put("/credentials/{provider}")
def put_credential(provider: str, payload: CredentialPayload, services: Services = Depends(get_services)):
    if not payload.api_key.strip():
        raise HTTPException(status_code=400, detail="Please enter a valid API key")
    services.documents.save_credential(provider, payload.api_key)
    return {"status": "saved", "provider": provider}


async def _render_current(services: Services):
    document = _require_document(services)
    state = await services.diagram_view().render(document)
    if state.status is ViewStatus.EMPTY:
        raise HTTPException(status_code=404, detail=state.message)
    if state.status is not ViewStatus.RENDERED:
        raise HTTPException(
            status_code=422,
            detail={"message": state.message, "status": state.status.value, "source": state.panel_text},
        )
    return state


@app.get("/diagram.svg")
async def get_diagram_svg(services: Services = Depends(get_services)):
    state = await _render_current(services)
    return Response(content=state.svg, media_type="image/svg+xml")


@app.get("/diagram.png")
async def get_diagram_png(services: Services = Depends(get_services)):
    state = await _render_current(services)
    try:
        raster = await services.renderer.rasterize_rendered(RenderResult(svg=state.svg or "", source=state.source or ""))
    except RenderError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return Response(content=raster.image.png, media_type="image/png")


@app.get(f"/export/{PDF_FILENAME}")
async def export_pdf(services: Services = Depends(get_services)):
    document = _require_document(services)
    try:
        pdf_bytes = await build_pdf(document, services.renderer)
    except ImageDecodeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{PDF_FILENAME}"'},
    )


@app.get(f"/export/{MARKDOWN_FILENAME}", response_class=PlainTextResponse)
async def export_markdown(services: Services = Depends(get_services)):
    document = _require_document(services)
    markdown, _ = await convert_mermaid_markdown_to_images(document.text_content, services.renderer)
    return PlainTextResponse(
        markdown or document.text_content,
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{MARKDOWN_FILENAME}"'},
    )
