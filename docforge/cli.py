"""CLI interface."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from docforge.diagrams.renderer import RenderResult
from docforge.diagrams.sanitizer import sanitize_mermaid_chart
from docforge.diagrams.view import ViewStatus
from docforge.documents.models import Document, GenerationMetadata
from docforge.documents.text import clean_generated_text
from docforge.errors import ExportIOError, ImageDecodeError, RenderError
from docforge.exports import MARKDOWN_FILENAME, PDF_FILENAME, export_markdown, export_pdf
from docforge.markdown.html import render_html
from docforge.markdown.parser import parse_blocks
from docforge.services import Services, build_services
from docforge.utils.config import settings
from docforge.utils.file_utils import read_text_file, write_export

app = typer.Typer(add_completion=False)


def _services() -> Services:
    return build_services()


def _require_document(services: Services) -> Document:
    document = services.documents.get_document()
    if document is None:
        typer.echo("No documentation results found. Load a document first.", err=True)
        raise typer.Exit(code=1)
    return document


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")):
    """Render generated documentation to PDF, markdown and diagram images."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def load(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown document to store."),
    visual: Optional[Path] = typer.Option(None, "--visual", exists=True, dir_okay=False, help="Mermaid diagram file."),
    provider: Optional[str] = typer.Option(None, "--provider", help="Provider that generated the document."),
    model: Optional[str] = typer.Option(None, "--model"),
    prompt: Optional[str] = typer.Option(None, "--prompt", help="Prompt used for generation."),
):
    """Store a generated document (and optionally its generation metadata)."""
    services = _services()
    text = clean_generated_text(read_text_file(str(file)))
    visual_content = read_text_file(str(visual)) if visual else ""
    services.documents.save_document(Document(text_content=text, visual_content=visual_content))
    if provider and model:
        services.documents.save_metadata(GenerationMetadata(provider=provider, model=model, prompt=prompt or ""))
    typer.echo(f"Stored document ({len(text)} characters)")


@app.command("set-key")
def set_key(
    provider: str = typer.Argument(..., help="Provider id, e.g. openai."),
    api_key: str = typer.Argument(..., help="API key for the provider."),
):
    """Store an API key for a provider."""
    if not api_key.strip():
        raise typer.BadParameter("Please enter a valid API key")
    _services().documents.save_credential(provider, api_key)
    typer.echo(f"API key saved for {provider}")


@app.command()
def sanitize(file: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """Print the sanitized form of a Mermaid file."""
    typer.echo(sanitize_mermaid_chart(read_text_file(str(file))))


@app.command("render-diagram")
def render_diagram(
    output: Path = typer.Option(Path(settings.output_dir) / "diagram.png", "--output", "-o"),
    svg: bool = typer.Option(False, "--svg", help="Write SVG instead of PNG."),
):
    """Render the stored document's diagram, repairing it if needed."""
    services = _services()
    document = _require_document(services)

    async def _run():
        state = await services.diagram_view().render(document)
        if state.status is not ViewStatus.RENDERED:
            return state, None
        if svg:
            return state, state.svg
        raster = await services.renderer.rasterize_rendered(RenderResult(svg=state.svg or "", source=state.source or ""))
        return state, raster.image.png

    try:
        state, payload = asyncio.run(_run())
    except RenderError as exc:
        typer.echo(f"Failed to render diagram: {exc}", err=True)
        raise typer.Exit(code=1)
    if payload is None:
        typer.echo(state.message, err=True)
        if state.panel_text:
            typer.echo(state.panel_text)
        raise typer.Exit(code=0 if state.status is ViewStatus.EMPTY else 1)
    try:
        path = write_export(output, payload)
    except ExportIOError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(str(path))


@app.command("export-pdf")
def export_pdf_command(output: Path = typer.Option(Path(settings.output_dir) / PDF_FILENAME, "--output", "-o")):
    """Export the stored document as a paginated PDF."""
    services = _services()
    document = _require_document(services)
    try:
        path = asyncio.run(export_pdf(document, services.renderer, output))
    except (ExportIOError, ImageDecodeError) as exc:
        typer.echo(f"Failed to generate PDF: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(path))


@app.command("export-markdown")
def export_markdown_command(output: Path = typer.Option(Path(settings.output_dir) / MARKDOWN_FILENAME, "--output", "-o")):
    """Export the stored document as markdown with diagrams inlined as images."""
    services = _services()
    document = _require_document(services)
    try:
        path = asyncio.run(export_markdown(document, services.renderer, output))
    except ExportIOError as exc:
        typer.echo(f"Failed to export Markdown: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(path))


@app.command()
def show(as_json: bool = typer.Option(False, "--json", help="Print the stored document as JSON.")):
    """Print the stored document as HTML (default) or JSON."""
    document = _require_document(_services())
    if as_json:
        typer.echo(json.dumps(document.model_dump(by_alias=True), indent=2))
        return
    typer.echo(render_html(parse_blocks(document.text_content)))


if __name__ == "__main__":
    app()
