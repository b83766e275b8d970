"""Mermaid renderer using mermaid-cli, locally or dockerized."""
from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import List, Optional

from docforge.errors import RenderError
from docforge.utils.config import settings
from docforge.utils.file_utils import read_text_file


logger = logging.getLogger(__name__)

_INPUT_NAME = "input.mmd"
_OUTPUT_NAME = "output.svg"


def docker_command(image: str, workdir: Path, args: List[str]) -> List[str]:
    return [
        "docker",
        "run",
        "--rm",
        "-v",
        f"{workdir}:/data",
        "-w",
        "/data",
        image,
    ] + args


def error_details(stderr_text: str, max_lines: int = 8) -> str:
    """Condense renderer stderr into a readable message."""
    raw = (stderr_text or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.strip() for line in raw.split("\n") if line.strip()]
    if not lines:
        return "unknown error"
    return "\n".join(lines[:max_lines])


class MermaidCliEngine:
    """Render Mermaid source to SVG text with ``mmdc``.

    Each call works in its own temporary directory, removed on success and
    on failure.
    """

    def __init__(
        self,
        mode: Optional[str] = None,
        cli_path: Optional[str] = None,
        image: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.mode = (mode or settings.mermaid_render_mode).strip().lower()
        self.cli_path = cli_path or settings.mermaid_cli_path
        self.image = image or settings.mermaid_renderer_image
        self.timeout_seconds = timeout_seconds or settings.mermaid_render_timeout_seconds

    def command(self, workdir: Path) -> List[str]:
        if self.mode == "docker":
            return docker_command(self.image, workdir, ["-i", _INPUT_NAME, "-o", _OUTPUT_NAME, "-b", "white"])
        return [
            self.cli_path,
            "-i",
            str(workdir / _INPUT_NAME),
            "-o",
            str(workdir / _OUTPUT_NAME),
            "-b",
            "white",
            "--quiet",
        ]

    async def render_svg(self, source: str) -> str:
        with tempfile.TemporaryDirectory(prefix="docforge-mmd-") as tmp_dir:
            workdir = Path(tmp_dir)
            (workdir / _INPUT_NAME).write_text(source, encoding="utf-8")
            output_path = workdir / _OUTPUT_NAME
            cmd = self.command(workdir)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as exc:
                raise RenderError(f"Mermaid renderer not available: {cmd[0]}", source=source) from exc
            try:
                _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                proc.kill()
                await proc.wait()
                raise RenderError("Mermaid renderer timed out", source=source) from exc

            if proc.returncode != 0:
                detail = error_details(stderr.decode("utf-8", errors="replace"))
                logger.debug("mmdc exited with %s: %s", proc.returncode, detail)
                raise RenderError(f"Mermaid rejected the diagram: {detail}", source=source, detail=detail)
            if not output_path.exists():
                raise RenderError("Mermaid renderer produced no output", source=source)
            return read_text_file(str(output_path))
