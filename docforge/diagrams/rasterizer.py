"""SVG to PNG conversion over an opaque white background."""
from __future__ import annotations

import io
import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple
from xml.etree import ElementTree as ET

from PIL import Image


DEFAULT_SIZE: Tuple[float, float] = (800.0, 600.0)

_NON_NUMERIC_RE = re.compile(r"[^\d.]")


@dataclass(frozen=True)
class RasterImage:
    png: bytes
    width: int
    height: int


def _parse_dimension(value: Optional[str]) -> float:
    if not value:
        return math.nan
    try:
        return float(_NON_NUMERIC_RE.sub("", value))
    except ValueError:
        return math.nan


def _usable(value: float) -> bool:
    return math.isfinite(value) and value > 0


def svg_dimensions(svg_text: str) -> Tuple[float, float]:
    """Intrinsic size from width/height, else viewBox, else 800x600."""
    try:
        root = ET.fromstring(svg_text)
    except ET.ParseError:
        return DEFAULT_SIZE
    width = _parse_dimension(root.get("width"))
    height = _parse_dimension(root.get("height"))
    if not (_usable(width) and _usable(height)) and root.get("viewBox"):
        parts = re.split(r"[\s,]+", root.get("viewBox", "").strip())
        if len(parts) == 4:
            width = _parse_dimension(parts[2])
            height = _parse_dimension(parts[3])
    if not (_usable(width) and _usable(height)):
        return DEFAULT_SIZE
    return width, height


def _svg_to_png(svg_bytes: bytes, width: int, height: int) -> bytes:
    # cairo is a native library; load it on first use only.
    import cairosvg

    return cairosvg.svg2png(
        bytestring=svg_bytes,
        output_width=width,
        output_height=height,
        background_color="white",
    )


def _flatten_on_white(png_bytes: bytes) -> bytes:
    with io.BytesIO(png_bytes) as source, Image.open(source) as image:
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, (255, 255, 255))
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        with io.BytesIO() as out:
            canvas.save(out, format="PNG")
            return out.getvalue()


def rasterize_svg(svg_text: str, scale: float = 2.0) -> RasterImage:
    width, height = svg_dimensions(svg_text)
    pixel_width = max(1, int(round(width * scale)))
    pixel_height = max(1, int(round(height * scale)))
    png = _svg_to_png(svg_text.encode("utf-8"), pixel_width, pixel_height)
    return RasterImage(png=_flatten_on_white(png), width=pixel_width, height=pixel_height)
