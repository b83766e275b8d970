"""HTTP client for the text-generation endpoint used by repairs."""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from docforge.documents.models import GenerationMetadata, RepairRequest, RepairResponse
from docforge.documents.text import strip_diagram_fences
from docforge.errors import RepairFailed
from docforge.utils.config import settings
from docforge.utils.http_client import build_async_client


logger = logging.getLogger(__name__)


def parse_repair_response(payload_text: str) -> Optional[str]:
    """Extract the corrected diagram from a generation response.

    A fenced ``mermaid`` block wins; otherwise any non-empty raw text is
    taken as the diagram. Returns None when nothing usable is present.
    """
    repaired = strip_diagram_fences(payload_text or "")
    return repaired or None


class RepairClient:
    """Posts repair prompts to the generation endpoint."""

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint_url = endpoint_url or settings.repair_endpoint_url
        self.timeout_seconds = settings.repair_timeout_seconds if timeout_seconds is None else timeout_seconds
        self._transport = transport

    async def request_repair(self, metadata: GenerationMetadata, api_key: str, prompt: str) -> str:
        body = RepairRequest(provider=metadata.provider, model=metadata.model, api_key=api_key, prompt=prompt)
        try:
            async with build_async_client(self.timeout_seconds, self._transport) as client:
                response = await client.post(self.endpoint_url, json=body.model_dump(by_alias=True))
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise RepairFailed(f"Repair request timed out after {self.timeout_seconds:g}s") from exc
        except httpx.HTTPError as exc:
            raise RepairFailed(f"Repair request failed: {exc}") from exc
        except ValueError as exc:
            raise RepairFailed("Repair response is not valid JSON") from exc

        if not isinstance(data, dict):
            raise RepairFailed("Repair response has an unexpected shape")
        try:
            parsed = RepairResponse.model_validate(data)
        except ValidationError as exc:
            raise RepairFailed("Repair response has an unexpected shape") from exc
        return parsed.payload_text()
