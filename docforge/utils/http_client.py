"""httpx client construction for outbound generation requests."""
from __future__ import annotations

import httpx

from docforge.utils.config import settings


def build_async_client(
    timeout_seconds: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an async httpx client bounded by the repair timeout."""
    total = settings.repair_timeout_seconds if timeout_seconds is None else timeout_seconds
    return httpx.AsyncClient(
        timeout=httpx.Timeout(total, connect=min(10.0, total)),
        limits=httpx.Limits(max_connections=4, max_keepalive_connections=2),
        follow_redirects=True,
        transport=transport,
    )
