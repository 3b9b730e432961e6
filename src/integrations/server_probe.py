"""Actual Budget server reachability probe.

A lightweight pre-flight check: confirms the required settings are present
and that the server answers HTTP at all. It does not log in or download the
budget; run the app for a full end-to-end check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10
_REACHABLE_STATUSES = {200, 301, 302, 308}

TROUBLESHOOTING_HINTS = (
    "Wrong URL (try https:// vs http://)",
    "Server is down",
    "Firewall blocking connection",
    "DNS resolution issues",
)


@dataclass
class ProbeResult:
    """Outcome of a single reachability check."""

    reachable: bool
    status_code: int | None = None
    error: str | None = None


def missing_settings(server: str, password: str, sync_id: str) -> list[str]:
    """Return the names of required settings that are empty."""
    required = {
        "ACTUAL_SERVER": server,
        "ACTUAL_MAIN_PASSWORD": password,
        "ACTUAL_SYNC_ID": sync_id,
    }
    return [name for name, value in required.items() if not value]


async def probe_server(server_url: str) -> ProbeResult:
    """GET the server root without following redirects."""
    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.get(server_url)
    except httpx.HTTPError as exc:
        logger.warning("Cannot reach server %s: %s", server_url, exc)
        return ProbeResult(reachable=False, error=str(exc) or type(exc).__name__)

    reachable = resp.status_code in _REACHABLE_STATUSES
    if not reachable:
        logger.warning("Server %s responded with unexpected status %d", server_url, resp.status_code)
    return ProbeResult(reachable=reachable, status_code=resp.status_code)
