"""Actual Budget adapter — implements BudgetSession with actualpy.

The actualpy client is synchronous, so every call is wrapped with
asyncio.to_thread for async compatibility. Known client failures are mapped
to BackendFailure here so the rest of the app never sees actualpy types.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from contextlib import ExitStack
from typing import Any

from actual import Actual
from actual.exceptions import ActualError, AuthorizationError, UnknownFileId
from requests.exceptions import RequestException
from sqlalchemy import text

from src.ports.budget_port import BackendFailure

logger = logging.getLogger(__name__)

# Schedules keep their date rule and amount as conditions of the linked rule,
# and their precomputed next date in a side table.
_SCHEDULES_SQL = """
SELECT s.id, s.name, r.conditions, nd.local_next_date
FROM schedules s
LEFT JOIN rules r ON r.id = s.rule
LEFT JOIN schedules_next_date nd
    ON nd.schedule_id = s.id AND nd.tombstone = 0
WHERE s.tombstone = :tombstone
ORDER BY s.name, s.id
"""


def _to_backend_failure(exc: Exception) -> BackendFailure:
    """Map a known client failure to a BackendFailure."""
    if isinstance(exc, AuthorizationError):
        return BackendFailure(
            "Authentication failed", code="AUTHENTICATION", details=str(exc)
        )
    if isinstance(exc, UnknownFileId):
        return BackendFailure(
            "Unknown sync id, no budget matches it", code="SYNC_ID", details=str(exc)
        )
    if isinstance(exc, (RequestException, ConnectionError, TimeoutError)):
        return BackendFailure(
            f"Network connection failed ({type(exc).__name__})",
            code="NETWORK",
            details=str(exc),
        )
    if isinstance(exc, OSError):
        # Filesystem trouble while writing the budget into data_dir.
        return BackendFailure(
            f"Cannot write to local budget cache ({type(exc).__name__})",
            code="CACHE_IO",
            details=str(exc),
        )
    return BackendFailure.from_exception(exc)


def _format_next_date(value: Any) -> str | None:
    """Stored next dates are integers like 20261017."""
    if value is None:
        return None
    digits = str(value)
    if len(digits) == 8 and digits.isdigit():
        return f"{digits[:4]}-{digits[4:6]}-{digits[6:]}"
    return digits


def _row_to_record(row: dict) -> dict:
    """Convert a schedules query row into the schedule record shape."""
    conditions = row.get("conditions") or "[]"
    if isinstance(conditions, str):
        conditions = json.loads(conditions)

    record: dict[str, Any] = {
        "id": row.get("id"),
        "name": row.get("name"),
        "next_date": _format_next_date(row.get("local_next_date")),
        "_amount": 0,
        "_date": None,
    }
    for condition in conditions:
        field = condition.get("field")
        if field == "date":
            record["_date"] = condition.get("value")
        elif field == "amount":
            record["_amount"] = condition.get("value")
    return record


class ActualBudgetSession:
    """actualpy implementation of BudgetSession."""

    def __init__(self) -> None:
        self._stack = ExitStack()
        self._client: Actual | None = None
        # Guards _closed and _stack: a timed-out init keeps running in its thread.
        self._lock = threading.Lock()
        self._closed = False

    async def init(self, cache_dir: str, server_url: str, password: str) -> None:
        def _connect() -> Actual:
            client = Actual(base_url=server_url, password=password, data_dir=cache_dir)
            with self._lock:
                if not self._closed:
                    return self._stack.enter_context(client)
            # Shut down while connecting: close the late client right away.
            with ExitStack() as late:
                late.enter_context(client)
            logger.warning("Closed Actual client that connected after shutdown")
            raise BackendFailure("Session shut down while connecting", code="SHUTDOWN")

        try:
            self._client = await asyncio.to_thread(_connect)
        except (ActualError, OSError) as exc:
            logger.error("Actual error (init): %s", exc)
            raise _to_backend_failure(exc) from exc
        logger.debug("Actual API initialized successfully")

    async def pull(self, sync_id: str, sync_password: str | None = None) -> None:
        client = self._require_client()

        def _download() -> None:
            client.set_file(sync_id)
            client.download_budget(sync_password)

        try:
            await asyncio.to_thread(_download)
        except (ActualError, OSError) as exc:
            logger.error("Actual error (download_budget): %s", exc)
            raise _to_backend_failure(exc) from exc
        logger.debug("Budget downloaded successfully")

    async def query(
        self, collection: str, filters: dict[str, Any] | None = None
    ) -> list[dict]:
        if collection != "schedules":
            raise BackendFailure(f"Unsupported collection: {collection}", code="QUERY")

        client = self._require_client()
        tombstone = int(bool((filters or {}).get("tombstone", False)))

        def _run() -> list[dict]:
            result = client.session.execute(text(_SCHEDULES_SQL), {"tombstone": tombstone})
            return [dict(row) for row in result.mappings().all()]

        try:
            rows = await asyncio.to_thread(_run)
        except Exception as exc:
            logger.error("Actual error (query %s): %s", collection, exc)
            raise _to_backend_failure(exc) from exc

        return [_row_to_record(row) for row in rows]

    async def shutdown(self) -> None:
        def _close() -> None:
            with self._lock:
                self._closed = True
                self._stack.close()

        await asyncio.to_thread(_close)
        self._client = None

    def _require_client(self) -> Actual:
        if self._client is None:
            raise BackendFailure("Actual API is not initialized", code="NOT_INITIALIZED")
        return self._client
