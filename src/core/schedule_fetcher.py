"""
Actual iCal — Schedule Fetcher.

Owns the connection lifecycle to the budget server and the local sync cache.
A failure that looks like a schema/version mismatch ("migration") clears the
cache and retries exactly once; every other failure surfaces immediately as
a FetchFailure with a user-facing message.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from src.core.error_classifier import (
    classify_error,
    describe_failure,
    extract_error_message,
)
from src.core.errors import ErrorCategory, FetchFailure
from src.data.models import Schedule
from src.ports.budget_port import BackendFailure, BudgetSession

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 2


def _reset_directory(path: Path) -> None:
    if path.exists():
        logger.warning("Clearing corrupted cache directory %s", path)
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


async def clear_cache(cache_dir: str | Path) -> None:
    """Destroy the sync cache and recreate it empty."""
    await asyncio.to_thread(_reset_directory, Path(cache_dir))
    logger.info("Cache directory cleared successfully")


class ScheduleFetcher:
    """Fetch the active schedules of one budget."""

    def __init__(
        self,
        session_factory: Callable[[], BudgetSession],
        *,
        server_url: str,
        password: str,
        sync_id: str,
        sync_password: str | None = None,
        cache_dir: str = ".actual-cache",
        clear_cache_on_error: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self._server_url = server_url
        self._password = password
        self._sync_id = sync_id
        self._sync_password = sync_password or None
        self._cache_dir = Path(cache_dir)
        self._clear_cache_on_error = clear_cache_on_error

    async def fetch(self, allow_retry: bool = True) -> list[Schedule]:
        """Return the non-deleted schedules, in backend query order.

        Raises FetchFailure when the schedules cannot be fetched. At most two
        attempts are made, and only a migration failure earns the second one.
        """
        first_failure: str | None = None

        for attempt in range(_MAX_ATTEMPTS):
            try:
                return await self._fetch_once()
            except BackendFailure as failure:
                raw_message = extract_error_message(failure)
                category = classify_error(failure)
                logger.error(
                    "Error fetching schedules (attempt %d, category=%s): %s [%s]",
                    attempt + 1, category.value, raw_message, failure.details or "",
                )

                can_retry = (
                    category is ErrorCategory.MIGRATION
                    and allow_retry
                    and attempt == 0
                    and self._clear_cache_on_error
                )
                if not can_retry:
                    message = describe_failure(category, raw_message)
                    if first_failure is not None:
                        message = (
                            f"{message} Retry after clearing the cache also failed "
                            f"(first attempt: {first_failure})"
                        )
                    raise FetchFailure(category, message) from failure

                logger.warning("Migration sync error detected, clearing cache and retrying...")
                try:
                    await clear_cache(self._cache_dir)
                except Exception as clear_error:
                    logger.error("Failed to clear cache during retry: %s", clear_error)
                    raise FetchFailure(
                        category,
                        f"Failed to fetch schedules: {raw_message} "
                        f"(cache clear also failed: {extract_error_message(clear_error)})",
                    ) from clear_error
                first_failure = raw_message

        # Unreachable: the last attempt either returns or raises.
        raise FetchFailure(ErrorCategory.UNKNOWN, "Failed to fetch schedules")

    async def _fetch_once(self) -> list[Schedule]:
        """One full init → pull → query round trip on a fresh session.

        Any failure raised by the session is converted to a BackendFailure
        here, the single place the backend client is invoked.
        """
        try:
            await asyncio.to_thread(self._cache_dir.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise BackendFailure(
                f"Cannot create cache directory {self._cache_dir}: {exc}",
                code="CACHE_DIR",
            ) from exc

        logger.info(
            "Initializing Actual API connection (server=%s, sync_id=%s..., cache=%s, "
            "sync_password=%s)",
            self._server_url,
            self._sync_id[:8],
            self._cache_dir,
            "set" if self._sync_password else "unset",
        )

        session = self._session_factory()
        try:
            await session.init(str(self._cache_dir), self._server_url, self._password)
            logger.info("Downloading budget data...")
            await session.pull(self._sync_id, self._sync_password)
            logger.debug("Querying schedules from database")
            records = await session.query("schedules", {"tombstone": False})
        except BackendFailure:
            raise
        except Exception as exc:
            raise BackendFailure.from_exception(exc) from exc
        finally:
            await self._shutdown(session)

        schedules = [Schedule.from_record(record) for record in records]
        logger.info("Successfully retrieved %d schedule(s)", len(schedules))
        return schedules

    @staticmethod
    async def _shutdown(session: BudgetSession) -> None:
        try:
            await session.shutdown()
        except Exception as exc:
            logger.warning("Failed to close budget session: %s", exc)


def create_schedule_fetcher() -> ScheduleFetcher:
    """Return a fetcher configured from settings, backed by actualpy."""
    from src.adapters.actual_budget import ActualBudgetSession
    from src.config import settings

    return ScheduleFetcher(
        ActualBudgetSession,
        server_url=settings.ACTUAL_SERVER,
        password=settings.ACTUAL_MAIN_PASSWORD,
        sync_id=settings.ACTUAL_SYNC_ID,
        sync_password=settings.ACTUAL_SYNC_PASSWORD,
        cache_dir=settings.ACTUAL_PATH,
        clear_cache_on_error=settings.CLEAR_CACHE_ON_ERROR,
    )
