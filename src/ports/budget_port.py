"""Budget port — abstract interface for the budget backend session.

Core modules depend on this protocol, never on a specific client library.
"""

from __future__ import annotations

import traceback
from typing import Any, Protocol


class BackendFailure(Exception):
    """Raised when any budget backend operation fails.

    Carries the fields the error classifier inspects, in preference order:
    message, stack, reason, code, details.
    """

    def __init__(
        self,
        message: str = "",
        *,
        stack: str | None = None,
        reason: str | None = None,
        code: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message or reason or code or details or "Unknown backend failure")
        self.message = message
        self.stack = stack
        self.reason = reason
        self.code = code
        self.details = details

    @classmethod
    def from_exception(cls, exc: BaseException, *, code: str | None = None) -> BackendFailure:
        """Wrap an arbitrary failure, keeping its message and traceback text."""
        if isinstance(exc, BackendFailure):
            return exc
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(
            str(exc) or type(exc).__name__,
            stack=stack,
            code=code,
            details=type(exc).__name__,
        )


class BudgetSession(Protocol):
    """A single connection to the budget backend.

    ``init`` and ``pull`` must succeed before ``query`` is called; ``shutdown``
    is always called once the caller is done, even after a failure.
    """

    async def init(self, cache_dir: str, server_url: str, password: str) -> None: ...

    async def pull(self, sync_id: str, sync_password: str | None = None) -> None: ...

    async def query(
        self, collection: str, filters: dict[str, Any] | None = None
    ) -> list[dict]: ...

    async def shutdown(self) -> None: ...
