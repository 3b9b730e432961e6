"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a fake budget session.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("ACTUAL_SERVER", "http://actual.test:5006")
os.environ.setdefault("ACTUAL_MAIN_PASSWORD", "fake-password-for-tests")
os.environ.setdefault("ACTUAL_SYNC_ID", "0f3c9a2e-1111-2222-3333-444455556666")
os.environ.setdefault("TZ", "UTC")
os.environ.setdefault("SYNC_ID_AS_URL", "false")

import pytest


class FakeBudgetSession:
    """In-memory BudgetSession that replays scripted outcomes.

    ``outcomes`` holds one entry per session created: either a list of
    records to return from query(), or an exception raised by pull().
    """

    def __init__(self, outcome, calls):
        self._outcome = outcome
        self._calls = calls

    async def init(self, cache_dir, server_url, password):
        self._calls.append(("init", cache_dir, server_url))

    async def pull(self, sync_id, sync_password=None):
        self._calls.append(("pull", sync_id))
        if isinstance(self._outcome, BaseException):
            raise self._outcome

    async def query(self, collection, filters=None):
        self._calls.append(("query", collection, filters))
        return self._outcome

    async def shutdown(self):
        self._calls.append(("shutdown",))


@pytest.fixture
def session_calls():
    return []


@pytest.fixture
def make_session_factory(session_calls):
    """Return a factory builder: make_session_factory(outcome1, outcome2, ...)."""

    def _make(*outcomes):
        remaining = list(outcomes)

        def factory():
            return FakeBudgetSession(remaining.pop(0), session_calls)

        return factory

    return _make


@pytest.fixture
def cache_dir(tmp_path):
    """Return a path for a (not yet created) sync cache directory."""
    return tmp_path / "actual-cache"
