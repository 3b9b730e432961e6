"""Feed error types shared by the fetcher, the projector and the web layer.

Every failure that leaves the core is a FeedError carrying a category and a
human-readable message, never a raw backend exception.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Failure categories, used for retry decisions and user messaging."""

    MIGRATION = "MIGRATION_ERROR"
    NETWORK = "NETWORK_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    SYNC_ID = "SYNC_ID_ERROR"
    SERVER_URL = "SERVER_URL_ERROR"
    BUDGET_DOWNLOAD = "BUDGET_DOWNLOAD_ERROR"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class FeedError(Exception):
    """Raised when the calendar feed cannot be produced."""

    def __init__(self, category: ErrorCategory, message: str) -> None:
        super().__init__(message)
        self.category = category
        self.message = message


class FetchFailure(FeedError):
    """Raised when schedules cannot be fetched from the budget server."""


class InvalidConfigurationError(FeedError):
    """Raised for schedule data the feed cannot interpret.

    Covers unknown frequencies, unknown weekend solve modes and malformed
    records. Never retried.
    """

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCategory.INVALID_CONFIGURATION, message)
