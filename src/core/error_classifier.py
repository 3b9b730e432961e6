"""Backend failure classification — pure business logic.

Best-effort keyword heuristics over the failure's message and stack text.
Misclassification is possible; the only category with behavioural weight is
MIGRATION, which triggers a cache clear and a single retry.

No I/O: this module only inspects data.
"""

from __future__ import annotations

import traceback
from collections.abc import Mapping

from src.core.errors import ErrorCategory

# Checked against message and stack. Migration wins over every other category,
# so "sync ... migration" resolves to MIGRATION rather than SYNC_ID.
_MIGRATION_KEYWORDS = (
    "out-of-sync-migrations",
    "migration",
    "timestamp",
    "database is out of sync",
    "appliedids",
    "available",
    "error updating",
    "migrate",
)

_BUDGET_DOWNLOAD_KEYWORDS = (
    "download-budget",
    "downloadbudget",
    "download_budget",
)

_MESSAGE_FIELDS = ("message", "stack", "reason", "error", "code", "details")

_USER_MESSAGES = {
    ErrorCategory.NETWORK: (
        "Network connection failed. Check if your remote server can reach "
        "the Actual Budget server."
    ),
    ErrorCategory.AUTHENTICATION: (
        "Authentication failed. Check your ACTUAL_MAIN_PASSWORD and "
        "ACTUAL_SYNC_PASSWORD."
    ),
    ErrorCategory.SYNC_ID: "Invalid Sync ID. Check your ACTUAL_SYNC_ID setting.",
    ErrorCategory.SERVER_URL: (
        "Server URL issue. Check your ACTUAL_SERVER URL and ensure it's accessible."
    ),
    ErrorCategory.BUDGET_DOWNLOAD: (
        "Failed to download budget data. This could be a server issue or "
        "corrupted cache."
    ),
    ErrorCategory.MIGRATION: (
        "Database version mismatch detected. This usually happens when the "
        "Actual server and client are on different versions."
    ),
}


def _field(failure: object, name: str) -> str | None:
    if isinstance(failure, Mapping):
        value = failure.get(name)
    else:
        value = getattr(failure, name, None)
    if isinstance(value, str) and value:
        return value
    return None


def extract_error_message(failure: object) -> str:
    """Return the best available message text for an opaque failure."""
    for name in _MESSAGE_FIELDS:
        value = _field(failure, name)
        if value:
            return value

    if isinstance(failure, BaseException):
        return str(failure) or type(failure).__name__

    return str(failure)


def extract_error_stack(failure: object) -> str | None:
    """Return stack/trace text for a failure, if any is available."""
    stack = _field(failure, "stack")
    if stack:
        return stack

    if isinstance(failure, BaseException) and failure.__traceback__ is not None:
        return "".join(
            traceback.format_exception(type(failure), failure, failure.__traceback__)
        )

    return None


def is_migration_error(failure: object) -> bool:
    """Check if a failure looks like a local/remote schema version mismatch."""
    message = extract_error_message(failure).lower()
    stack = (extract_error_stack(failure) or "").lower()
    combined = f"{message} {stack}"
    return any(keyword in combined for keyword in _MIGRATION_KEYWORDS)


def classify_error(failure: object) -> ErrorCategory:
    """Categorize a backend failure.

    Precedence is fixed: MIGRATION, NETWORK, AUTHENTICATION, SYNC_ID,
    SERVER_URL, BUDGET_DOWNLOAD, then UNKNOWN.
    """
    if is_migration_error(failure):
        return ErrorCategory.MIGRATION

    message = extract_error_message(failure).lower()
    stack = (extract_error_stack(failure) or "").lower()

    if any(word in message for word in ("network", "connection", "timeout")):
        return ErrorCategory.NETWORK

    if any(word in message for word in ("auth", "password", "credential")):
        return ErrorCategory.AUTHENTICATION

    if "sync" in message and "id" in message:
        return ErrorCategory.SYNC_ID

    if "server" in message and ("url" in message or "host" in message):
        return ErrorCategory.SERVER_URL

    if any(word in message or word in stack for word in _BUDGET_DOWNLOAD_KEYWORDS):
        return ErrorCategory.BUDGET_DOWNLOAD

    return ErrorCategory.UNKNOWN


def describe_failure(category: ErrorCategory, raw_message: str) -> str:
    """Return the user-facing message for a failure category."""
    template = _USER_MESSAGES.get(category)
    if template:
        return template
    return f"Connection error: {raw_message or 'Unknown error occurred'}"
