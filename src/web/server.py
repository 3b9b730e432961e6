"""
Actual iCal — HTTP server.

Serves the calendar feed, a human-readable status page and a health check.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from src.config import settings
from src.core.errors import FeedError
from src.core.ical_feed import generate_feed
from src.data.models import FeedResult

logger = logging.getLogger(__name__)

FeedGenerator = Callable[[], Awaitable[FeedResult]]

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
           background: {background}; min-height: 100vh; margin: 0;
           display: flex; align-items: center; justify-content: center; }}
    .container {{ background: white; border-radius: 12px; padding: 40px;
                  max-width: 600px; width: 100%; box-shadow: 0 20px 60px rgba(0,0,0,0.3); }}
    .status {{ display: inline-block; color: white; padding: 6px 12px;
               border-radius: 20px; font-weight: 600; background: {badge}; }}
    .url-box {{ background: #1f2937; color: #10b981; padding: 12px; border-radius: 6px;
                font-family: monospace; word-break: break-all; }}
    .warning {{ background: #fef3c7; border: 2px solid #fbbf24; padding: 15px;
                border-radius: 8px; color: #78350f; }}
    .error {{ background: #fef2f2; border: 2px solid #fecaca; padding: 20px;
              border-radius: 8px; color: #991b1b; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>📅 Actual iCal Feed</h1>
    {body}
  </div>
</body>
</html>
"""

_EMPTY_WARNING = """
    <div class="warning">
      <strong>⚠️ No Scheduled Transactions</strong>
      <p>You don't have any active scheduled transactions in Actual.
      The calendar will be empty until you add some schedules.</p>
    </div>"""


def resolve_feed_path() -> str:
    """Return the URL path the feed is served on."""
    if settings.SYNC_ID_AS_URL:
        path = f"/{settings.ACTUAL_SYNC_ID}.ics"
        logger.debug("Using SyncID as URL: %s", path)
        return path
    return "/actual.ics"


def _status_page(feed_path: str, schedule_count: int) -> str:
    path = html.escape(feed_path)
    body = f"""<span class="status">✓ Online</span>
    {_EMPTY_WARNING if schedule_count == 0 else ""}
    <h2>Calendar Feed</h2>
    <p>Your Actual scheduled transactions are available as an iCal feed.</p>
    <div class="url-box">{path}</div>
    <p><a href="{path}">Download Calendar</a> · <a href="/healthcheck">Health Check</a></p>
    <h3>How to use:</h3>
    <ol>
      <li>Click "Download Calendar" to download the .ics file</li>
      <li>Or add <code>{path}</code> to your calendar app</li>
      <li>Supported apps: Google Calendar, Apple Calendar, Outlook, etc.</li>
    </ol>"""
    return _PAGE.format(
        title="Actual iCal Feed",
        background="linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
        badge="#10b981",
        body=body,
    )


def _error_page(message: str) -> str:
    body = f"""<span class="status">✗ Error</span>
    <div class="error">
      <strong>Failed to generate calendar:</strong>
      <pre>{html.escape(message)}</pre>
    </div>"""
    return _PAGE.format(
        title="Actual iCal Feed - Error",
        background="linear-gradient(135deg, #ef4444 0%, #dc2626 100%)",
        badge="#ef4444",
        body=body,
    )


def _error_message(exc: Exception) -> str:
    if isinstance(exc, FeedError):
        return exc.message
    return str(exc) or type(exc).__name__


def create_app(feed_generator: FeedGenerator | None = None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        feed_generator: Coroutine function producing the feed. Defaults to
            generate_feed with settings-based configuration.
    """
    generate = feed_generator or generate_feed
    feed_path = resolve_feed_path()

    app = FastAPI(title="Actual iCal", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(feed_path)
    async def calendar_feed() -> Response:
        try:
            result = await generate()
        except Exception as exc:
            logger.error("Error generating iCal: %s", _error_message(exc))
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "message": _error_message(exc)},
            )
        return Response(
            content=result.document,
            media_type="text/calendar; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="calendar.ics"'},
        )

    @app.get("/", response_class=HTMLResponse)
    async def status_page() -> HTMLResponse:
        try:
            result = await generate()
        except Exception as exc:
            logger.error("Status page failed to generate iCal: %s", _error_message(exc))
            return HTMLResponse(_error_page(_error_message(exc)), status_code=500)
        return HTMLResponse(_status_page(feed_path, result.schedule_count))

    @app.get("/healthcheck", response_class=PlainTextResponse)
    async def healthcheck() -> str:
        return "OK"

    return app
