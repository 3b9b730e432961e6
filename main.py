"""
Actual iCal — Entry Point.

Single entry point: `python main.py` starts the calendar feed server.
"""

import logging

import uvicorn

from src.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.web.server import create_app

if __name__ == "__main__":
    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
