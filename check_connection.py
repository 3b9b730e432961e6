"""
Actual iCal — Connectivity check.

`python check_connection.py` verifies the required environment variables
and that the Actual Budget server is reachable, without starting the app.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.integrations.server_probe import TROUBLESHOOTING_HINTS, missing_settings, probe_server


def main() -> int:
    load_dotenv(Path(__file__).resolve().parent / ".env")
    server = os.getenv("ACTUAL_SERVER", "")
    password = os.getenv("ACTUAL_MAIN_PASSWORD", "")
    sync_id = os.getenv("ACTUAL_SYNC_ID", "")

    print("Testing Actual Budget connection...\n")
    print("Server:", server)
    print("Has Password:", bool(password))
    print("Has Sync ID:", bool(sync_id))
    print()

    missing = missing_settings(server, password, sync_id)
    if missing:
        print(f"ERROR: Missing required environment variables: {', '.join(missing)}", file=sys.stderr)
        return 1

    result = asyncio.run(probe_server(server))
    if result.status_code is None:
        print(f"ERROR: Cannot reach server: {result.error}", file=sys.stderr)
        print("\nPossible issues:")
        for hint in TROUBLESHOOTING_HINTS:
            print(f"   - {hint}")
        return 1

    print("Server Response:", result.status_code)
    if result.reachable:
        print("Server is reachable")
    else:
        print("WARNING: Server responded with unexpected status:", result.status_code)

    print("\nNext: run `python main.py` and check the logs for the full Actual API connection.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
