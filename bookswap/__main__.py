"""
bookswap.__main__ — Entry point for ``python -m bookswap``
==========================================================

Wiring:
1. Load .env (secrets).
2. Optionally create tables (``--init-db``) for a fresh local database.
3. Serve the API with uvicorn; the app's lifespan builds the engine,
   the notification worker and the payment client.

Run with::

    python -m bookswap --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from bookswap.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("bookswap")


def main() -> None:
    """Bootstrap and serve the BookSwap API."""
    parser = argparse.ArgumentParser(prog="bookswap")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--init-db", action="store_true",
        help="create missing tables before starting (use alembic in production)",
    )
    args = parser.parse_args()

    load_dotenv()

    if args.init_db:
        engine = create_db_engine()
        init_db(engine)
        engine.dispose()
        logger.info("Database tables ensured")

    uvicorn.run("bookswap.api.main:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
