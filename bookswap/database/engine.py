"""
bookswap.database.engine — Engine, Sessions & Thread Bridge
============================================================

BookSwap opens one short-lived session per service call; a swap
transition, its counters and its badges share that one transaction.

The API is async but the ORM is not, so route handlers hand service
calls to :func:`run_db`::

    engine = create_db_engine()
    init_db(engine)
    swaps = await run_db(swap_service.list_user_swaps, engine, user_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from bookswap.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Keyword arguments for create_engine. Stale connections are pinged and
# dropped after an hour; a caller waits at most 10 s for a free one.
POOL_SETTINGS: dict[str, int | bool] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 10,
    "pool_recycle": 3600,
}


def create_db_engine() -> Engine:
    """Connect to ``DATABASE_URL`` with :data:`POOL_SETTINGS`.

    Raises ``RuntimeError`` when the variable is missing or empty.
    """
    url = os.getenv("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set; add it to .env "
            "(see .env.example for the expected PostgreSQL form)."
        )

    engine = create_engine(url, echo=False, **POOL_SETTINGS)
    logger.info("Connected BookSwap database at %s", engine.url.host)
    return engine


def init_db(engine: Engine) -> None:
    """``create_all`` for local runs and tests; deployments use ``alembic upgrade head``."""
    Base.metadata.create_all(engine)
    logger.info("BookSwap schema ready (%d tables)", len(Base.metadata.tables))


@contextmanager
def get_session(engine: Engine):
    """One transaction: commit when the block finishes, roll back if it raises.

    Loaded rows keep their attribute values after commit, so a service can
    return the ``Book`` or ``SwapRequest`` it just wrote.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a blocking service call on the default executor."""
    return await asyncio.to_thread(func, *args, **kwargs)
