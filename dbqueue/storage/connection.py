"""
Database engine management.
Creates SQLAlchemy engines for configured database groups, sharing one engine
per URL when the connection asks for it.
"""

import logging
from threading import Lock
from typing import Dict

from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Shared engines keyed by URL
_engines: Dict[str, Engine] = {}
_engines_lock = Lock()


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:", "sqlite+pysqlite:///:memory:")


def create_queue_engine(url: str) -> Engine:
    """
    Create a new engine for the given URL.

    In-memory SQLite gets a StaticPool so every connection sees the same
    database.
    """
    if _is_memory_sqlite(url):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, pool_pre_ping=True)


def get_engine(url: str, shared: bool = True) -> Engine:
    """
    Get an engine for the given URL.

    Args:
        url: SQLAlchemy database URL.
        shared: Reuse the process-wide engine for this URL instead of
            creating a private one.
    """
    if not shared:
        return create_queue_engine(url)

    with _engines_lock:
        engine = _engines.get(url)
        if engine is None:
            engine = create_queue_engine(url)
            _engines[url] = engine
            logger.info("Database engine created for %s", engine.url.render_as_string())
        return engine


def dispose_engines() -> None:
    """Dispose every shared engine. Call on application shutdown."""
    with _engines_lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()
    logger.info("Database engines disposed")
