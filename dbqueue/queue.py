# dbqueue/queue.py
import logging
from typing import Optional, Union

from dbqueue.common.exceptions import InvalidConnectionError
from dbqueue.config import ConnectionConfig, QueueSettings, get_configured_settings
from dbqueue.events.base import EventPublisher
from dbqueue.server.engine import QueueEngine
from dbqueue.storage.connection import get_engine
from dbqueue.storage.sql_storage import SqlStorage

logger = logging.getLogger(__name__)

HANDLERS = ("database",)


def resolve_connection(
    settings: QueueSettings, connection: Union[str, ConnectionConfig, None] = None
) -> ConnectionConfig:
    if isinstance(connection, ConnectionConfig):
        return connection

    name = connection or settings.default_connection
    try:
        return settings.connections[name]
    except KeyError:
        raise InvalidConnectionError.for_connection(name) from None


def connect(
    settings: Optional[QueueSettings] = None,
    connection: Union[str, ConnectionConfig, None] = None,
    events: Optional[EventPublisher] = None,
    create_tables: bool = True,
) -> QueueEngine:
    """
    Build a queue engine for a configured connection group.

    Args:
        settings: Queue settings; the configured/global settings by default.
        connection: A connection name from settings.connections, or a
            ConnectionConfig. Empty means settings.default_connection.
        events: Publisher for job.succeeded / job.failed notifications.
        create_tables: Create the queue table if it does not exist.

    Raises:
        InvalidConnectionError: Unknown connection, handler or database group.
    """
    settings = settings or get_configured_settings()
    config = resolve_connection(settings, connection)

    if config.handler not in HANDLERS:
        raise InvalidConnectionError(f"Unknown queue handler: '{config.handler}'")

    url = settings.database_groups.get(config.db_group)
    if url is None:
        raise InvalidConnectionError(f"'{config.db_group}' is not a configured database group.")

    storage = SqlStorage(
        engine=get_engine(url, shared=config.shared_connection),
        table=config.table,
        create_tables=create_tables,
    )
    logger.debug("Connected queue table %s on group %s", config.table, config.db_group)
    return QueueEngine(storage, settings=settings, events=events)
