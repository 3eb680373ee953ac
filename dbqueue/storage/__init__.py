from .base import QueueStorage
from .memory_storage import MemoryStorage
from .sql_storage import DEFAULT_TABLE, SqlStorage, build_queue_table

__all__ = [
    "DEFAULT_TABLE",
    "MemoryStorage",
    "QueueStorage",
    "SqlStorage",
    "build_queue_table",
]
