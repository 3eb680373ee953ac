# dbqueue/common/exceptions.py


class DbQueueException(Exception):
    """Base exception for the dbqueue library."""

    pass


class InvalidConnectionError(DbQueueException):
    """Raised when a queue connection group cannot be resolved."""

    @classmethod
    def for_connection(cls, connection: str) -> "InvalidConnectionError":
        return cls(f"'{connection}' is not a valid queue connection group.")


class QueueStoreError(DbQueueException):
    """Raised when the backing table cannot be read."""

    @classmethod
    def for_table(cls, table: str) -> "QueueStoreError":
        return cls(f"There was an error fetching from the queue table: `{table}`")


class QueueWorkError(DbQueueException):
    """Raised when a message payload is neither a command nor a job."""

    def __init__(self, message: str = ""):
        super().__init__(
            message
            or "There is currently no functionality to work this queue, "
            "entries should be jobs or commands"
        )


class JobLoadError(DbQueueException):
    """Raised when a job's handler cannot be loaded."""

    pass


class NoActiveClaimError(DbQueueException):
    """Raised when progress is reported outside of a claimed execution."""

    pass
