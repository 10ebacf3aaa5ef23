"""Storage error types."""


class StorageError(Exception):
    """A durable-store read or write failed.

    Args:
        message: What went wrong.
        path: File involved, when the store is file-backed.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.message = message
        self.path = path
