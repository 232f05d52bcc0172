class StorageError(Exception):
    """Raised when a storage backend cannot complete a read or write."""


class StorageNotConfiguredError(StorageError):
    """The remote backend was selected but has no database credentials."""


class NotAuthenticatedError(StorageError):
    """A write needs a user identity and none could be resolved."""

    def __init__(self, message: str = "Not signed in. Refresh and try again.") -> None:
        super().__init__(message)


class StorageSerializationError(StorageError):
    """A stored value could not be encoded or decoded."""
