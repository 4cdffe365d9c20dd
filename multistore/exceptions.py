"""Error kinds raised by storage backends."""


class StorageError(Exception):
    """Base class for all storage errors."""


class NotFoundError(StorageError):
    """File, object or directory does not exist."""


class StorageIOError(StorageError):
    """Local filesystem failure (create, write, seek, remove)."""


class RemoteError(StorageError):
    """Network or service-level failure reported by an object store."""


class MetadataParseError(StorageError):
    """Object metadata headers could not be parsed."""


class UnsupportedOperationError(StorageError):
    """Operation is not supported by the backend."""


class ConfigInvalidError(StorageError):
    """Required configuration fields are missing for the selected mode."""

    def __init__(self, mode: str, missing: list[str]):
        self.mode = mode
        self.missing = missing
        super().__init__(
            f"{mode} config error: missing required fields: {', '.join(missing)}"
        )
