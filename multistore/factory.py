"""Backend selection and construction."""

import tempfile
from collections.abc import Callable, Mapping

import structlog

from multistore.backends import FilesystemBackend, MinIOBackend, OSSBackend, StorageBackend
from multistore.exceptions import ConfigInvalidError, StorageError
from multistore.models import LocalStorageConfig, StorageConfig, StorageMode

logger = structlog.get_logger()

Driver = Callable[[StorageConfig], StorageBackend]


def default_drivers() -> dict[StorageMode, Driver]:
    """Build the standard mode -> constructor map."""
    return {
        StorageMode.LOCAL: lambda config: FilesystemBackend(config.local),
        StorageMode.OSS: lambda config: OSSBackend(config.oss),
        StorageMode.MINIO: lambda config: MinIOBackend(config.minio),
    }


def resolve_mode(config: StorageConfig) -> StorageConfig:
    """Settle which backend ``config`` selects.

    ``assign_mode`` inherits ``mode`` when unset. When neither is set the
    result selects the local backend rooted at the system temp directory.

    Returns:
        A config with ``assign_mode`` set
    """
    if config.assign_mode is not None:
        return config
    if config.mode is not None:
        return config.model_copy(update={"assign_mode": config.mode})

    logger.info("No storage mode configured, using temp directory", path=tempfile.gettempdir())
    return config.model_copy(
        update={
            "mode": StorageMode.LOCAL,
            "assign_mode": StorageMode.LOCAL,
            "local": LocalStorageConfig(base_path=tempfile.gettempdir()),
        }
    )


def validate(config: StorageConfig) -> None:
    """Check the required fields of the selected backend config.

    Raises:
        ConfigInvalidError: If required fields are empty
    """
    mode = config.assign_mode or config.mode
    if mode is None:
        raise ConfigInvalidError("storage", ["mode"])

    section = {
        StorageMode.LOCAL: config.local,
        StorageMode.OSS: config.oss,
        StorageMode.MINIO: config.minio,
    }[mode]
    missing = section.missing_fields()
    if missing:
        raise ConfigInvalidError(mode.value, missing)


def create_storage(
    mode: StorageMode, config: StorageConfig, drivers: Mapping[StorageMode, Driver]
) -> StorageBackend:
    """Construct the backend registered for ``mode``.

    Raises:
        ValueError: If no driver is registered for ``mode``
    """
    try:
        driver = drivers[mode]
    except KeyError:
        raise ValueError(
            f"Unknown storage mode: {mode.value}. "
            f"Registered modes: {', '.join(m.value for m in drivers)}"
        ) from None
    return driver(config)


def get_storage(
    config: StorageConfig,
    mode: StorageMode | None = None,
    assign_mode: StorageMode | None = None,
    drivers: Mapping[StorageMode, Driver] | None = None,
) -> StorageBackend | None:
    """Get the configured storage backend.

    Applies the ``mode``/``assign_mode`` overrides, resolves the effective
    mode, validates its config section and constructs the backend.

    Args:
        config: Storage configuration
        mode: Override for ``config.mode``
        assign_mode: Override for ``config.assign_mode``
        drivers: Constructor map, ``default_drivers()`` when omitted

    Returns:
        The backend, or ``None`` when validation or construction failed
    """
    overrides = {}
    if mode is not None:
        overrides["mode"] = mode
    if assign_mode is not None:
        overrides["assign_mode"] = assign_mode
    if overrides:
        config = config.model_copy(update=overrides)

    config = resolve_mode(config)
    drivers = default_drivers() if drivers is None else drivers

    try:
        validate(config)
        backend = create_storage(config.assign_mode, config, drivers)
    except (StorageError, ValueError) as e:
        logger.error(
            "Failed to create storage backend", mode=config.assign_mode.value, error=str(e)
        )
        return None

    logger.info("Storage backend ready", mode=config.assign_mode.value, base=backend.base)
    return backend
