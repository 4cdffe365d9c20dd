"""multistore entry point.

CLI tool for moving files in and out of a local directory, an OSS bucket or
a MinIO bucket through one interface.

Commands:
    upload      - Upload a local file
    download    - Download a file to a local path
    delete      - Delete a file
    list        - List a directory recursively
    mkdir       - Create a directory
    rmdir       - Delete a directory and its contents
    rename      - Rename a file
    copy        - Copy a file
    move        - Move a file
    stat        - Show file metadata
    init-config - Write a default configuration file
    validate    - Validate the configuration file
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, TypeVar

import aiofiles
import structlog
import typer
import yaml

from multistore.backends import StorageBackend
from multistore.config import get_default_config, load_config
from multistore.exceptions import StorageError
from multistore.factory import get_storage, resolve_mode, validate as validate_config
from multistore.models import StorageConfig, StorageMode

app = typer.Typer(
    name="multistore",
    help="Unified file storage over local disk, Alibaba Cloud OSS and MinIO",
    add_completion=False,
)

T = TypeVar("T")


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Output format ("json" or "console")
    """
    logging.basicConfig(format="%(message)s", level=level.upper())

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@dataclass
class CLIOptions:
    """Global options shared by the file commands."""

    config_path: Path | None = None
    storage_type: StorageMode | None = None
    local: dict[str, Any] = field(default_factory=dict)
    oss: dict[str, Any] = field(default_factory=dict)
    minio: dict[str, Any] = field(default_factory=dict)


def _set(values: dict[str, Any], **options: Any) -> dict[str, Any]:
    values.update({name: value for name, value in options.items() if value is not None})
    return values


def build_config(options: CLIOptions) -> StorageConfig:
    """Load the config file and apply command-line overrides on top."""
    config = load_config(options.config_path)
    return config.model_copy(
        update={
            "local": config.local.model_copy(update=options.local),
            "oss": config.oss.model_copy(update=options.oss),
            "minio": config.minio.model_copy(update=options.minio),
        }
    )


def _fail(message: str) -> typer.Exit:
    typer.echo(message, err=True)
    return typer.Exit(1)


def _run(ctx: typer.Context, action: Callable[[StorageBackend], Awaitable[T]]) -> T:
    """Build the backend from the global options and run ``action`` on it."""
    options: CLIOptions = ctx.obj
    try:
        config = build_config(options)
    except FileNotFoundError as e:
        raise _fail(str(e)) from None
    except ValueError as e:
        raise _fail(f"Configuration error: {e}") from None

    setup_logging(config.logging.level, config.logging.format)

    backend = get_storage(
        config, mode=options.storage_type, assign_mode=options.storage_type
    )
    if backend is None:
        raise _fail("Failed to initialize storage, see log for details")

    try:
        return asyncio.run(action(backend))
    except (StorageError, OSError, ValueError) as e:
        raise _fail(f"Error: {e}") from None


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file (default: $MULTISTORE_CONFIG)",
    ),
    storage_type: StorageMode = typer.Option(
        None,
        "--type",
        "-t",
        help="Storage type, overrides the configured mode",
    ),
    local_basepath: str = typer.Option(None, "--local-basepath", help="Local base path"),
    oss_endpoint: str = typer.Option(None, "--oss-endpoint", help="OSS endpoint"),
    oss_access_key_id: str = typer.Option(None, "--oss-access-key-id", help="OSS access key ID"),
    oss_access_key_secret: str = typer.Option(
        None, "--oss-access-key-secret", help="OSS access key secret"
    ),
    oss_bucket: str = typer.Option(None, "--oss-bucket", help="OSS bucket"),
    oss_base_dir: str = typer.Option(None, "--oss-base-dir", help="OSS base directory"),
    minio_endpoint: str = typer.Option(None, "--minio-endpoint", help="MinIO endpoint"),
    minio_access_key_id: str = typer.Option(
        None, "--minio-access-key-id", help="MinIO access key ID"
    ),
    minio_access_key_secret: str = typer.Option(
        None, "--minio-access-key-secret", help="MinIO access key secret"
    ),
    minio_use_ssl: Optional[bool] = typer.Option(
        None, "--minio-use-ssl/--minio-no-ssl", help="Use HTTPS for MinIO"
    ),
    minio_bucket: str = typer.Option(None, "--minio-bucket", help="MinIO bucket"),
    minio_base_dir: str = typer.Option(None, "--minio-base-dir", help="MinIO base directory"),
) -> None:
    """Unified file storage over local disk, Alibaba Cloud OSS and MinIO."""
    ctx.obj = CLIOptions(
        config_path=config_path,
        storage_type=storage_type,
        local=_set({}, base_path=local_basepath),
        oss=_set(
            {},
            endpoint=oss_endpoint,
            access_key_id=oss_access_key_id,
            access_key_secret=oss_access_key_secret,
            bucket=oss_bucket,
            base_dir=oss_base_dir,
        ),
        minio=_set(
            {},
            endpoint=minio_endpoint,
            access_key_id=minio_access_key_id,
            access_key_secret=minio_access_key_secret,
            use_ssl=minio_use_ssl,
            bucket=minio_bucket,
            base_dir=minio_base_dir,
        ),
    )


@app.command()
def upload(
    ctx: typer.Context,
    src: Path = typer.Argument(..., help="Local file to upload"),
    dst: str = typer.Argument(..., help="Destination path in storage"),
) -> None:
    """Upload a local file."""

    async def action(backend: StorageBackend) -> None:
        with open(src, "rb") as f:
            await backend.upload(dst, f)

    _run(ctx, action)
    typer.echo(f"Uploaded {src} to {dst}")


@app.command()
def download(
    ctx: typer.Context,
    src: str = typer.Argument(..., help="Path in storage"),
    dst: Path = typer.Argument(..., help="Local destination file"),
) -> None:
    """Download a file to a local path."""

    async def action(backend: StorageBackend) -> None:
        async with await backend.download(src) as stream:
            async with aiofiles.open(dst, "wb") as f:
                async for chunk in stream:
                    await f.write(chunk)

    _run(ctx, action)
    typer.echo(f"Downloaded {src} to {dst}")


@app.command()
def delete(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path in storage"),
) -> None:
    """Delete a file."""
    _run(ctx, lambda backend: backend.delete(path))
    typer.echo(f"Deleted {path}")


@app.command("list")
def list_dir(
    ctx: typer.Context,
    directory: str = typer.Argument("", help="Directory in storage (default: base)"),
) -> None:
    """List a directory recursively."""
    entries = _run(ctx, lambda backend: backend.list_dir(directory))

    for entry in entries:
        kind = "d" if entry.is_dir else "-"
        modified = entry.mod_time.isoformat() if entry.mod_time else "-"
        typer.echo(f"{kind} {entry.size:>12} {modified} {entry.name}")
    typer.echo(f"{len(entries)} entries")


@app.command()
def mkdir(
    ctx: typer.Context,
    directory: str = typer.Argument(..., help="Directory in storage"),
) -> None:
    """Create a directory."""
    _run(ctx, lambda backend: backend.create_dir(directory))
    typer.echo(f"Created directory {directory}")


@app.command()
def rmdir(
    ctx: typer.Context,
    directory: str = typer.Argument(..., help="Directory in storage"),
) -> None:
    """Delete a directory and everything below it."""
    _run(ctx, lambda backend: backend.delete_dir(directory))
    typer.echo(f"Deleted directory {directory}")


@app.command()
def rename(
    ctx: typer.Context,
    src: str = typer.Argument(..., help="Current path"),
    dst: str = typer.Argument(..., help="New path"),
) -> None:
    """Rename a file."""
    _run(ctx, lambda backend: backend.rename(src, dst))
    typer.echo(f"Renamed {src} to {dst}")


@app.command()
def copy(
    ctx: typer.Context,
    src: str = typer.Argument(..., help="Source path"),
    dst: str = typer.Argument(..., help="Destination path"),
) -> None:
    """Copy a file."""
    _run(ctx, lambda backend: backend.copy(src, dst))
    typer.echo(f"Copied {src} to {dst}")


@app.command()
def move(
    ctx: typer.Context,
    src: str = typer.Argument(..., help="Source path"),
    dst: str = typer.Argument(..., help="Destination path"),
) -> None:
    """Move a file."""
    _run(ctx, lambda backend: backend.move(src, dst))
    typer.echo(f"Moved {src} to {dst}")


@app.command()
def stat(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path in storage"),
) -> None:
    """Show file metadata."""
    metadata = _run(ctx, lambda backend: backend.get_metadata(path))

    typer.echo(f"Name:      {metadata.name}")
    typer.echo(f"Size:      {metadata.size}")
    typer.echo(f"Modified:  {metadata.mod_time.isoformat() if metadata.mod_time else '-'}")
    typer.echo(f"Directory: {metadata.is_dir}")
    typer.echo(f"MIME type: {metadata.mime_type}")


@app.command()
def init_config(
    output_path: Path = typer.Option(
        Path("config.yaml"),
        "--output",
        "-o",
        help="Path to write configuration file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing file",
    ),
) -> None:
    """Generate a default configuration file.

    Creates a config.yaml file with default settings that you can
    customize for your environment.
    """
    if output_path.exists() and not force:
        typer.echo(f"File already exists: {output_path}")
        typer.echo("Use --force to overwrite")
        raise typer.Exit(1)

    with open(output_path, "w") as f:
        yaml.dump(get_default_config(), f, default_flow_style=False, sort_keys=False)

    typer.echo(f"Configuration written to: {output_path}")


@app.command()
def validate(ctx: typer.Context) -> None:
    """Validate the configuration.

    Checks that the selected backend has every required setting. Nothing
    is contacted over the network.
    """
    options: CLIOptions = ctx.obj
    try:
        config = build_config(options)
        if options.storage_type is not None:
            config = config.model_copy(
                update={"mode": options.storage_type, "assign_mode": options.storage_type}
            )
        config = resolve_mode(config)
        validate_config(config)
    except FileNotFoundError as e:
        typer.echo(f"Configuration file not found: {e}")
        raise typer.Exit(1) from None
    except (StorageError, ValueError) as e:
        typer.echo(f"Configuration error: {e}")
        raise typer.Exit(1) from None

    typer.echo("Configuration is valid")
    typer.echo(f"  Mode: {config.mode.value if config.mode else '-'}")
    typer.echo(f"  Backend: {config.assign_mode.value}")


if __name__ == "__main__":
    app()
