"""Command line entry point for RecordRTC."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from .capture.preview import create_object_url, revoke_object_url
from .config import RecordRTCConfig
from .models.capture import CaptureKind, MediaPayload
from .models.upload import UploadResult

logger = logging.getLogger(__name__)

console = Console()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'logs/recordrtc.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("RecordRTC starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


async def upload_file(config: RecordRTCConfig, media_path: Path, repo_id: int, item_id: int,
                      context_id: int, filename: str) -> UploadResult:
    """Upload an existing media file the same way a finished recording is uploaded."""
    pipeline = config.upload_pipeline()
    destination = config.upload_destination(repo_id, item_id, context_id)
    payload = MediaPayload(fragments=(media_path.read_bytes(),), mime_type="application/octet-stream")
    if destination.is_bounded and payload.size > destination.max_upload_size:
        logger.warning(f"{media_path} is {payload.size} bytes, over the "
                       f"{destination.max_upload_size} byte limit")

    url = create_object_url(payload)
    try:
        with Progress(TextColumn("[bold blue]{task.description}"), BarColumn(),
                      TextColumn("{task.percentage:>3.0f}%"), console=console) as progress:
            task_id = progress.add_task(f"Uploading {filename}", total=None)

            def on_progress(sent: int, total: int) -> None:
                progress.update(task_id, completed=sent, total=total)

            return await pipeline.upload(url, destination, filename, progress=on_progress)
    finally:
        revoke_object_url(url)


def show_settings(config: RecordRTCConfig, kind: str) -> None:
    settings = config.capture_settings(CaptureKind(kind))
    table = Table(title=f"{settings.kind.value} capture settings")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("bit rate", str(settings.bit_rate))
    if settings.width is not None:
        table.add_row("size", f"{settings.width}x{settings.height}")
    table.add_row("constraints", str(settings.constraints))
    for i, codec in enumerate(settings.codec_candidates, 1):
        table.add_row(f"codec {i}", codec)
    console.print(table)


def main() -> None:
    """Main entry point for RecordRTC."""
    parser = argparse.ArgumentParser(
        description="RecordRTC - audio/video/screen recording upload tools",
    )

    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to configuration YAML file"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from the config, else INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="RecordRTC v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    upload_parser = subparsers.add_parser("upload", help="Upload a media file to the repository")
    upload_parser.add_argument("media", type=Path, help="Media file to upload")
    upload_parser.add_argument("--repo-id", type=int, required=True)
    upload_parser.add_argument("--item-id", type=int, required=True, help="Draft item id")
    upload_parser.add_argument("--context-id", type=int, required=True)
    upload_parser.add_argument("--filename", type=str, help="Stored file name (default: media file name)")

    settings_parser = subparsers.add_parser("settings", help="Show resolved capture settings")
    settings_parser.add_argument("kind", choices=[k.value for k in CaptureKind])

    args = parser.parse_args()

    try:
        config = RecordRTCConfig(args.config)
        # Command line overrides the configured level
        setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

        if args.command == "settings":
            show_settings(config, args.kind)
            return

        result = asyncio.run(upload_file(
            config, args.media, args.repo_id, args.item_id, args.context_id,
            args.filename or args.media.name,
        ))
    except KeyboardInterrupt:
        console.print("\nInterrupted")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        logging.error(f"Application error: {e}")
        sys.exit(1)

    if result.succeeded:
        console.print(f"[green]Uploaded {result.bytes_total} bytes[/green]")
    else:
        console.print(f"[red]Upload {result.outcome.value}: {result.message} ({result.placeholder})[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
