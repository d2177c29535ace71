"""Command line interface for the snapcomposer package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

import httpx
from rich.logging import RichHandler

from . import __version__
from .cli_progress import VideoUploadProgress, console, render_configuration_summary, render_event
from .errors import ComposerError
from .models import ComposerConfig
from .orchestrator.core import build_upload_orchestrator
from .services.thumbnail import ThumbnailExtractor
from .use_cases.assemble import PostAssembler
from .use_cases.publish import make_permlink
from .utils.events import EventEmitter


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route composer logs through rich.

    Silent unless --debug, --log-level or LOG_LEVEL asks for output.
    Returns "silent" or the effective level name.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    logging.disable(logging.NOTSET)

    log_level = log_level or os.getenv("LOG_LEVEL")
    if silent or not (debug or log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)
    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _require_file(path: Path) -> Path:
    path = Path(path).expanduser()
    if not path.is_file():
        raise CLIError(f"video does not exist: {path}")
    return path


async def _run_thumbnail(video: Path, output: Optional[Path], config: ComposerConfig) -> int:
    video = _require_file(video)
    output = output or video.with_name(f"{video.stem}_thumbnail.jpg")

    extractor = ThumbnailExtractor(offset=config.thumbnail_offset, quality=config.thumbnail_quality)
    try:
        blob = await extractor.extract(video)
    except ComposerError as exc:
        raise CLIError(str(exc)) from exc

    output.write_bytes(blob)
    console.print(f"[green]Thumbnail:[/green] {output} ({len(blob)} bytes)")
    return 0


async def _run_upload_video(video: Path, owner: str, config: ComposerConfig, show_events: bool) -> int:
    video = _require_file(video)
    if not config.has_api_key:
        raise CLIError("THREESPEAK_API_KEY environment variable is not set")

    events = EventEmitter()
    if show_events:
        events.on(EventEmitter.ALL, render_event)

    progress = VideoUploadProgress(video)
    async with httpx.AsyncClient(timeout=None) as http:
        # no signer on the command line: thumbnails go straight to the fallback store
        orchestrator = build_upload_orchestrator(http, config, signer=None, events=events)
        progress.start()
        result = await orchestrator.upload_video(video, owner, "cli", progress.get_callback())

    progress.complete(success=result.success, error=result.error)
    if not result.success:
        return 1

    console.print(f"[bold]Embed:[/bold] {result.embed_reference}")
    if result.thumbnail_url:
        assigned = "assigned" if result.thumbnail_assigned else "not assigned"
        console.print(f"[bold]Thumbnail:[/bold] {result.thumbnail_url} ({assigned})")
    elif result.error:
        console.print(f"[yellow]Warning:[/yellow] {result.error}")
    return 0


class _FixedContainer:
    def __init__(self, permlink: str):
        self._permlink = permlink

    async def latest_permlink(self) -> str:
        return self._permlink


async def _run_preview(args: argparse.Namespace, config: ComposerConfig) -> int:
    assembler = PostAssembler(config, _FixedContainer(args.container))
    record = await assembler.assemble(
        author=args.author,
        permlink=make_permlink(datetime.now(timezone.utc)),
        parent_author=args.parent_author,
        parent_permlink=args.parent_permlink or config.container_tag,
        text=args.text,
        video_embed=args.embed,
        image_urls=args.image or [],
        gif_url=args.gif,
    )
    render_configuration_summary(
        {
            "Author": record.author,
            "Permlink": record.permlink,
            "Parent": f"@{record.parent_author}/{record.parent_permlink}",
            "Tags": ", ".join(record.tags) or "-",
            "Monetized": "yes" if record.video_embed else "no",
        }
    )
    console.print(record.body, markup=False, highlight=False)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapcomposer",
        description="Thumbnail capture, video upload and post preview for snaps.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version=f"snapcomposer {__version__}")

    sub = parser.add_subparsers(dest="command")

    thumb = sub.add_parser("thumbnail", help="Capture a JPEG still from a video")
    thumb.add_argument("video", type=Path)
    thumb.add_argument("-o", "--output", type=Path, default=None, help="Output JPEG path")

    upload = sub.add_parser("upload-video", help="Upload a video and its thumbnail")
    upload.add_argument("video", type=Path)
    upload.add_argument("--owner", required=True, help="Account that owns the video")
    upload.add_argument("--events", action="store_true", help="Print phase events")

    preview = sub.add_parser("preview", help="Assemble a post body without publishing")
    preview.add_argument("--author", default="anonymous")
    preview.add_argument("--text", default="")
    preview.add_argument("--image", action="append", help="Hosted image URL (repeatable)")
    preview.add_argument("--gif", default=None, help="GIF URL")
    preview.add_argument("--embed", default=None, help="Video embed reference")
    preview.add_argument("--parent-author", default="")
    preview.add_argument("--parent-permlink", default=None)
    preview.add_argument("--container", default="latest-container", help="Container permlink to use")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    _setup_logging(debug=args.debug, silent=args.silent, log_level=args.log_level)

    if args.command is None:
        parser.print_help()
        return 0

    config = ComposerConfig.from_env()

    try:
        if args.command == "thumbnail":
            return asyncio.run(_run_thumbnail(args.video, args.output, config))
        if args.command == "upload-video":
            return asyncio.run(_run_upload_video(args.video, args.owner, config, args.events))
        return asyncio.run(_run_preview(args, config))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
