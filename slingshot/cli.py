"""Command line interface for slingshot package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shlex
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import BatchProgressDisplay, console, render_configuration_summary
from .errors import ConfigurationError, SlingshotError
from .models import DEFAULT_BASE_URL, FileStatus, MetaValue, SlingshotConfig, UploadFile


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


PACKAGE_LOGGER = "slingshot"
DEFAULT_ENV_FILE = Path(".env")


def _log_level(debug: bool, silent: bool, log_level: Optional[str]) -> Optional[int]:
    if silent:
        return None
    if debug:
        return logging.DEBUG
    name = log_level or os.getenv("SLINGSHOT_LOG_LEVEL")
    if not name:
        return None
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise CLIError(f"unknown log level: {name}")
    return level


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route the slingshot loggers to the progress console.

    Logs stay off unless --debug, --log-level or SLINGSHOT_LOG_LEVEL ask
    for them; --silent wins over all three. Returns the effective mode.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers.clear()
    level = _log_level(debug, silent, log_level)
    if level is None:
        logger.setLevel(logging.CRITICAL + 1)
        logger.propagate = True
        return "silent"

    handler = RichHandler(console=console, markup=False, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logging.getLevelName(level)


def _unquote(raw: str) -> str:
    try:
        return " ".join(shlex.split(raw))
    except ValueError as exc:
        raise CLIError(f"unbalanced quotes in {raw!r}") from exc


def _read_env_file(path: Path) -> Dict[str, str]:
    """Parse `[export] KEY=VALUE` lines; values follow shell quoting."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CLIError(f"env file not found: {path}") from exc
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    values: Dict[str, str] = {}
    for number, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            raise CLIError(f"{path}:{number}: expected KEY=VALUE")
        values[key] = _unquote(value.strip())
    return values


def _load_env_file(path: Path) -> Dict[str, str]:
    """Export settings from an env file; variables already set keep their value."""
    values = _read_env_file(path)
    for key, value in values.items():
        os.environ.setdefault(key, value)
    return values


def _parse_meta_value(raw: str) -> MetaValue:
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def _parse_meta(items: Optional[Sequence[str]]) -> Dict[str, MetaValue]:
    """Parse repeated KEY=VALUE flags; numeric values become numbers."""
    meta: Dict[str, MetaValue] = {}
    for item in items or []:
        if "=" not in item:
            raise CLIError(f"invalid --meta value (expected KEY=VALUE): {item}")
        key, value = item.split("=", 1)
        key = key.strip()
        if not key:
            raise CLIError(f"invalid --meta value (empty key): {item}")
        meta[key] = _parse_meta_value(_unquote(value.strip()))
    return meta


def _parse_int_env(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise CLIError(f"{name} must be an integer, got {raw!r}") from exc


def _build_config(args: argparse.Namespace) -> SlingshotConfig:
    profile = args.profile or os.getenv("SLINGSHOT_PROFILE")
    if not profile:
        raise CLIError("a profile is required (--profile or SLINGSHOT_PROFILE)")

    max_parallel = args.max_parallel
    if max_parallel is None:
        max_parallel = _parse_int_env("SLINGSHOT_MAX_PARALLEL")

    try:
        return SlingshotConfig(
            profile=profile,
            base_url=args.base_url or os.getenv("SLINGSHOT_BASE_URL") or DEFAULT_BASE_URL,
            origin=args.origin or os.getenv("SLINGSHOT_ORIGIN"),
            meta=_parse_meta(args.meta),
            max_parallel=max_parallel,
            timeout=args.timeout,
        )
    except ConfigurationError as exc:
        raise CLIError(str(exc)) from exc


def _load_files(paths: Sequence[Path]) -> List[UploadFile]:
    files = []
    for path in paths:
        path = Path(path).expanduser()
        if not path.is_file():
            raise CLIError(f"source is not a file: {path}")
        try:
            files.append(UploadFile.from_path(path))
        except OSError as exc:
            raise CLIError(f"could not read {path}: {exc}") from exc
    return files


async def _run_upload(config: SlingshotConfig, paths: Sequence[Path]) -> int:
    from .orchestrator import UploadOrchestrator

    files = _load_files(paths)

    try:
        orchestrator = UploadOrchestrator(config)
    except ConfigurationError as exc:
        raise CLIError(str(exc)) from exc

    display = BatchProgressDisplay()
    orchestrator.on_file(display.on_file)
    orchestrator.on_status(display.on_status)

    async with orchestrator:
        try:
            records = await orchestrator.upload(files)
        except SlingshotError as exc:
            display.stop()
            raise CLIError(str(exc)) from exc

    display.on_finish(records)
    return 0 if all(r.status is FileStatus.DONE for r in records) else 1


async def _run_resolve(config: SlingshotConfig, key: str) -> int:
    from .services.api_client import HTTPTransport

    try:
        transport = HTTPTransport.from_config(config)
    except ConfigurationError as exc:
        raise CLIError(str(exc)) from exc

    async with transport:
        try:
            url = await transport.resolve_url(key)
        except SlingshotError as exc:
            raise CLIError(str(exc)) from exc

    if url is None:
        print(f"ERROR: file not found: {key}", file=sys.stderr)
        return 1
    print(url)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slingshot-up",
        description="Upload files through a slingshot signed-URL server.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to upload")
    parser.add_argument(
        "-p",
        "--profile",
        default=None,
        help="Upload profile (default from SLINGSHOT_PROFILE)",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help=f"Slingshot routes base URL (default from SLINGSHOT_BASE_URL or {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--origin",
        default=None,
        help="scheme://host prepended to a relative base URL (default from SLINGSHOT_ORIGIN)",
    )
    parser.add_argument(
        "-m",
        "--meta",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Metadata sent with every authorization request (repeatable)",
    )
    parser.add_argument(
        "-j",
        "--max-parallel",
        type=int,
        default=None,
        help="Maximum concurrent transfers (default from SLINGSHOT_MAX_PARALLEL, unbounded)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=60,
        help="HTTP timeout in seconds",
    )
    parser.add_argument(
        "--resolve",
        default=None,
        metavar="KEY",
        help="Print the signed retrieval URL for a stored key instead of uploading",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument(
        "--silent",
        action="store_true",
        help="Disable logs even when SLINGSHOT_LOG_LEVEL is set",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG/INFO/WARNING/ERROR, default from SLINGSHOT_LOG_LEVEL)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="slingshot-up (from slingshot)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file
    if used_env_file is None and DEFAULT_ENV_FILE.is_file():
        used_env_file = DEFAULT_ENV_FILE

    try:
        if used_env_file is not None:
            _load_env_file(used_env_file)
        effective_log_mode = _setup_logging(
            debug=args.debug,
            silent=args.silent,
            log_level=args.log_level,
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if not args.files and not args.resolve:
        parser.print_help()
        return 0

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    try:
        if args.resolve:
            return asyncio.run(_run_resolve(config, args.resolve))

        render_configuration_summary(
            {
                "Files": len(args.files),
                "Profile": config.profile,
                "Base URL": config.base_url,
                "Origin": config.origin or "-",
                "Meta": ", ".join(f"{k}={v}" for k, v in config.meta.items()) or "-",
                "Max Parallel": config.max_parallel or "unbounded",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )
        return asyncio.run(_run_upload(config, args.files))
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
