"""Entry point: ``python -m timecardpilot``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from timecardpilot.exceptions import DomainError
from timecardpilot.orchestrator import CorrectionPipeline
from timecardpilot.settings import AppSettings

logger = logging.getLogger("timecardpilot")

_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_LOG_MAX_BYTES = 5 * 1024 * 1024
_LOG_BACKUPS = 5

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="timecardpilot",
        description="File King of Time clock-stamp applications for error rows.",
    )
    parser.add_argument("-c", "--config", default=None, help="path to settings YAML")
    parser.add_argument(
        "-d", "--dry-run", action="store_true", default=None,
        help="fill every form but never press the final submit button",
    )
    parser.add_argument("--headless", action="store_true", default=None, help="hide the browser")
    parser.add_argument("--debug", action="store_true", default=None, help="verbose logging")
    parser.add_argument("--clock-in", default=None, help="clock-in time (HHMM)")
    parser.add_argument("--clock-out", default=None, help="clock-out time (HHMM)")
    parser.add_argument("--reason", default=None, help="application reason")
    parser.add_argument(
        "--max-rows", type=int, default=None, help="stop after this many rows (0 = no limit)"
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> AppSettings:
    """Resolve the run configuration from YAML, env vars and CLI flags."""
    overrides: dict[str, Any] = {
        "dry_run": args.dry_run,
        "headless": args.headless,
        "debug": args.debug,
        "clock_in_time": args.clock_in,
        "clock_out_time": args.clock_out,
        "application_reason": args.reason,
        "max_rows": args.max_rows,
    }
    return AppSettings.from_yaml(args.config, **overrides)


def _configure_logging(debug: bool, state_dir: str) -> None:
    log_dir = Path(state_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    app_file = RotatingFileHandler(
        log_dir / "application.log", maxBytes=_LOG_MAX_BYTES, backupCount=_LOG_BACKUPS,
        encoding="utf-8",
    )
    app_file.setFormatter(formatter)
    error_file = RotatingFileHandler(
        log_dir / "error.log", maxBytes=_LOG_MAX_BYTES, backupCount=_LOG_BACKUPS,
        encoding="utf-8",
    )
    error_file.setLevel(logging.ERROR)
    error_file.setFormatter(formatter)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=_LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    root = logging.getLogger()
    root.addHandler(app_file)
    root.addHandler(error_file)
    # Quiet noisy libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


async def _async_main(settings: AppSettings) -> int:
    unhandled: list[dict[str, Any]] = []

    def _on_unhandled(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        unhandled.append(context)
        logger.error("Unhandled error outside the main flow: %s", context.get("message"))
        loop.default_exception_handler(context)

    asyncio.get_running_loop().set_exception_handler(_on_unhandled)
    pipeline = CorrectionPipeline(settings)
    await pipeline.run()
    return EXIT_FATAL if unhandled else EXIT_OK


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)
        logger.error("Invalid configuration:\n%s", exc)
        sys.exit(EXIT_CONFIG)

    _configure_logging(settings.debug, settings.state_dir)
    try:
        code = asyncio.run(_async_main(settings))
    except KeyboardInterrupt:
        logging.info("Interrupted by user.")
        sys.exit(EXIT_INTERRUPTED)
    except DomainError as exc:
        if settings.debug:
            logger.exception("Run aborted: [%s] %s %s", exc.kind.value, exc.message, exc.context)
        else:
            logger.error("Run aborted: [%s] %s %s", exc.kind.value, exc.message, exc.context)
        sys.exit(EXIT_FATAL)
    except Exception:
        logger.exception("Unexpected error.")
        sys.exit(EXIT_FATAL)
    sys.exit(code)


if __name__ == "__main__":
    main()
