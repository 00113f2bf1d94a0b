"""Command-line entry point: ``teslabridge [ENV_FILE]``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from teslabridge import __version__
from teslabridge.app import BridgeApp
from teslabridge.config import BridgeConfig
from teslabridge.exceptions import BusConnectionError, ConfigError

_LOG = logging.getLogger("teslabridge")

DEFAULT_ENV_FILE = ".env"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="teslabridge",
        description="Poll the vehicle API and republish battery and charging state over MQTT.",
    )
    parser.add_argument(
        "env_file",
        nargs="?",
        default=None,
        help=f"dotenv file with the configuration (default: {DEFAULT_ENV_FILE} if present).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single fetch cycle and exit (0 when state was published).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def _load_env_file(env_file: str | None) -> None:
    if env_file is None:
        if Path(DEFAULT_ENV_FILE).is_file():
            load_dotenv(DEFAULT_ENV_FILE)
        return
    if not Path(env_file).is_file():
        raise ConfigError(f"No env file found at {env_file}")
    load_dotenv(env_file)


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _run(config: BridgeConfig, *, once: bool) -> int:
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:  # pragma: no cover - Windows
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(shutdown.set))

    async with BridgeApp(config) as app:
        if once:
            outcome = await app.run_once()
            _LOG.info("Cycle outcome: %s", outcome)
            return 0 if outcome.success else 1
        return await app.run(shutdown)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        _load_env_file(args.env_file)
        _configure_logging(args.verbose)
        config = BridgeConfig.from_env()
    except ConfigError as exc:
        print(f"teslabridge: {exc}", file=sys.stderr)
        return 2

    _LOG.info("Starting teslabridge %s", __version__)
    try:
        return asyncio.run(_run(config, once=args.once))
    except BusConnectionError as exc:
        _LOG.critical("Cannot start: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
