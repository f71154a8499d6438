"""Application entry point for chatledger.

``run`` performs exactly one ingestion cycle and exits; scheduling is left to
cron/launchd. The exit status is 0 when the cycle succeeded (even with
nothing new) and 1 when it failed.
"""

from __future__ import annotations

import argparse
import asyncio
import fcntl
import json
import logging
import os
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Awaitable, Callable, Iterator, Mapping, Optional

from art import tprint

from adapters.csv_sink import CsvSink
from adapters.json_watermark_store import JsonWatermarkStore
from adapters.sheets_sink import GoogleSheetsSink
from adapters.telegram_source import TelegramMessageSource
from client import build_client
from core.coordinator import IngestionCoordinator
from core.errors import ChatLedgerError
from core.models import CycleResult
from core.ports import MessageSourcePort, TabularSinkPort
from session import authorize
from settings import CONFIG_PATH, SINK_SHEETS, Settings, load_settings

NAME = "CHATLEDGER"
FONT = "tarty-1"

LOGGER = logging.getLogger("chatledger")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict, env: Mapping[str, str]) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = env.get(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(settings: Settings) -> None:
    config = settings.logging or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config, os.environ)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = Path(file_cfg.get("path", "logs/chatledger.log"))
        if not path.is_absolute():
            path = settings.project_root / path
        path.parent.mkdir(parents=True, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO; keep its reconnect noise out of run logs.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


class RunLockHeld(ChatLedgerError):
    """Raised when another ingestion run holds the lock."""


@contextmanager
def run_lock(lock_path: Path) -> Iterator[None]:
    """Serialize cycles across processes with an advisory file lock.

    The kernel drops the lock when the holder exits, so a crashed run never
    leaves a stale lock behind.
    """

    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a+", encoding="utf-8") as handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as error:
            raise RunLockHeld(f"Another run holds {lock_path}") from error
        try:
            handle.seek(0)
            handle.truncate()
            handle.write(f"{os.getpid()}\n")
            handle.flush()
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def build_sink(settings: Settings) -> TabularSinkPort:
    if settings.output.sink == SINK_SHEETS:
        return GoogleSheetsSink(credentials_path=str(settings.output.credentials_path))
    return CsvSink()


async def run_ingestion(
    settings: Settings,
    source: MessageSourcePort,
    sink: Optional[TabularSinkPort] = None,
) -> CycleResult:
    """Run one cycle against ``source`` with the configured sink and state."""

    coordinator = IngestionCoordinator(
        source=source,
        sink=sink or build_sink(settings),
        watermarks=JsonWatermarkStore(settings.state.path),
        config=settings.ingest_config(),
        parser_config=settings.parser,
        logger=LOGGER,
    )
    return await coordinator.run_cycle()


def report(result: CycleResult) -> int:
    """Log the cycle summary and map it to a process exit status."""

    if not result.success:
        LOGGER.error("Ingestion failed: %s", result.message)
        if result.error:
            LOGGER.error("Error details: %s", result.error)
        return 1

    LOGGER.info(result.message)
    LOGGER.info("Messages processed: %s", result.processed)
    LOGGER.info("First run: %s", "Yes" if result.backfill else "No")
    LOGGER.info("Output: %s", result.destination)
    return 0


async def _run_with_telegram(settings: Settings) -> CycleResult:
    client = build_client(settings.project_root)
    await client.connect()
    try:
        await authorize(client, interactive=False)
        return await run_ingestion(settings, TelegramMessageSource(client))
    finally:
        await client.disconnect()


def run_once(
    settings: Settings,
    now: Optional[Callable[[], datetime]] = None,
    cycle: Optional[Callable[[Settings], Awaitable[CycleResult]]] = None,
) -> int:
    current = (now or datetime.now)()
    if not settings.active_hours.contains(current.hour):
        LOGGER.info(
            "Skipping run - outside active hours (%02d:00 - %02d:00)",
            settings.active_hours.start_hour,
            settings.active_hours.end_hour,
        )
        return 0

    cycle = cycle or _run_with_telegram
    try:
        with run_lock(settings.state.lock_path):
            LOGGER.info("Starting ingestion of %s", settings.source.channel)
            result = asyncio.run(cycle(settings))
    except RunLockHeld as error:
        LOGGER.warning("Skipping run - %s", error)
        return 0
    except Exception:
        LOGGER.exception("Application failed")
        return 1
    return report(result)


async def _login(settings: Settings) -> None:
    client = build_client(settings.project_root)
    await client.connect()
    try:
        await authorize(client)
    finally:
        await client.disconnect()


async def _discover(settings: Settings) -> None:
    client = build_client(settings.project_root)
    await client.connect()
    try:
        if not await client.is_user_authorized():
            print("Authorization required. Starting login...")
            await authorize(client)
        channels = await TelegramMessageSource(client).list_channels()
    finally:
        await client.disconnect()

    if not channels:
        print("No group chats or channels found.")
        return
    for index, channel in enumerate(channels, start=1):
        print(f"{index}. {channel.kind} | {channel.name} | {channel.id}")


def _status(settings: Settings) -> int:
    watermark = JsonWatermarkStore(settings.state.path).load()
    print(json.dumps(asdict(watermark), indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatledger")
    parser.add_argument("--config", default=str(CONFIG_PATH), help="Path to config.json")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Run one ingestion cycle (default)")
    subparsers.add_parser("login", help="Authorize the Telegram session interactively")
    subparsers.add_parser("discover", help="List group chats and channels with their references")
    subparsers.add_parser("status", help="Print the stored watermark")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ChatLedgerError) as error:
        print(f"Configuration error: {error}")
        return 1

    if args.command == "status":
        return _status(settings)

    _print_banner()
    _configure_logging(settings)
    if args.command == "login":
        asyncio.run(_login(settings))
        return 0
    if args.command == "discover":
        asyncio.run(_discover(settings))
        return 0
    return run_once(settings)


if __name__ == "__main__":
    raise SystemExit(main())
