"""Application entry point for the yapswatch bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.commands import CommandRouter
from adapters.kaito_client import KaitoScoreSource
from adapters.notification_formatting import format_score_change
from adapters.sqlite_storage import SQLiteTrackedHandleStore
from adapters.telegram_notifier import TelegramNotifier
from client import bot_token, build_client
from core.errors import ScoreNotFoundError, TransientFetchError
from core.handles import extract_handle
from core.models import WINDOW_LABELS, WINDOWS
from core.scheduler import TrackingScheduler

NAME = "YAPSWATCH"
FONT = "tarty-1"


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


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/yapswatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

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
    # httpx logs every request at INFO, which drowns out cycle summaries.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def _build_store() -> SQLiteTrackedHandleStore:
    directory = os.path.dirname(settings.DB_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)
    store = SQLiteTrackedHandleStore(settings.DB_PATH)
    store.init_db()
    return store


def _start_bot():
    client = build_client()
    client.start(bot_token=bot_token())
    return client


async def _serve(client, scheduler: TrackingScheduler, source: KaitoScoreSource) -> None:
    logger = logging.getLogger(__name__)
    if settings.TRACKING_ENABLED:
        scheduler.start()
    else:
        logger.info("Score tracking is disabled in config.json")
    try:
        await client.run_until_disconnected()
    finally:
        scheduler.stop()
        await scheduler.wait_for_cycle()
        await source.aclose()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting yapswatch")

    store = _build_store()
    source = KaitoScoreSource(settings.KAITO)
    router = CommandRouter(source, store, max_compare=settings.MAX_COMPARE)

    client = _start_bot()
    logger.info("Bot started successfully")

    scheduler = TrackingScheduler(
        store=store,
        source=source,
        notifier=TelegramNotifier(client),
        formatter=format_score_change,
        config=settings.TRACKING,
    )

    # Single handler keeps Telethon integration minimal and defers all command
    # parsing to the router for consistency and testability.
    @client.on(events.NewMessage(incoming=True))
    async def handler(event) -> None:
        try:
            text = event.raw_text or ""
            # In groups only react to commands, never to regular chatter.
            if not event.is_private and not text.startswith("/"):
                return
            for reply in await router.handle(event.chat_id, text):
                await event.respond(reply, parse_mode="html", link_preview=False)
        except Exception:
            logger.exception("Error while processing message")

    logger.info("Listening for commands...")
    client.loop.run_until_complete(_serve(client, scheduler, source))


def _check() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    store = _build_store()
    source = KaitoScoreSource(settings.KAITO)
    client = _start_bot()
    scheduler = TrackingScheduler(
        store=store,
        source=source,
        notifier=TelegramNotifier(client),
        formatter=format_score_change,
        config=settings.TRACKING,
    )

    async def _run_check() -> None:
        try:
            report = await scheduler.run_cycle()
            logger.info("Check finished: %s", report)
        finally:
            await source.aclose()
            await client.disconnect()

    client.loop.run_until_complete(_run_check())


def _format_plain_score(snapshot) -> str:
    lines = [f"@{snapshot.handle}", f"  Total: {snapshot.total:.2f}"]
    lines.extend(f"  {WINDOW_LABELS[name]}: {snapshot.window(name):.2f}" for name in WINDOWS)
    return "\n".join(lines)


def _scan(raw_handle: str) -> int:
    _configure_logging()
    handle = extract_handle(raw_handle)
    if handle is None:
        print(f"Not a Twitter handle or profile URL: {raw_handle}")
        return 2

    async def _lookup():
        source = KaitoScoreSource(settings.KAITO)
        try:
            snapshot = await source.fetch(handle)
        finally:
            await source.aclose()
        if snapshot is None:
            raise ScoreNotFoundError(handle)
        return snapshot

    try:
        snapshot = asyncio.run(_lookup())
    except ScoreNotFoundError:
        print(f"Couldn't find Kaito Yaps for @{handle}")
        return 1
    except TransientFetchError as exc:
        print(f"Lookup failed: {exc}")
        return 1
    print(_format_plain_score(snapshot))
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="yapswatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot and the score tracker")
    subparsers.add_parser("check", help="Run one tracking cycle now and exit")
    scan_parser = subparsers.add_parser("scan", help="Print the current Yaps for one handle")
    scan_parser.add_argument("handle", help="@handle, username or x.com/twitter.com URL")

    args = parser.parse_args(argv)
    if args.command == "check":
        _check()
        return
    if args.command == "scan":
        raise SystemExit(_scan(args.handle))
    _run()


if __name__ == "__main__":
    main()
