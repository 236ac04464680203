"""Telegram bot client for yapswatch.

Telethon still needs application credentials (API_ID/API_HASH) to open an
MTProto session, even for bots; the bot itself is authorized with the token
from @BotFather, so no phone number or interactive login is involved.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def build_client() -> TelegramClient:
    """Create an unauthorized Telethon client from environment variables.

    The session file (SESSION_NAME, default "yapswatch") caches the bot
    authorization so restarts skip the token exchange.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "yapswatch")

    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    logging.getLogger(__name__).info("Initializing Telegram bot client (session %s)", session_name)

    return TelegramClient(session_name, int(api_id), api_hash)


def bot_token() -> str:
    """Return TELEGRAM_TOKEN, passed to client.start(bot_token=...)."""

    load_dotenv()
    token = os.getenv("TELEGRAM_TOKEN")
    if not token:
        raise RuntimeError("TELEGRAM_TOKEN is not defined in environment variables")
    return token
