"""Chat command handling.

The router is Telegram-agnostic: it takes a chat id and the raw message text
and returns the replies to send. The app layer wires it to Telethon events.
"""

from __future__ import annotations

import asyncio
import html
import logging
from typing import Awaitable, Callable, Optional

from adapters.notification_formatting import (
    format_comparison_message,
    format_list_message,
    format_score_message,
    handle_link,
)
from core.errors import PersistenceError, ScoreNotFoundError, TransientFetchError
from core.handles import extract_handle
from core.models import ScoreSnapshot
from core.ports import ScoreSourcePort, TrackedHandleStorePort

LOGGER = logging.getLogger(__name__)

HANDLE_FORMATS = (
    "You can provide Twitter handles in these formats:\n"
    "- @username\n"
    "- username\n"
    "- https://twitter.com/username\n"
    "- https://x.com/username\n"
    "- https://x.com/username/status/1234567890"
)

HELP_TEXT = (
    "🤖 <b>Kaito Yaps Tracker Bot Help</b>\n\n"
    "Available commands:\n\n"
    "• <code>/scan &lt;twitter_handle or URL&gt;</code> - Check current Kaito Yaps\n"
    "• <code>/track &lt;twitter_handle or URL&gt;</code> - Track a Twitter handle\n"
    "• <code>/list</code> - Show all Twitter handles you're tracking\n"
    "• <code>/stop &lt;twitter_handle or URL&gt;</code> - Stop tracking a handle\n"
    "• <code>/compare &lt;handle1&gt; &lt;handle2&gt; ...</code> - Compare up to 4 accounts\n"
    "• <code>/help</code> - Show this help message\n\n"
    f"{HANDLE_FORMATS}\n\n"
    "This bot will notify you when tracked users gain Yaps points!"
)

WELCOME_TEXT = "👋 Welcome to Kaito Yaps Tracker Bot!\n\n" + HELP_TEXT

UNKNOWN_COMMAND_TEXT = "❓ Unknown command. Use /help to see available commands."

Handler = Callable[[int, str], Awaitable[list[str]]]


def parse_command(text: str) -> Optional[tuple[str, str]]:
    """Split '/cmd@bot args' into ('cmd', 'args'); None for non-command text."""

    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    head, _, rest = stripped.partition(" ")
    name = head[1:].split("@", 1)[0].lower()
    return name, rest.strip()


class CommandRouter:
    """Dispatch chat commands to score lookups and tracked-handle storage."""

    def __init__(
        self,
        source: ScoreSourcePort,
        store: TrackedHandleStorePort,
        max_compare: int = 4,
    ) -> None:
        self._source = source
        self._store = store
        self._max_compare = max_compare
        self._handlers: dict[str, Handler] = {
            "start": self._start,
            "help": self._help,
            "scan": self._scan,
            "track": self._track,
            "list": self._list,
            "stop": self._stop,
            "compare": self._compare,
        }

    async def handle(self, chat_id: int, text: str) -> list[str]:
        """Return the replies for one incoming message."""

        parsed = parse_command(text)
        if parsed is None:
            return ["❓ Unknown command\n\n" + HELP_TEXT]

        name, args = parsed
        handler = self._handlers.get(name)
        if handler is None:
            return [UNKNOWN_COMMAND_TEXT]
        return await handler(chat_id, args)

    async def _lookup(self, handle: str) -> ScoreSnapshot:
        snapshot = await self._source.fetch(handle)
        if snapshot is None:
            raise ScoreNotFoundError(handle)
        return snapshot

    async def _start(self, chat_id: int, args: str) -> list[str]:
        return [WELCOME_TEXT]

    async def _help(self, chat_id: int, args: str) -> list[str]:
        return [HELP_TEXT]

    async def _scan(self, chat_id: int, args: str) -> list[str]:
        handle = extract_handle(args)
        if handle is None:
            return ["⚠️ Usage: <code>/scan &lt;twitter_handle or URL&gt;</code>"]

        try:
            snapshot = await self._lookup(handle)
        except ScoreNotFoundError:
            return [
                f"❌ Couldn't find Kaito Yaps for {handle_link(handle)}. "
                "Make sure the Twitter handle is correct."
            ]
        except TransientFetchError:
            LOGGER.exception("Error processing /scan for %s", handle)
            return [f"❌ An error occurred while fetching data for {handle_link(handle)}"]
        return [format_score_message(snapshot)]

    async def _track(self, chat_id: int, args: str) -> list[str]:
        handle = extract_handle(args)
        if handle is None:
            return ["⚠️ Usage: <code>/track &lt;twitter_handle or URL&gt;</code>"]

        try:
            snapshot = await self._lookup(handle)
            await asyncio.to_thread(self._store.track, chat_id, handle, snapshot)
        except ScoreNotFoundError:
            return [
                f"❌ Couldn't find Kaito Yaps for {handle_link(handle)}. "
                "Make sure the Twitter handle is correct."
            ]
        except (TransientFetchError, PersistenceError):
            LOGGER.exception("Error processing /track for %s", handle)
            return [f"❌ An error occurred while setting up tracking for {handle_link(handle)}"]

        LOGGER.info("Chat %s started tracking %s", chat_id, handle)
        return [
            f"✅ {handle_link(handle)} is now being tracked.\n"
            "You'll receive updates when their Yaps increases.\n\n"
            f"Current score: {snapshot.total:.2f}"
        ]

    async def _list(self, chat_id: int, args: str) -> list[str]:
        try:
            entries = await asyncio.to_thread(self._store.list_for_chat, chat_id)
        except PersistenceError:
            LOGGER.exception("Error processing /list for chat %s", chat_id)
            return ["❌ An error occurred while retrieving your tracked users."]

        if not entries:
            return [
                "📋 You are not tracking any Twitter handles yet.\n\n"
                "Use <code>/track &lt;twitter_handle&gt;</code> to start tracking someone."
            ]
        return [format_list_message(entries)]

    async def _stop(self, chat_id: int, args: str) -> list[str]:
        handle = extract_handle(args)
        if handle is None:
            return ["⚠️ Usage: <code>/stop &lt;twitter_handle or URL&gt;</code>"]

        try:
            removed = await asyncio.to_thread(self._store.untrack, chat_id, handle)
        except PersistenceError:
            LOGGER.exception("Error processing /stop for %s", handle)
            return [f"❌ An error occurred while unsubscribing from {handle_link(handle)}"]

        if removed:
            LOGGER.info("Chat %s stopped tracking %s", chat_id, handle)
            return [f"❌ You have unsubscribed from {handle_link(handle)} updates."]
        return [f"⚠️ You were not tracking {handle_link(handle)}."]

    async def _compare(self, chat_id: int, args: str) -> list[str]:
        raw_handles = args.split()[: self._max_compare]
        if len(raw_handles) < 2:
            return [
                "⚠️ Please provide at least 2 accounts to compare.\n"
                "Example: <code>/compare user1 user2 user3 user4</code>"
            ]

        replies: list[str] = []
        snapshots: list[ScoreSnapshot] = []
        for raw in raw_handles:
            handle = extract_handle(raw)
            if handle is None:
                replies.append(f"⚠️ Couldn't understand {html.escape(raw)}")
                continue
            try:
                snapshots.append(await self._lookup(handle))
            except ScoreNotFoundError:
                replies.append(f"⚠️ Couldn't find data for {handle_link(handle)}")
            except TransientFetchError:
                LOGGER.exception("Error fetching %s for /compare", handle)
                replies.append(f"⚠️ Couldn't find data for {handle_link(handle)}")

        if snapshots:
            replies.append(format_comparison_message(snapshots))
        else:
            replies.append("❌ Couldn't find data for any of the provided accounts.")
        return replies
