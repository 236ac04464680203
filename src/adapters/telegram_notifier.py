"""Telegram notification adapter.

Sends pre-formatted HTML messages to a chat through the bot's Telethon client.
"""

from __future__ import annotations

from core.errors import DeliveryError


class TelegramNotifier:
    """Notifier adapter that delivers messages with a Telethon bot client."""

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, chat_id: int, message: str) -> None:
        """Send the message; any failure is raised as DeliveryError."""

        try:
            await self._client.send_message(chat_id, message, parse_mode="html", link_preview=False)
        except Exception as exc:
            raise DeliveryError(f"Failed to send message to chat {chat_id}: {exc}") from exc
