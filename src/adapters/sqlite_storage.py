"""SQLite storage adapter.

Implements the core TrackedHandleStorePort using a simple SQLite database.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Iterable

from core.errors import PersistenceError
from core.handles import normalize_handle
from core.models import ScoreSnapshot, TrackedEntry

LOGGER = logging.getLogger(__name__)


class SQLiteTrackedHandleStore:
    """Thin SQLite wrapper that satisfies the TrackedHandleStorePort contract.

    Every call opens its own connection, so the store can be used from worker
    threads while the event loop keeps serving chat commands.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - tracked_users: one row per (chat, handle) subscription
        """

        try:
            with self._connect() as conn:
                # tracked_users holds the last snapshot we notified about.
                # Fields:
                # - chat_id: Telegram chat that subscribed
                # - twitter_username: lowercased handle
                # - last_score_data: score API JSON payload of the last snapshot
                # - last_updated: when the snapshot was last replaced
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS tracked_users (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        chat_id INTEGER NOT NULL,
                        twitter_username TEXT NOT NULL,
                        last_score_data TEXT NOT NULL,
                        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE(chat_id, twitter_username)
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to initialize database: {exc}") from exc

    def track(self, chat_id: int, handle: str, snapshot: ScoreSnapshot) -> None:
        """Insert or replace the subscription for (chat, handle)."""

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO tracked_users (chat_id, twitter_username, last_score_data)
                    VALUES (?, ?, ?)
                    """,
                    (chat_id, normalize_handle(handle), json.dumps(snapshot.to_payload())),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to track {handle}: {exc}") from exc

    def untrack(self, chat_id: int, handle: str) -> bool:
        """Delete the subscription; return True if a row was removed."""

        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "DELETE FROM tracked_users WHERE chat_id = ? AND twitter_username = ?",
                    (chat_id, normalize_handle(handle)),
                )
                return cur.rowcount > 0
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to untrack {handle}: {exc}") from exc

    def update_snapshot(self, chat_id: int, handle: str, snapshot: ScoreSnapshot) -> None:
        """Replace the stored snapshot wholesale."""

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    UPDATE tracked_users
                    SET last_score_data = ?, last_updated = CURRENT_TIMESTAMP
                    WHERE chat_id = ? AND twitter_username = ?
                    """,
                    (json.dumps(snapshot.to_payload()), chat_id, normalize_handle(handle)),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to update score for {handle}: {exc}") from exc

    def list_all(self) -> list[TrackedEntry]:
        """Return every subscription across all chats."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT chat_id, twitter_username, last_score_data FROM tracked_users ORDER BY id"
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to list tracked users: {exc}") from exc
        return list(self._rows_to_entries(rows))

    def list_for_chat(self, chat_id: int) -> list[TrackedEntry]:
        """Return the subscriptions of one chat."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT chat_id, twitter_username, last_score_data FROM tracked_users
                    WHERE chat_id = ? ORDER BY id
                    """,
                    (chat_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to list tracked users for chat {chat_id}: {exc}") from exc
        return list(self._rows_to_entries(rows))

    @staticmethod
    def _rows_to_entries(rows: Iterable[sqlite3.Row]) -> Iterable[TrackedEntry]:
        for row in rows:
            handle = row["twitter_username"]
            try:
                payload = json.loads(row["last_score_data"])
                snapshot = ScoreSnapshot.from_payload(payload, handle=handle)
            except (ValueError, KeyError, TypeError):
                LOGGER.warning("Skipping unreadable score data for %s in chat %s", handle, row["chat_id"])
                continue
            yield TrackedEntry(chat_id=int(row["chat_id"]), handle=handle, snapshot=snapshot)
