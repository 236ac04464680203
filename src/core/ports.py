"""Ports (interfaces) used by the core tracking scheduler.

Ports define the minimal contracts for score lookup, storage and notification
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.models import ScoreSnapshot, TrackedEntry


class ScoreSourcePort(Protocol):
    """Score lookups required by the core.

    Returns None for unknown handles and raises TransientFetchError for
    network or upstream failures.
    """

    async def fetch(self, handle: str) -> Optional[ScoreSnapshot]:
        ...


class TrackedHandleStorePort(Protocol):
    """Storage operations for tracked handles.

    Implementations raise PersistenceError on failure.
    """

    def list_all(self) -> Sequence[TrackedEntry]:
        ...

    def list_for_chat(self, chat_id: int) -> Sequence[TrackedEntry]:
        ...

    def track(self, chat_id: int, handle: str, snapshot: ScoreSnapshot) -> None:
        ...

    def untrack(self, chat_id: int, handle: str) -> bool:
        ...

    def update_snapshot(self, chat_id: int, handle: str, snapshot: ScoreSnapshot) -> None:
        ...


class NotifierPort(Protocol):
    """Notification delivery; raises DeliveryError on failure."""

    async def send(self, chat_id: int, message: str) -> None:
        ...
