"""Error taxonomy for score tracking.

Adapters translate library exceptions into these so the scheduler and the
command router can contain failures without knowing about httpx, sqlite3 or
Telethon.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all tracking failures."""


class ScoreNotFoundError(TrackerError):
    """The score API has no data for the handle."""


class TransientFetchError(TrackerError):
    """The score API could not be reached or returned an unusable answer."""


class PersistenceError(TrackerError):
    """A tracked-handle store read or write failed."""


class DeliveryError(TrackerError):
    """A chat notification could not be delivered."""


class CycleFetchError(TrackerError):
    """Listing the tracked entries at the start of a cycle failed."""
