"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

# Windowed sub-scores in display order, mapped to the score API field names.
WINDOWS: tuple[str, ...] = ("l24h", "l48h", "l7d", "l30d", "l3m", "l6m", "l12m")

WINDOW_LABELS: dict[str, str] = {
    "l24h": "Last 24h",
    "l48h": "Last 48h",
    "l7d": "Last 7d",
    "l30d": "Last 30d",
    "l3m": "Last 3m",
    "l6m": "Last 6m",
    "l12m": "Last 12m",
}


def _score(payload: Mapping[str, Any], key: str) -> float:
    raw = payload.get(key)
    if raw is None:
        return 0.0
    value = float(raw)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{key} must be a finite non-negative number, got {raw!r}")
    return value


@dataclass(frozen=True)
class ScoreSnapshot:
    """Point-in-time reputation score for one handle."""

    handle: str
    total: float
    l24h: float = 0.0
    l48h: float = 0.0
    l7d: float = 0.0
    l30d: float = 0.0
    l3m: float = 0.0
    l6m: float = 0.0
    l12m: float = 0.0
    user_id: Optional[str] = None

    def window(self, name: str) -> float:
        return getattr(self, name)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], handle: Optional[str] = None) -> "ScoreSnapshot":
        """Build a snapshot from the score API JSON shape.

        Raises KeyError/TypeError/ValueError when the payload lacks a usable
        total or carries a negative, NaN or infinite score, so callers can
        decide how to classify a malformed answer.
        """

        if payload.get("yaps_all") is None:
            raise KeyError("yaps_all")
        username = payload.get("username") or handle
        if not username:
            raise KeyError("username")
        user_id = payload.get("user_id")
        return cls(
            handle=str(username),
            total=_score(payload, "yaps_all"),
            user_id=str(user_id) if user_id is not None else None,
            **{name: _score(payload, f"yaps_{name}") for name in WINDOWS},
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the score API JSON shape, also used for persistence."""

        payload: dict[str, Any] = {
            "user_id": self.user_id,
            "username": self.handle,
            "yaps_all": self.total,
        }
        for name in WINDOWS:
            payload[f"yaps_{name}"] = self.window(name)
        return payload


@dataclass(frozen=True)
class TrackedEntry:
    """One subscription: a chat tracking a handle, with the last seen snapshot."""

    chat_id: int
    handle: str
    snapshot: ScoreSnapshot


@dataclass(frozen=True)
class ScoreDelta:
    """Observed increase between two snapshots of the same handle."""

    handle: str
    previous_total: float
    current_total: float
    total_increase: float
    # None when the previous total was zero and a percentage is meaningless.
    percent_increase: Optional[float]
    window_increases: Mapping[str, float] = field(default_factory=dict)
