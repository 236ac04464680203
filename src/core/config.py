"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_INTERVAL_MINUTES = 60
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_MS = 2000


@dataclass(frozen=True)
class TrackingConfig:
    """Polling settings for the tracking scheduler."""

    interval_seconds: float = DEFAULT_INTERVAL_MINUTES * 60
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_MS / 1000

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {self.interval_seconds}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.batch_delay_seconds < 0:
            raise ValueError(f"batch_delay_seconds must be >= 0, got {self.batch_delay_seconds}")


@dataclass(frozen=True)
class KaitoConfig:
    """Connection settings for the Kaito score API adapter."""

    base_url: str = "https://api.kaito.ai/api/v1/yaps"
    timeout_seconds: float = 10.0
