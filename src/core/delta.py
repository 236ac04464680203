"""Score delta computation (core domain)."""

from __future__ import annotations

from typing import Optional

from core.models import WINDOWS, ScoreDelta, ScoreSnapshot


def compute_delta(previous: ScoreSnapshot, current: ScoreSnapshot) -> Optional[ScoreDelta]:
    """Return the increase from previous to current, or None if the total did not grow.

    Rules:
    - Only a strictly higher total counts as an increase.
    - The percentage is relative to the previous total and is omitted when that
      total is zero.
    - A window appears in the breakdown only when it strictly grew.
    """

    if current.total <= previous.total:
        return None

    total_increase = current.total - previous.total
    percent_increase: Optional[float] = None
    if previous.total > 0:
        percent_increase = total_increase / previous.total * 100

    window_increases: dict[str, float] = {}
    for name in WINDOWS:
        before = previous.window(name)
        after = current.window(name)
        if after > before:
            window_increases[name] = after - before

    return ScoreDelta(
        handle=current.handle,
        previous_total=previous.total,
        current_total=current.total,
        total_increase=total_increase,
        percent_increase=percent_increase,
        window_increases=window_increases,
    )
