"""Shared notification formatting helpers.

Keeping formatting here prevents drift between the command replies and the
tracking notifications. Everything is Telegram HTML, so every dynamic value
goes through html.escape.
"""

from __future__ import annotations

import html
from typing import Iterable, Sequence

from core.handles import profile_url
from core.models import WINDOW_LABELS, ScoreDelta, ScoreSnapshot, TrackedEntry

MEDALS = ("🥇", "🥈", "🥉", "4️⃣")

# Windows shown on the score card below the headline numbers.
_DETAIL_WINDOWS = ("l7d", "l30d", "l3m", "l6m", "l12m")


def _num(value: float) -> str:
    return f"{value:.2f}"


def handle_link(handle: str) -> str:
    """Return an HTML link to the handle's X profile."""

    safe_url = html.escape(profile_url(handle))
    return f"<a href=\"{safe_url}\">@{html.escape(handle)}</a>"


def format_score_message(snapshot: ScoreSnapshot) -> str:
    """Score card shown by /scan."""

    lines = [
        f"📊 Kaito Yaps for <b>{handle_link(snapshot.handle)}</b>",
        "",
        f"• Total: {_num(snapshot.total)}",
        f"• Last 24h: {_num(snapshot.l24h)}",
        "",
        "🔎 <i>More details:</i>",
    ]
    lines.extend(f"• {WINDOW_LABELS[name]}: {_num(snapshot.window(name))}" for name in _DETAIL_WINDOWS)
    return "\n".join(lines)


def format_list_message(entries: Iterable[TrackedEntry]) -> str:
    """Tracked handle list shown by /list."""

    lines = ["📋 <b>Your tracked Twitter handles:</b>", ""]
    lines.extend(
        f"• {handle_link(entry.handle)} - {_num(entry.snapshot.total)} Yaps" for entry in entries
    )
    return "\n".join(lines)


def format_score_change(delta: ScoreDelta) -> str:
    """Notification sent when a tracked handle's total went up."""

    total_line = f"<b>Total increase:</b> +{_num(delta.total_increase)} Yaps"
    if delta.percent_increase is not None:
        total_line += f" (↑{_num(delta.percent_increase)}%)"

    lines = [
        f"🚀 {handle_link(delta.handle)} gained Yaps!",
        "",
        total_line,
        f"<b>Current Yaps:</b> {_num(delta.current_total)} Yaps",
    ]
    if delta.window_increases:
        lines.extend(["", "<b>Breakdown by time period:</b>"])
        lines.extend(
            f"• {WINDOW_LABELS[name]}: +{_num(increase)}"
            for name, increase in delta.window_increases.items()
        )
    return "\n".join(lines)


def format_comparison_message(snapshots: Sequence[ScoreSnapshot]) -> str:
    """Leaderboard shown by /compare, ranked by the last 24h."""

    ranked = sorted(snapshots, key=lambda snap: snap.l24h, reverse=True)
    blocks = []
    for index, snapshot in enumerate(ranked):
        medal = MEDALS[index] if index < len(MEDALS) else f"{index + 1}."
        blocks.append(
            "\n".join(
                [
                    f"{medal} {handle_link(snapshot.handle)}",
                    f"   • Last 24h: {_num(snapshot.l24h)}",
                    f"   • Total: {_num(snapshot.total)}",
                ]
            )
        )
    return "🏆 <b>Kaito Yaps Comparison (Last 24h)</b>\n\n" + "\n\n".join(blocks)
