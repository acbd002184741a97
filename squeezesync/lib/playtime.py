# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Local playtime interpolation between status polls.

The server is polled every few seconds but the elapsed-time display should
move every second, so the ticker advances ``playtime`` on its own at a
slightly sub-second cadence and lets the next poll correct it.
"""

from .events import PlaytimeUpdate
from .status import PlayerStatus

# refresh window around the end of a track (seconds before / after)
END_LEAD = 1
END_GRACE = 2


def near_track_end(status: PlayerStatus) -> bool:
    duration = status.duration or 0
    return (status.mode == "play" and duration > 0
            and duration - END_LEAD <= status.playtime <= duration + END_GRACE)


def tick(status: PlayerStatus) -> tuple[PlaytimeUpdate, bool]:
    """Advance *status* by one tick.

    Returns the event to publish and whether a full refresh is due because
    the track is about to end (the server never tells us it did).
    """
    refresh = near_track_end(status)

    if status.mode == "stop":
        status.playtime = 0

    duration = status.duration or 0
    update = PlaytimeUpdate(
        current=status.playtime,
        duration=duration,
        remaining=status.playtime - duration if duration else 0,
    )

    # no interpolation while scanning (FWD/RWD) or paused
    if status.mode == "play" and status.rate == 1:
        status.playtime += 1

    return update, refresh


def format_time(seconds) -> str:
    """Render seconds as ``m:ss`` / ``h:mm:ss``; negative values get a leading '-'."""
    seconds = int(seconds or 0)
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}:{minutes:02d}:{secs:02d}"
    return f"{sign}{minutes}:{secs:02d}"
