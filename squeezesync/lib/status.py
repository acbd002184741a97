# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Last-known state of the selected player.

A PlayerStatus is only ever replaced as a whole (``from_result``) or
discarded (new player selected); two responses are never merged field by
field.  The one exception is the playtime ticker, which advances
``playtime`` locally between polls.
"""

from dataclasses import dataclass, field


class PendingMutation:
    """One-shot marker for a local change the server has not echoed yet.

    Armed by whoever mutates the view optimistically (a drag reorder, a
    transport command); consumed by the very next diff evaluation, which
    then treats the next playlist revision as already seen.
    """

    def __init__(self):
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self):
        self._armed = True

    def consume(self) -> bool:
        armed, self._armed = self._armed, False
        return armed

    def __repr__(self):
        return f"PendingMutation(armed={self._armed})"


def to_int(value, default=0) -> int:
    """The server sends most numbers as strings ("12.34", "1")."""
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def to_float(value, default=0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def first_track(result: dict) -> dict | None:
    """First playlist_loop entry of a status payload, if the playlist has any."""
    if to_int(result.get("playlist_tracks")) > 0:
        loop = result.get("playlist_loop") or []
        if loop:
            return loop[0]
    return None


@dataclass
class PlayerStatus:
    power: int | None = None            # 1 on, 0 off, None unknown
    mode: str | None = None             # "stop" | "play" | "pause"
    rate: float = 0
    current_title: str | None = None
    title: str | None = None
    track: str | None = None
    playlist_tracks: int | None = None
    index: int | None = None
    duration: int | None = None
    playtime: int = 0
    timestamp: float | None = None
    repeat: int | None = None
    shuffle: int | None = None
    rescan: int = 0
    can_seek: bool = False
    player: str | None = None
    pending: PendingMutation = field(default_factory=PendingMutation)

    @classmethod
    def from_result(cls, result: dict, player: str | None = None,
                    rescan: int = 0) -> "PlayerStatus":
        """Build a fresh record from a full ``status`` payload.

        ``rescan`` is carried over by the caller; a player status payload
        has no say in whether the server is scanning.
        """
        track = first_track(result)
        power = result.get("power")
        index = result.get("playlist_cur_index")
        timestamp = result.get("playlist_timestamp")
        repeat = result.get("playlist repeat")
        shuffle = result.get("playlist shuffle")
        return cls(
            # http clients have no power state; treat them as on
            power=1 if power is None else to_int(power),
            mode=result.get("mode"),
            rate=to_float(result.get("rate"), 1.0),
            current_title=result.get("current_title"),
            title=track.get("title", "") if track else "",
            track=track.get("url", "") if track else "",
            playlist_tracks=to_int(result.get("playlist_tracks")),
            index=None if index is None else to_int(index),
            duration=to_int(result.get("duration")),
            playtime=to_int(result.get("time")),
            timestamp=None if timestamp is None else to_float(timestamp),
            repeat=None if repeat is None else to_int(repeat),
            shuffle=None if shuffle is None else to_int(shuffle),
            rescan=rescan,
            can_seek=bool(result.get("can_seek")),
            player=player,
        )

    def as_dict(self) -> dict:
        return {
            "power": self.power,
            "mode": self.mode,
            "rate": self.rate,
            "current_title": self.current_title,
            "title": self.title,
            "track": self.track,
            "playlist_tracks": self.playlist_tracks,
            "index": self.index,
            "duration": self.duration,
            "playtime": self.playtime,
            "timestamp": self.timestamp,
            "repeat": self.repeat,
            "shuffle": self.shuffle,
            "rescan": self.rescan,
            "can_seek": self.can_seek,
            "player": self.player,
        }
