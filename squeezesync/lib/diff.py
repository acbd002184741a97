# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Change detection between a polled status summary and the cached status.

The cheap poll ("tags:uB") carries enough to tell whether anything visible
changed; only then is the expensive status fetched and the cache replaced.
"""

from .status import PlayerStatus, first_track, to_float, to_int


def need_update(status: PlayerStatus, result: dict) -> bool:
    """True when *result* differs from *status* in any tracked field.

    A summary field that is absent (None) is not compared.  If a local
    mutation is pending, its playlist revision is adopted first so the
    change we made ourselves does not count as an external one.
    """
    timestamp = result.get("playlist_timestamp")
    if status.pending.consume():
        status.timestamp = None if timestamp is None else to_float(timestamp)

    return any(changed_fields(status, result))


def changed_fields(status: PlayerStatus, result: dict) -> list[str]:
    """Names of the tracked fields that differ.  Does not touch ``pending``."""
    changed = []
    tracks = to_int(result.get("playlist_tracks"))
    track = first_track(result)

    power = result.get("power")
    if power is not None and to_int(power) != status.power:
        changed.append("power")

    mode = result.get("mode")
    if mode is not None and mode != status.mode:
        changed.append("mode")

    # only newer revisions count; a late response for an older one is ignored
    timestamp = result.get("playlist_timestamp")
    if timestamp is not None and (status.timestamp is None
                                  or to_float(timestamp) > status.timestamp):
        changed.append("timestamp")

    index = result.get("playlist_cur_index")
    if index is not None and to_int(index) != status.index:
        changed.append("index")

    current_title = result.get("current_title")
    if current_title is not None and current_title != status.current_title:
        changed.append("current_title")

    if tracks > 0:
        if track is not None and track.get("title", "") != status.title:
            changed.append("title")
        if track is not None and track.get("url", "") != status.track:
            changed.append("track")
        if not status.track:
            changed.append("track_added")
    elif "playlist_tracks" in result and tracks < 1 and status.track:
        changed.append("track_removed")

    rate = result.get("rate")
    if rate is not None and to_float(rate) != status.rate:
        changed.append("rate")

    repeat = result.get("playlist repeat")
    if repeat is not None and to_int(repeat) != status.repeat:
        changed.append("repeat")

    if "playlist_tracks" in result and tracks != status.playlist_tracks:
        changed.append("playlist_tracks")

    return changed
