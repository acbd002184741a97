# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Typed publish/subscribe bus for state changes coming out of the controller.

The set of events is closed; each kind is a frozen dataclass carrying its
own payload, and subscribers register against the class:

    bus.subscribe(PlaytimeUpdate, lambda ev: print(ev.current, ev.remaining))

Wire names (``Event.name``) are what the WebSocket bridge sends as "type".

    playerselected      PlayerSelected     the selected player actually changed
    serverstatus        ServerStatus       every successful server poll
    playerlistupdate    PlayerListUpdate   every successful server poll
    playlistchange      PlaylistChange     diff detected a change, playlist view present
    buttonupdate        ButtonUpdate       every connected player poll
    playerstatechange   PlayerStateChange  the status record was replaced
    playtimeupdate      PlaytimeUpdate     every ticker step
    showbriefly         ShowBriefly        a new (non-repeated) transient message
    scannerupdate       ScannerUpdate      the rescan flag changed
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    name: ClassVar[str] = ""

    def to_dict(self) -> dict:
        return {"type": self.name, "data": dataclasses.asdict(self)}


@dataclass(frozen=True)
class PlayerSelected(Event):
    name: ClassVar[str] = "playerselected"
    player: dict
    previous: str | None = None


@dataclass(frozen=True)
class ServerStatus(Event):
    name: ClassVar[str] = "serverstatus"
    result: dict


@dataclass(frozen=True)
class PlayerListUpdate(Event):
    name: ClassVar[str] = "playerlistupdate"
    players: list


@dataclass(frozen=True)
class PlaylistChange(Event):
    name: ClassVar[str] = "playlistchange"
    result: dict


@dataclass(frozen=True)
class ButtonUpdate(Event):
    name: ClassVar[str] = "buttonupdate"
    result: dict


@dataclass(frozen=True)
class PlayerStateChange(Event):
    name: ClassVar[str] = "playerstatechange"
    result: dict


@dataclass(frozen=True)
class PlaytimeUpdate(Event):
    name: ClassVar[str] = "playtimeupdate"
    current: int
    duration: int
    remaining: int


@dataclass(frozen=True)
class ShowBriefly(Event):
    name: ClassVar[str] = "showbriefly"
    text: str


@dataclass(frozen=True)
class ScannerUpdate(Event):
    name: ClassVar[str] = "scannerupdate"
    result: dict


EVENT_TYPES = (
    PlayerSelected, ServerStatus, PlayerListUpdate, PlaylistChange, ButtonUpdate,
    PlayerStateChange, PlaytimeUpdate, ShowBriefly, ScannerUpdate,
)

E = TypeVar("E", bound=Event)


class EventBus:
    """Fan events out to any number of subscribers.

    A failing subscriber is logged and skipped; the remaining subscribers
    still receive the event.
    """

    def __init__(self):
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}
        self._catch_all: list[Callable[[Event], None]] = []

    def subscribe(self, kind: type[E], callback: Callable[[E], None]) -> None:
        if kind not in EVENT_TYPES:
            raise ValueError(f"Unknown event kind: {kind!r}")
        self._subscribers.setdefault(kind, []).append(callback)

    def unsubscribe(self, kind: type[E], callback: Callable[[E], None]) -> None:
        try:
            self._subscribers.get(kind, []).remove(callback)
        except ValueError:
            pass

    def subscribe_all(self, callback: Callable[[Event], None]) -> None:
        """Receive every event regardless of kind (used by the bridge)."""
        self._catch_all.append(callback)

    def unsubscribe_all(self, callback: Callable[[Event], None]) -> None:
        try:
            self._catch_all.remove(callback)
        except ValueError:
            pass

    def has_subscribers(self, kind: type[Event]) -> bool:
        return bool(self._subscribers.get(kind) or self._catch_all)

    def publish(self, event: Event) -> None:
        for callback in self._subscribers.get(type(event), []) + self._catch_all:
            try:
                callback(event)
            except Exception as e:
                logger.error("Error in event callback for %s: %s",
                             event.name, e, exc_info=True)
