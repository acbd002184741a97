"""
squeezesync — client-side state synchronisation for a networked media server.

The server only answers requests, so the client polls: observers fetch
player and server status, a diff decides when a full refresh is worth it,
a ticker interpolates playtime in between, and everything learned is
published as typed events.

    from squeezesync import Controller, PlaytimeUpdate

    controller = Controller()
    controller.bus.subscribe(PlaytimeUpdate, print)
    await controller.start()
"""

from .controller import Controller
from .lib.events import (
    ButtonUpdate, Event, EventBus, PlayerListUpdate, PlayerSelected,
    PlayerStateChange, PlaylistChange, PlaytimeUpdate, ScannerUpdate,
    ServerStatus, ShowBriefly,
)
from .lib.gateway import Gateway
from .lib.scheduler import Observer, Scheduler
from .lib.status import PendingMutation, PlayerStatus
from .reorder import DragPhase, HoverHighlight, Row, SortableList

__version__ = "1.0.0"

__all__ = [
    "Controller",
    "Gateway",
    "Event",
    "EventBus",
    "ButtonUpdate",
    "PlayerListUpdate",
    "PlayerSelected",
    "PlayerStateChange",
    "PlaylistChange",
    "PlaytimeUpdate",
    "ScannerUpdate",
    "ServerStatus",
    "ShowBriefly",
    "Observer",
    "Scheduler",
    "PendingMutation",
    "PlayerStatus",
    "DragPhase",
    "HoverHighlight",
    "Row",
    "SortableList",
]
