# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Controller — keeps a local view of one media server in step with it.

The server never pushes, so the controller polls.  Three observers run for
the whole session:

    playerstatus    every 5s   cheap status of the selected player; a full
                               refresh only when the diff says so
    serverstatus    10s / 30s  player list, selection, scanner progress
    playtimeticker  0.95s      local playtime interpolation

Everything the controller learns is published on its EventBus; consumers
subscribe there and send commands back through ``player_control``.

One Controller per session.  It owns the gateway, the bus, the scheduler and
the current PlayerStatus, so several instances can live side by side (tests,
multi-server dashboards).

Usage:

    controller = Controller()
    controller.bus.subscribe(PlaytimeUpdate, on_playtime)
    await controller.start()
    await controller.pause()
    ...
    await controller.stop()
"""

import asyncio
import logging
import re
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from .lib.config import cfg, interval
from .lib.diff import need_update
from .lib.events import (
    ButtonUpdate, EventBus, PlayerListUpdate, PlayerSelected, PlayerStateChange,
    PlaylistChange, ScannerUpdate, ServerStatus, ShowBriefly,
)
from .lib.gateway import Gateway
from .lib.playtime import tick
from .lib.scheduler import Observer, Scheduler
from .lib.status import PlayerStatus, to_int
from .reorder import HoverHighlight, Row, SortableList

log = logging.getLogger(__name__)

# Status field tags: the pollers ask for the cheap set, refreshes for the full one
SUMMARY_TAGS = "tags:uB"
FULL_TAGS = "tags:gABbehldiqtyrSuoKLN"

SERVERSTATUS = ["serverstatus", 0, 999]

# showBriefly lines starting with anything else are markup, not text
_BRIEFLY_TEXT = re.compile(r"^[\w\s.;,:()\[\]%]")

# marks "no player was ever selected" so the first selection always fires
_UNSELECTED = object()


def find_player(players: list | None, playerid: str | None) -> dict | None:
    """Look *playerid* up in a ``players_loop``, raw or URL-encoded."""
    if not playerid:
        return None
    for player in players or []:
        pid = player.get("playerid")
        if pid and (pid == playerid or quote(pid, safe="") == playerid):
            return player
    return None


def replace_player_id(url: str, playerid: str | None) -> str:
    """Point the ``player`` (and ``playerid``, if present) query args of *url*
    at *playerid*, adding ``player`` when missing."""
    if not playerid:
        return url
    parts = urlsplit(url)
    args = dict(parse_qsl(parts.query, keep_blank_values=True))
    args["player"] = playerid
    if "playerid" in args:
        args["playerid"] = playerid
    return urlunsplit(parts._replace(query=urlencode(args)))


class Controller:

    def __init__(self, gateway: Gateway | None = None, bus: EventBus | None = None,
                 scheduler: Scheduler | None = None, default_player: str | None = None):
        self.gateway = gateway or Gateway()
        self.bus = bus or EventBus()
        self.scheduler = scheduler or Scheduler()
        self.default_player = default_player or cfg("player", "default")
        self.status = PlayerStatus()
        self.players: list[dict] = []
        self.running = False
        self._player = _UNSELECTED
        self._show_briefly_cache = ""
        self.strings: dict[str, str] = {}
        self._tasks: set[asyncio.Task] = set()
        self._refresh_task: asyncio.Task | None = None

    # ── Lifecycle ──

    async def start(self, observe: bool = True):
        """Open the gateway and, unless *observe* is False, start polling."""
        await self.gateway.start()
        self.running = True
        if not observe:
            return
        self.scheduler.add_observer(
            "playerstatus", interval("player_status"), self.poll_player)
        self.scheduler.add_observer(
            "serverstatus", interval("server_status"), self.poll_server)
        self.scheduler.add_observer(
            "playtimeticker", interval("playtime"), self.tick_playtime)
        log.info("Controller started against %s", self.gateway.base_url)

    async def stop(self):
        self.running = False
        await self.scheduler.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.gateway.stop()
        log.info("Controller stopped")

    def _spawn(self, coro) -> asyncio.Task:
        """Run *coro* in the background, keeping a reference until it's done."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def wait_idle(self):
        """Wait for background refreshes and commits to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            log.error("Background task failed: %s", task.exception(),
                      exc_info=task.exception())

    # ── Selection ──

    @property
    def selected(self) -> str | None:
        """Id of the selected player, or None."""
        return None if self._player is _UNSELECTED else self._player

    def reset_status(self):
        """Throw the cached status away (never merge across players)."""
        self.status = PlayerStatus()

    async def select_player(self, player: dict | str | None):
        """Select a player by ``players_loop`` entry, by id, or deselect with None.

        An id is resolved against a fresh server listing first; an unknown id
        deselects.
        """
        if isinstance(player, dict) or player is None:
            self._fire_player_selected(player)
            return

        self.reset_status()
        body = await self.request(["", SERVERSTATUS])
        result = (body or {}).get("result") or {}
        self._fire_player_selected(find_player(result.get("players_loop"), player))

    def _fire_player_selected(self, player: dict | None):
        playerid = (player or {}).get("playerid")
        if not playerid:
            if self._player is not None:
                log.info("No player selected")
                self.reset_status()
                self._player = None
            return

        if self._player is not _UNSELECTED and playerid == self._player:
            return

        previous = self.selected
        self.reset_status()
        self._player = playerid
        log.info("Selected player %s (%s)", player.get("name", playerid), playerid)
        self.bus.publish(PlayerSelected(player=player, previous=previous))
        if self.running:
            self._spawn(self.get_status())

    def _select_from_list(self, result: dict):
        players = result.get("players_loop") or []
        for playerid in (self.selected, self.default_player):
            found = find_player(players, playerid)
            if found:
                break
        else:
            found = players[0] if players else None
        self._fire_player_selected(found)

    def update_all(self):
        """Force every observer to run now, e.g. after switching players."""
        # forget power so the next summary always differs
        self.status.power = None
        self.scheduler.update_all()

    # ── Requests ──

    async def request(self, params: list | str | None = None, *, url: str | None = None,
                      method: str | None = None, timeout: float | None = None,
                      show_briefly=None) -> dict | None:
        """Send a server-scoped request; see Gateway.request."""
        if show_briefly:
            self.show_briefly(show_briefly)
        return await self.gateway.request(params, url=url, method=method, timeout=timeout)

    async def player_request(self, command: list, **kwargs) -> dict | None:
        """Send *command* scoped to the selected player.  No-op without one."""
        player = self.selected
        if not player:
            return None
        return await self.request([player, command], **kwargs)

    async def player_control(self, action: list, dont_update: bool = False) -> dict | None:
        """Send a user-initiated player command and refresh right after.

        With *dont_update* the change is one the caller has already drawn
        (an optimistic reorder): the pending token is armed so the next diff
        absorbs the new playlist revision instead of triggering a repaint.
        """
        if not self.selected:
            return None
        if dont_update:
            self.status.pending.arm()

        body = await self.player_request(action)
        if body is None:
            return None

        # re-arm: a poll that landed while we waited may have used it up
        if dont_update:
            self.status.pending.arm()
        await self.get_status()

        result = body.get("result")
        if isinstance(result, dict) and result.get("text"):
            self.show_briefly(result["text"])
        return body

    async def url_request(self, url: str, update_status: bool = False,
                          show_briefly=None) -> dict | None:
        """GET a raw locator on the server, optionally refreshing afterwards."""
        body = await self.request(url, method="GET", show_briefly=show_briefly)
        if update_status:
            await self.get_status()
        return body

    async def playlist_request(self, param: str, reload: bool = False) -> dict | None:
        """Run a legacy playlist command through the status header page.

        *param* is a query fragment such as ``"p0=playlist&p1=clear&"``.
        """
        url = replace_player_id(
            f"/status_header.html?{param}ajaxRequest=1&force=1", self.selected)
        body = await self.url_request(url, update_status=True)
        if reload:
            await self.get_status()
        return body

    async def load_strings(self, names: list[str]) -> dict[str, str]:
        """Fetch localised strings not cached yet; returns the requested ones."""
        missing = [name for name in names if not self.strings.get(name.lower())]
        if missing:
            body = await self.request(["", ["getstring", ",".join(missing)]])
            result = (body or {}).get("result")
            if isinstance(result, dict):
                for key, value in result.items():
                    self.strings[key.lower()] = value
        return {name: self.get_string(name) for name in names}

    def get_string(self, name: str) -> str:
        """Cached translation of *name*, or *name* itself if never loaded."""
        return self.strings.get(name.lower()) or name

    # ── Status refresh ──

    async def get_status(self):
        """Fetch the full status of the selected player and replace the cache."""
        player = self.selected
        if not player:
            return
        body = await self.player_request(["status", "-", 1, FULL_TAGS])
        if player != self.selected:
            log.debug("Dropping status for %s, selection moved on", player)
            return
        self._update_status(body)

    def _update_status(self, body: dict | None):
        if not body:
            return
        result = body.get("result")
        if not (isinstance(result, dict) and result.get("player_connected")):
            return

        changed = need_update(self.status, result)
        self.status = PlayerStatus.from_result(
            result, player=self.selected, rescan=self.status.rescan)

        self.bus.publish(PlayerStateChange(result))
        if changed and self.bus.has_subscribers(PlaylistChange):
            self.bus.publish(PlaylistChange(result))

    # ── Observers ──

    async def poll_player(self, observer: Observer | None = None):
        player = self.selected
        if not player:
            return None

        body = await self.player_request(["status", "-", 1, SUMMARY_TAGS])
        if not body or player != self.selected:
            return None
        result = body.get("result")
        if not isinstance(result, dict):
            return None

        if result.get("player_connected"):
            self.bus.publish(ButtonUpdate(result))

            if result.get("time") is not None:
                self.status.playtime = to_int(result["time"])
            if result.get("duration"):
                self.status.duration = to_int(result["duration"])

            if need_update(self.status, result):
                log.debug("Player %s changed, refreshing", player)
                await self.get_status()

        self.show_briefly(result)

        if self._check_rescan(result):
            server = self.scheduler.get("serverstatus")
            if server:
                server.reschedule(interval("scan"))
        return None

    async def poll_server(self, observer: Observer | None = None):
        body = await self.request(["", SERVERSTATUS])
        result = (body or {}).get("result")
        if isinstance(result, dict):
            self.players = result.get("players_loop") or []
            self._select_from_list(result)
            self.bus.publish(ServerStatus(result))
            self.bus.publish(PlayerListUpdate(self.players))
            self._check_rescan(result)
            if result.get("lastscanfailed"):
                self.show_briefly(result["lastscanfailed"])

        # relax while nothing interesting happens server-side
        if self.selected and not self.status.rescan:
            return interval("server_status_idle")
        return None

    async def tick_playtime(self, observer: Observer | None = None):
        update, refresh = tick(self.status)
        if refresh and self.selected and (
                self._refresh_task is None or self._refresh_task.done()):
            self._refresh_task = self._spawn(self.get_status())
        self.bus.publish(update)
        return None

    def _check_rescan(self, result: dict) -> bool:
        """Publish ScannerUpdate if the rescan flag flipped.  True if it did."""
        rescan = to_int(result.get("rescan"))
        if rescan == self.status.rescan:
            return False
        self.status.rescan = rescan
        log.info("Library scan %s", "running" if rescan else "finished")
        self.bus.publish(ScannerUpdate(result))
        return True

    # ── Transient messages ──

    def show_briefly(self, value):
        """Publish a transient message unless it repeats the previous one.

        *value* is a string, a list of strings, or a result dict carrying a
        ``showBriefly`` list.
        """
        if isinstance(value, str):
            lines = [value]
        elif isinstance(value, (list, tuple)):
            lines = list(value)
        elif isinstance(value, dict):
            lines = value.get("showBriefly") or []
        else:
            return
        if isinstance(lines, str):
            lines = [lines]

        text = " ".join(
            line for line in lines if isinstance(line, str) and _BRIEFLY_TEXT.match(line))
        if text and text != self._show_briefly_cache:
            self._show_briefly_cache = text
            self.bus.publish(ShowBriefly(text))

    # ── Player commands ──

    async def play(self):
        return await self.player_control(["play"])

    async def pause(self):
        return await self.player_control(["pause"])

    async def stop_playback(self):
        return await self.player_control(["stop"])

    async def set_power(self, on: bool):
        return await self.player_control(["power", 1 if on else 0])

    async def toggle_power(self):
        return await self.set_power(not self.status.power)

    async def seek(self, fraction: float):
        """Jump to *fraction* (0..1) of the current track.

        Does nothing (returns None) for streams the server says can't seek
        or while the duration is unknown.
        """
        if not 0 <= fraction <= 1:
            raise ValueError(f"seek fraction out of range: {fraction}")
        if not (self.status.can_seek and self.status.duration):
            return None
        return await self.player_control(["time", fraction * self.status.duration])

    async def set_volume(self, amount: int, delta: str | None = None):
        """Volume in tenths (0-10); with *delta* "+"/"-" it's relative."""
        if delta not in (None, "+", "-"):
            raise ValueError(f"volume delta must be '+' or '-', not {delta!r}")
        amount *= 10
        return await self.player_control(
            ["mixer", "volume", f"{delta}{amount}" if delta else amount])

    async def jump(self, index: int):
        return await self.player_control(["playlist", "jump", index])

    async def delete(self, index: int):
        return await self.player_control(["playlist", "delete", index])

    async def clear_playlist(self):
        return await self.player_control(["playlist", "clear"])

    async def cycle_repeat(self):
        return await self.player_control(
            ["playlist", "repeat", ((self.status.repeat or 0) + 1) % 3])

    async def cycle_shuffle(self):
        return await self.player_control(
            ["playlist", "shuffle", ((self.status.shuffle or 0) + 1) % 3])

    def move(self, source: int, target: int) -> asyncio.Task | None:
        """Commit a reorder that's already on screen.

        The pending token is armed before this returns; the command itself
        runs in the background.
        """
        if not self.selected:
            return None
        self.status.pending.arm()
        return self._spawn(
            self.player_control(["playlist", "move", source, target], dont_update=True))

    def playlist_sortable(self, rows: list[Row], offset: int = 0,
                          highlighter: HoverHighlight | None = None) -> SortableList:
        """Drag-and-drop list whose drops become ``playlist move`` commands."""
        return SortableList(
            rows, offset=offset, highlighter=highlighter,
            on_drop_cmd=lambda source, target, slot: self.move(source, target))

    # ── Misc ──

    def describe(self) -> str:
        """One status line (systemd STATUS=, logs)."""
        return (f"server={self.gateway.base_url} player={self.selected or '-'} "
                f"mode={self.status.mode or '-'}")
