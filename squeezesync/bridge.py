# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Bridge — exposes a Controller to browser UIs over HTTP + WebSocket.

Every event published on the controller's bus is forwarded to connected
WebSocket clients as ``{"type": <event name>, "data": {...}}``; commands come
back as small JSON POSTs.

Routes:
  GET  /ws                 — event feed (current status sent on connect)
  GET  /player/status      — cached PlayerStatus + selected player
  POST /player/control     — {"action": ["pause"], "dont_update": false}
  POST /player/select      — {"playerid": "00:04:20:..."}
  POST /player/move        — {"source": 5, "target": 2}
  POST /server             — {"host": "10.0.0.5", "port": 9000}
"""

import asyncio
import json
import logging

from aiohttp import web

from .controller import Controller
from .lib.config import DEFAULT_BRIDGE_PORT, cfg
from .lib.events import Event
from .lib.playtime import format_time

log = logging.getLogger(__name__)


class Bridge:

    def __init__(self, controller: Controller, port: int | None = None):
        self.controller = controller
        self.port = port or cfg("bridge", "port", default=DEFAULT_BRIDGE_PORT)
        self._ws_clients: set[web.WebSocketResponse] = set()
        self._runner: web.AppRunner | None = None
        self._pending: set[asyncio.Task] = set()

    # ── App ──

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_get("/player/status", self._handle_status)
        app.router.add_post("/player/control", self._handle_control)
        app.router.add_post("/player/select", self._handle_select)
        app.router.add_post("/player/move", self._handle_move)
        app.router.add_post("/server", self._handle_server)
        for path in ("/player/control", "/player/select", "/player/move", "/server"):
            app.router.add_route("OPTIONS", path, self._handle_cors)
        return app

    def attach(self):
        """Start forwarding bus events to WebSocket clients."""
        self.controller.bus.subscribe_all(self._on_event)

    def detach(self):
        self.controller.bus.unsubscribe_all(self._on_event)

    async def start(self):
        """Subscribe to the bus and start listening."""
        self.attach()
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        log.info("Bridge: HTTP + WebSocket on port %d", self.port)

    async def stop(self):
        self.detach()
        for ws in list(self._ws_clients):
            await ws.close()
        self._ws_clients.clear()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # ── Event forwarding ──

    def _on_event(self, event: Event):
        if not self._ws_clients:
            return
        task = asyncio.create_task(self.broadcast(event.to_dict()))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def broadcast(self, message: dict):
        """Send *message* to every connected WebSocket client."""
        text = json.dumps(message)
        disconnected = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send_str(text)
            except (ConnectionResetError, RuntimeError) as e:
                log.debug("Dropping WebSocket client: %s", e)
                disconnected.add(ws)
        self._ws_clients -= disconnected

    def snapshot(self) -> dict:
        status = self.controller.status
        data = status.as_dict()
        data.update({
            "selected": self.controller.selected,
            "players": self.controller.players,
            "playtime_text": format_time(status.playtime),
            "duration_text": format_time(status.duration),
        })
        return data

    # ── Handlers ──

    def _cors_headers(self):
        return {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        }

    def _json(self, data: dict, status: int = 200) -> web.Response:
        return web.json_response(data, status=status, headers=self._cors_headers())

    async def _read_json(self, request: web.Request) -> dict:
        try:
            data = await request.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def _handle_cors(self, request: web.Request) -> web.Response:
        return web.Response(headers=self._cors_headers())

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._ws_clients.add(ws)
        log.info("WebSocket client connected (%d total)", len(self._ws_clients))
        try:
            await ws.send_json({"type": "snapshot", "data": self.snapshot()})
            # push-only; incoming messages are ignored
            async for _msg in ws:
                pass
        finally:
            self._ws_clients.discard(ws)
            log.info("WebSocket client disconnected (%d remaining)",
                     len(self._ws_clients))
        return ws

    async def _handle_status(self, request: web.Request) -> web.Response:
        return self._json(self.snapshot())

    async def _handle_control(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        action = data.get("action")
        if not (isinstance(action, list) and action):
            return self._json({"status": "error", "message": "action must be a non-empty list"}, 400)
        if not self.controller.selected:
            return self._json({"status": "error", "message": "no player selected"}, 409)
        body = await self.controller.player_control(action, bool(data.get("dont_update")))
        if body is None:
            return self._json({"status": "error", "message": "server unreachable"}, 502)
        return self._json({"status": "ok", "result": body.get("result")})

    async def _handle_select(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        await self.controller.select_player(data.get("playerid") or None)
        self.controller.update_all()
        return self._json({"status": "ok", "selected": self.controller.selected})

    async def _handle_move(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        try:
            source, target = int(data["source"]), int(data["target"])
        except (KeyError, TypeError, ValueError):
            return self._json({"status": "error", "message": "source and target required"}, 400)
        if self.controller.move(source, target) is None:
            return self._json({"status": "error", "message": "no player selected"}, 409)
        return self._json({"status": "ok"})

    async def _handle_server(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        host = data.get("host")
        if not host:
            return self._json({"status": "error", "message": "host required"}, 400)
        self.controller.gateway.set_server(host, data.get("port"))
        await self.controller.select_player(None)
        self.controller.update_all()
        return self._json({"status": "ok", "server": self.controller.gateway.base_url})
