"""Pytest configuration and fixtures."""

import asyncio
import contextlib
import copy

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from squeezesync.lib import config
from squeezesync.lib.gateway import Gateway

PLAYER_A = {"playerid": "00:04:20:aa:aa:aa", "name": "Kitchen", "connected": 1}
PLAYER_B = {"playerid": "00:04:20:bb:bb:bb", "name": "Lounge", "connected": 1}

STATUS = {
    "player_connected": 1,
    "power": 1,
    "mode": "play",
    "rate": 1,
    "time": 10,
    "duration": 200,
    "can_seek": 1,
    "current_title": None,
    "playlist_cur_index": "0",
    "playlist_timestamp": 100.0,
    "playlist_tracks": 8,
    "playlist repeat": 0,
    "playlist shuffle": 0,
    "playlist_loop": [{"title": "One", "url": "file:///music/one.flac"}],
}


class FakeServer:
    """Minimal JSON-RPC media server.

    ``status`` is returned for every ``status`` command, ``players`` for
    ``serverstatus``; other commands are answered from ``replies`` (command
    name -> result dict, or a callable taking the command list).
    """

    def __init__(self):
        self.requests: list[tuple[str, list]] = []
        self.pages: list[dict] = []
        self.status = copy.deepcopy(STATUS)
        self.players = [PLAYER_A, PLAYER_B]
        self.server_extra: dict = {}
        self.replies: dict = {}
        self.fail = False
        self.delay = 0.0

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/jsonrpc.js", self._rpc)
        app.router.add_get("/status_header.html", self._html)
        app.router.add_get("/info.json", self._info)
        return app

    def commands(self, name: str) -> list[list]:
        return [cmd for _scope, cmd in self.requests if cmd and cmd[0] == name]

    def full_status_requests(self) -> int:
        return sum(1 for cmd in self.commands("status") if "tags:uB" not in cmd)

    async def _rpc(self, request):
        body = await request.json()
        scope, command = body["params"]
        self.requests.append((scope, command))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            return web.Response(status=500)

        name = command[0]
        if name == "status":
            result = copy.deepcopy(self.status)
        elif name == "serverstatus":
            result = {"player count": len(self.players),
                      "players_loop": list(self.players), **self.server_extra}
        else:
            reply = self.replies.get(name, {})
            result = reply(command) if callable(reply) else reply
        return web.json_response({"id": body["id"], "method": body["method"],
                                  "params": body["params"], "result": result})

    async def _html(self, request):
        self.pages.append(dict(request.query))
        return web.Response(text="<div>ok</div>", content_type="text/html")

    async def _info(self, request):
        return web.json_response({"version": "8.3.1"})


@pytest.fixture(autouse=True)
def empty_config(monkeypatch):
    """Never read a real config file during tests."""
    monkeypatch.delenv("SQUEEZESYNC_CONFIG", raising=False)
    monkeypatch.setattr(config, "_config", {})


@pytest.fixture
def fake_server():
    return FakeServer()


@contextlib.asynccontextmanager
async def serving(fake: FakeServer):
    """Run *fake* on a local port and yield a started Gateway pointed at it."""
    server = TestServer(fake.make_app())
    await server.start_server()
    gateway = Gateway("127.0.0.1", server.port)
    await gateway.start()
    try:
        yield gateway
    finally:
        await gateway.stop()
        await server.close()
