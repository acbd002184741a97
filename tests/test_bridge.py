"""Tests for the HTTP + WebSocket bridge."""

import asyncio
import contextlib

from aiohttp.test_utils import TestClient, TestServer

from squeezesync.bridge import Bridge
from squeezesync.controller import Controller

from conftest import PLAYER_A, serving


@contextlib.asynccontextmanager
async def bridged(fake):
    """A test client for a Bridge whose controller talks to *fake*."""
    async with serving(fake) as gateway:
        controller = Controller(gateway)
        await controller.start(observe=False)
        bridge = Bridge(controller, port=0)
        bridge.attach()
        try:
            async with TestClient(TestServer(bridge.make_app())) as client:
                yield bridge, client
        finally:
            bridge.detach()
            await controller.stop()


def test_status_snapshot(fake_server):
    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            resp = await client.get("/player/status")
            assert resp.status == 200
            assert resp.headers["Access-Control-Allow-Origin"] == "*"
            empty = await resp.json()

            await bridge.controller.select_player(PLAYER_A)
            await bridge.controller.wait_idle()
            resp = await client.get("/player/status")
            return empty, await resp.json()

    empty, selected = asyncio.run(scenario())
    assert empty["selected"] is None
    assert empty["playtime_text"] == "0:00"
    assert selected["selected"] == PLAYER_A["playerid"]
    assert selected["mode"] == "play"
    assert selected["duration_text"] == "3:20"


def test_control_validation(fake_server):
    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            bad = await client.post("/player/control", json={"action": "pause"})
            unselected = await client.post("/player/control", json={"action": ["pause"]})
            garbage = await client.post("/player/control", data="not json")
            return bad.status, unselected.status, garbage.status

    assert asyncio.run(scenario()) == (400, 409, 400)
    assert fake_server.requests == []


def test_select_then_control(fake_server):
    fake_server.replies["pause"] = {"text": "Paused"}

    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            resp = await client.post("/player/select", json={"playerid": PLAYER_A["playerid"]})
            selected = (await resp.json())["selected"]
            resp = await client.post("/player/control", json={"action": ["pause"]})
            return selected, resp.status, await resp.json()

    selected, status, body = asyncio.run(scenario())
    assert selected == PLAYER_A["playerid"]
    assert status == 200
    assert body == {"status": "ok", "result": {"text": "Paused"}}
    assert fake_server.commands("pause") == [["pause"]]


def test_control_unreachable_server(fake_server):
    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            await bridge.controller.select_player(PLAYER_A)
            await bridge.controller.wait_idle()
            fake_server.fail = True
            resp = await client.post("/player/control", json={"action": ["pause"]})
            return resp.status

    assert asyncio.run(scenario()) == 502


def test_move(fake_server):
    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            bad = await client.post("/player/move", json={"source": "x", "target": 2})
            unselected = await client.post("/player/move", json={"source": 5, "target": 2})

            await bridge.controller.select_player(PLAYER_A)
            await bridge.controller.wait_idle()
            ok = await client.post("/player/move", json={"source": 5, "target": 2})
            await bridge.controller.wait_idle()
            return bad.status, unselected.status, ok.status

    assert asyncio.run(scenario()) == (400, 409, 200)
    assert fake_server.commands("playlist") == [["playlist", "move", 5, 2]]


def test_server_switch(fake_server):
    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            await bridge.controller.select_player(PLAYER_A)
            await bridge.controller.wait_idle()
            missing = await client.post("/server", json={})
            resp = await client.post("/server", json={"host": "10.0.0.9", "port": 9001})
            return missing.status, await resp.json(), bridge.controller.selected

    missing, body, selected = asyncio.run(scenario())
    assert missing == 400
    assert body == {"status": "ok", "server": "http://10.0.0.9:9001"}
    assert selected is None


def test_preflight(fake_server):
    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            resp = await client.options("/player/control")
            return resp.status, resp.headers["Access-Control-Allow-Methods"]

    assert asyncio.run(scenario()) == (200, "GET, POST, OPTIONS")


def test_websocket_feed(fake_server):
    async def scenario():
        async with bridged(fake_server) as (bridge, client):
            ws = await client.ws_connect("/ws")
            snapshot = await ws.receive_json(timeout=2)

            bridge.controller.show_briefly("Hello")
            event = await ws.receive_json(timeout=2)

            bridge.detach()
            bridge.controller.show_briefly("Not forwarded")
            bridge.attach()
            bridge.controller.show_briefly("Again")
            after = await ws.receive_json(timeout=2)
            await ws.close()
            return snapshot, event, after

    snapshot, event, after = asyncio.run(scenario())
    assert snapshot["type"] == "snapshot"
    assert snapshot["data"]["selected"] is None
    assert event == {"type": "showbriefly", "data": {"text": "Hello"}}
    assert after == {"type": "showbriefly", "data": {"text": "Again"}}
