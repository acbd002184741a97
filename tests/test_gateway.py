"""Tests for the request gateway against a local fake server."""

import asyncio

from aiohttp.test_utils import TestServer

from squeezesync.lib import config
from squeezesync.lib.gateway import Gateway, envelope

from conftest import serving


def test_envelope():
    assert envelope(["", ["serverstatus", 0, 999]]) == {
        "id": 1, "method": "slim.request", "params": ["", ["serverstatus", 0, 999]],
    }


def test_defaults_from_config(monkeypatch):
    monkeypatch.setattr(config, "_config", {"server": {"host": "media.local", "port": 9002},
                                            "request": {"timeout": 2500}})
    gateway = Gateway()
    assert gateway.base_url == "http://media.local:9002"
    assert gateway.timeout_ms == 2500


def test_set_server_and_resolve():
    gateway = Gateway("10.0.0.5")
    assert gateway.base_url == "http://10.0.0.5:9000"
    gateway.set_server("10.0.0.6", 9001)
    assert gateway.resolve("/jsonrpc.js") == "http://10.0.0.6:9001/jsonrpc.js"
    assert gateway.resolve("status.html") == "http://10.0.0.6:9001/status.html"
    assert gateway.resolve("http://elsewhere/x") == "http://elsewhere/x"
    gateway.set_server("10.0.0.7")
    assert gateway.base_url == "http://10.0.0.7:9001"


def test_request_without_session_returns_none():
    assert asyncio.run(Gateway("127.0.0.1").request(["", ["serverstatus"]])) is None


def test_jsonrpc_request(fake_server):
    async def scenario():
        async with serving(fake_server) as gateway:
            return await gateway.request(["00:04:20:aa:aa:aa", ["status", "-", 1, "tags:uB"]])

    body = asyncio.run(scenario())
    assert body["result"]["mode"] == "play"
    assert body["params"] == ["00:04:20:aa:aa:aa", ["status", "-", 1, "tags:uB"]]
    assert fake_server.requests == [("00:04:20:aa:aa:aa", ["status", "-", 1, "tags:uB"])]


def test_raw_locator_html_decodes_to_empty(fake_server):
    async def scenario():
        async with serving(fake_server) as gateway:
            return await gateway.request("/status_header.html")

    assert asyncio.run(scenario()) == {}


def test_raw_locator_json(fake_server):
    async def scenario():
        async with serving(fake_server) as gateway:
            return await gateway.request(url="info.json")

    assert asyncio.run(scenario()) == {"version": "8.3.1"}


def test_http_error_returns_none(fake_server):
    fake_server.fail = True

    async def scenario():
        async with serving(fake_server) as gateway:
            return await gateway.request(["", ["serverstatus", 0, 999]])

    assert asyncio.run(scenario()) is None


def test_timeout_returns_none(fake_server):
    fake_server.delay = 0.5

    async def scenario():
        async with serving(fake_server) as gateway:
            return await gateway.request(["", ["serverstatus", 0, 999]], timeout=50)

    assert asyncio.run(scenario()) is None


def test_unreachable_server_returns_none(fake_server):
    async def scenario():
        server = TestServer(fake_server.make_app())
        await server.start_server()
        port = server.port
        await server.close()

        gateway = Gateway("127.0.0.1", port)
        await gateway.start()
        try:
            return await gateway.request(["", ["serverstatus", 0, 999]])
        finally:
            await gateway.stop()

    assert asyncio.run(scenario()) is None
