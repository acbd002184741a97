# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Request gateway for squeezesync <-> media server communication.

Every remote call goes through one JSON-RPC endpoint.  The envelope is

    {"id": 1, "method": "slim.request", "params": [scope, command]}

where *scope* is "" for server-wide commands or a player id for player
commands, and *command* is a list starting with the command name:

    ["status", "-", 1, "tags:uB"]
    ["playlist", "move", 5, 2]
    ["serverstatus", 0, 999]

A plain string instead of a command list is a raw locator fetched with GET.

The gateway has no business logic: it sends, decodes, and returns None on
any transport failure.  There is no retry; the pollers simply try again on
their next cycle.

Usage:
    gateway = Gateway()
    await gateway.start()
    body = await gateway.request(["", ["serverstatus", 0, 999]])
    gateway.set_server("10.0.0.5")
    await gateway.stop()
"""

import asyncio
import logging

import aiohttp

from .config import DEFAULT_REQUEST_TIMEOUT, DEFAULT_SERVER_PORT, cfg

logger = logging.getLogger(__name__)

JSONRPC_PATH = "/jsonrpc.js"
JSONRPC_METHOD = "slim.request"


def envelope(params: list) -> dict:
    """Wrap ``[scope, command]`` in the JSON-RPC request envelope."""
    return {"id": 1, "method": JSONRPC_METHOD, "params": params}


class Gateway:
    """Sends JSON-RPC and raw-locator requests to the media server."""

    def __init__(self, host: str | None = None, port: int | None = None,
                 session: aiohttp.ClientSession | None = None):
        self.host = host or cfg("server", "host", default="localhost")
        self.port = int(port or cfg("server", "port", default=DEFAULT_SERVER_PORT))
        self.timeout_ms = cfg("request", "timeout", default=DEFAULT_REQUEST_TIMEOUT)

        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        """The single resolver every locator is built from."""
        return f"http://{self.host}:{self.port}"

    def set_server(self, host: str, port: int | None = None):
        """Repoint all further requests at another server."""
        self.host = host
        if port:
            self.port = int(port)
        logger.info("Gateway now targets %s", self.base_url)

    def resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return self.base_url + ("" if url.startswith("/") else "/") + url

    async def start(self):
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=10,
                ttl_dns_cache=300,
                keepalive_timeout=60,
                force_close=False,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": "squeezesync/1.0"},
            )
            self._owns_session = True
        logger.info("Gateway ready -> %s", self.base_url)

    async def stop(self):
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None
        logger.info("Gateway stopped")

    async def request(self, params: list | str | None = None, *, url: str | None = None,
                      method: str | None = None, timeout: float | None = None) -> dict | None:
        """Issue one request, return the decoded JSON body or None on failure.

        ``params`` as a string is shorthand for ``url=params, method="GET"``.
        Bodies that are not JSON (e.g. HTML fragments) come back as ``{}``.
        ``timeout`` is in milliseconds.
        """
        if isinstance(params, str):
            url, params, method = params, None, method or "GET"

        if not self._session:
            logger.warning("Gateway session not initialized")
            return None

        target = self.resolve(url or JSONRPC_PATH)
        kwargs = {"timeout": aiohttp.ClientTimeout(total=(timeout or self.timeout_ms) / 1000)}
        if url is None:
            kwargs["json"] = envelope(params)

        try:
            async with self._session.request(
                method or ("GET" if url else "POST"),
                target,
                raise_for_status=True,
                **kwargs,
            ) as resp:
                logger.debug("%s %s (HTTP %d)", resp.method, target, resp.status)
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    return {}
                return body if isinstance(body, dict) else {}
        except asyncio.TimeoutError:
            logger.warning("Request timeout: %s", _describe(params, target))
        except aiohttp.ClientError as e:
            logger.warning("Request failed (%s): %s", _describe(params, target), e)
        return None


def _describe(params, target: str) -> str:
    if params and len(params) > 1 and params[1]:
        return str(params[1][0])
    return target
