"""Tests for the systemd notify heartbeat."""

import asyncio
import itertools
import socket

import pytest

from squeezesync.lib.watchdog import sd_notify, watchdog_loop


@pytest.fixture
def notify_socket(tmp_path, monkeypatch):
    path = str(tmp_path / "notify")
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    sock.bind(path)
    sock.settimeout(1)
    monkeypatch.setenv("NOTIFY_SOCKET", path)
    yield sock
    sock.close()


def test_no_socket_is_a_no_op(monkeypatch):
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    assert sd_notify("READY=1") is False


def test_sd_notify(notify_socket):
    assert sd_notify("READY=1") is True
    assert notify_socket.recv(256) == b"READY=1"


def test_status_sent_only_when_it_changes(notify_socket):
    lines = itertools.chain(["player=a", "player=a"], itertools.repeat("player=b"))

    async def scenario():
        task = asyncio.create_task(watchdog_loop(lambda: next(lines), interval=0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(scenario())
    messages = [notify_socket.recv(256) for _ in range(4)]
    assert messages == [
        b"READY=1",
        b"WATCHDOG=1\nSTATUS=player=a",
        b"WATCHDOG=1",
        b"WATCHDOG=1\nSTATUS=player=b",
    ]
