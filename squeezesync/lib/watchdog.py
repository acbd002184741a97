"""Systemd notify heartbeat for the squeezesync service.

Sends READY=1 once, then WATCHDOG=1 plus a one-line STATUS= describing the
selected player at regular intervals.  Silently no-ops when NOTIFY_SOCKET is
unset (macOS / dev mode).

Usage:
    from squeezesync.lib.watchdog import watchdog_loop
    asyncio.create_task(watchdog_loop(lambda: controller.describe()))
"""

import asyncio
import logging
import os
import socket
from typing import Callable

logger = logging.getLogger(__name__)


def sd_notify(msg: str) -> bool:
    """Send *msg* to the systemd notify socket.  False when there is none."""
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    except OSError as e:
        logger.debug("sd_notify failed: %s", e)
        return False
    finally:
        sock.close()
    return True


async def watchdog_loop(status: Callable[[], str] | None = None, interval: int = 20):
    """Heartbeat every *interval* seconds.  Call as asyncio.create_task().

    *status* is polled each beat; a changed line is forwarded as STATUS=.
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%ds)", interval)
    last = None
    while True:
        msg = "WATCHDOG=1"
        line = status() if status else None
        if line and line != last:
            msg += f"\nSTATUS={line}"
            last = line
        sd_notify(msg)
        await asyncio.sleep(interval)
