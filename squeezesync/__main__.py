#!/usr/bin/env python3
"""
squeezesync service (squeezesync)

Keeps a Controller polling one media server and serves its events to
browser UIs through the WebSocket bridge (port 8780 by default).

    python -m squeezesync --server 192.168.0.10 --player 00:04:20:12:34:56
"""

import argparse
import asyncio
import logging
import signal

from .bridge import Bridge
from .controller import Controller
from .lib.gateway import Gateway
from .lib.watchdog import sd_notify, watchdog_loop

logger = logging.getLogger("squeezesync")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="squeezesync", description="Poll a media server and bridge its state to UIs")
    parser.add_argument("--server", help="server host (default: config server.host)")
    parser.add_argument("--port", type=int, help="server port (default: 9000)")
    parser.add_argument("--player", help="player id to select when available")
    parser.add_argument("--bridge-port", type=int, help="WebSocket bridge port")
    parser.add_argument("--no-bridge", action="store_true", help="poll only, no bridge")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    return parser.parse_args(argv)


async def run(args):
    controller = Controller(Gateway(args.server, args.port), default_player=args.player)
    bridge = None if args.no_bridge else Bridge(controller, args.bridge_port)

    await controller.start()
    if bridge:
        await bridge.start()
    watchdog = asyncio.create_task(watchdog_loop(controller.describe))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down")
        sd_notify("STOPPING=1")
        watchdog.cancel()
        try:
            await watchdog
        except asyncio.CancelledError:
            pass
        if bridge:
            await bridge.stop()
        await controller.stop()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
