from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import replace

from marketdash.container import Container
from marketdash.core.config import Settings
from marketdash.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the live order poller headless and print inbox events.")
    parser.add_argument("--interval", type=float, default=None, help="Poll interval in seconds (defaults to ORDER_POLL_INTERVAL_SECONDS).")
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after this many seconds (0 runs until interrupted).")
    return parser


async def watch(*, settings: Settings, duration: float) -> dict[str, object]:
    container = Container(settings=settings)
    await container.start()
    try:
        async with container.notification_broadcaster.subscribe() as queue:

            async def printer() -> None:
                while True:
                    event = await queue.get()
                    print(json.dumps(event, default=str))

            printer_task = asyncio.create_task(printer())
            try:
                if duration > 0:
                    await asyncio.sleep(duration)
                else:
                    await asyncio.Event().wait()
            finally:
                printer_task.cancel()
    finally:
        await container.stop()
    return container.order_poller.status()


def main() -> int:
    args = _parser().parse_args()
    settings = replace(Settings.from_env(), enable_external_services=True, enable_order_poller=True)
    if args.interval is not None:
        settings = replace(settings, order_poll_interval_seconds=max(0.1, args.interval))
    setup_logging(settings.log_level)
    try:
        status = asyncio.run(watch(settings=settings, duration=args.duration))
    except KeyboardInterrupt:
        logger.info("order_watch_interrupted")
        return 130
    print(json.dumps(status, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
