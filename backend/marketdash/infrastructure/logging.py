import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

# Driver chatter would otherwise show up on every poll cycle.
_QUIET_LOGGERS = ("pymongo", "redis", "httpx", "asyncio")


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _renderer(json_logs: bool | None) -> list[Processor]:
    if json_logs is None:
        json_logs = not sys.stderr.isatty()
    if json_logs:
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(level: int | str = logging.INFO, *, json_logs: bool | None = None) -> None:
    """Configures structlog on top of stdlib logging.

    Poller, inbox and repository events are emitted as snake_case event names
    with keyword context, rendered as JSON unless attached to a terminal.
    """
    resolved = _resolve_level(level)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=resolved)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    structlog.configure(
        processors=shared_processors + _renderer(json_logs),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)
