from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from marketdash.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DATABASE = "marketplace"


@dataclass
class _ClientManager:
    """Owns one optional driver client.

    A manager that is disabled or failed to connect exposes ``client = None``;
    repositories turn that into a domain failure instead of empty results.
    """

    target: str
    enabled: bool
    _client: Any = None
    _last_error: str | None = None

    kind = "client"

    def connect(self) -> None:
        if not self.enabled:
            return
        if "localhost" in self.target or "127.0.0.1" in self.target:
            logger.warning(f"{self.kind}_localhost_target", target=self.target)
        try:
            self._client = self._open()
            self._last_error = None
            logger.info(f"{self.kind}_connected", target=self.target)
        except Exception as exc:
            self._client = None
            self._last_error = str(exc)
            logger.warning(f"{self.kind}_connect_failed", target=self.target, error=str(exc))

    def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        close = getattr(client, "close", None)
        if callable(close):
            close()

    def _open(self) -> Any:
        raise NotImplementedError

    @property
    def status(self) -> str:
        if not self.enabled:
            return "disabled"
        return "unavailable" if self._client is None else "connected"

    @property
    def error(self) -> str | None:
        return self._last_error

    @property
    def client(self) -> Any:
        return self._client


class MongoClientManager(_ClientManager):
    kind = "mongo"

    def __init__(self, *, uri: str, enabled: bool, request_timeout_seconds: float | None = None) -> None:
        super().__init__(target=uri, enabled=enabled)
        self.request_timeout_seconds = request_timeout_seconds

    @property
    def uri(self) -> str:
        return self.target

    def client_options(self) -> dict[str, Any]:
        """Driver options; ``timeoutMS`` caps every operation so abandoned fetches do not linger."""
        options: dict[str, Any] = {"serverSelectionTimeoutMS": 2000}
        if self.request_timeout_seconds:
            options["timeoutMS"] = int(self.request_timeout_seconds * 1000)
        return options

    def _open(self) -> Any:
        from pymongo import MongoClient

        client = MongoClient(self.uri, **self.client_options())
        try:
            client.admin.command("ping")
        except Exception:
            client.close()
            raise
        return client

    def database(self) -> Any | None:
        """Database named in the URI, falling back to ``marketplace``."""
        if self._client is None:
            return None
        return self._client.get_default_database(DEFAULT_DATABASE)


class RedisClientManager(_ClientManager):
    kind = "redis"

    def __init__(self, *, url: str, enabled: bool) -> None:
        super().__init__(target=url, enabled=enabled)

    @property
    def url(self) -> str:
        return self.target

    def _open(self) -> Any:
        import redis

        client = redis.from_url(self.url, socket_timeout=2)
        client.ping()
        return client
