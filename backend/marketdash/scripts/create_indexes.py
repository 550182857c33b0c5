from __future__ import annotations

import argparse
import json
import time
from typing import Any

from marketdash.core.config import Settings
from marketdash.infrastructure.logging import get_logger, setup_logging
from marketdash.infrastructure.mongo_indexes import MONGO_INDEX_SPECS, ensure_mongo_indexes
from marketdash.infrastructure.persistence_clients import MongoClientManager

logger = get_logger(__name__)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create the indexes the order poller and notification inbox query by.")
    parser.add_argument("--mongo-uri", default=None, help="MongoDB URI (defaults to MONGODB_URI).")
    parser.add_argument("--database", default=None, help="Database name; defaults to the one in the URI.")
    parser.add_argument("--attempts", type=int, default=10, help="Connection attempts before giving up.")
    parser.add_argument("--wait", type=float, default=2.0, help="Seconds between connection attempts.")
    parser.add_argument("--collection", action="append", default=None, help="Limit to one collection (repeatable).")
    parser.add_argument("--list", action="store_true", help="Print the index plan without connecting.")
    return parser


def index_plan() -> dict[str, list[dict[str, Any]]]:
    return {
        collection: [{"name": options["name"], "keys": keys, "unique": bool(options.get("unique"))} for keys, options in specs]
        for collection, specs in MONGO_INDEX_SPECS.items()
    }


def _connect(uri: str, *, attempts: int, wait: float) -> MongoClientManager:
    manager = MongoClientManager(uri=uri, enabled=True)
    for attempt in range(1, max(1, attempts) + 1):
        manager.connect()
        if manager.client is not None:
            return manager
        logger.info("mongo_not_ready", attempt=attempt, attempts=attempts, error=manager.error)
        if attempt < attempts:
            time.sleep(max(0.0, wait))
    raise SystemExit(f"MongoDB unreachable after {attempts} attempts: {manager.error}")


def run(
    *,
    mongo_uri: str | None,
    database: str | None,
    attempts: int,
    wait: float,
    collections: list[str] | None = None,
) -> dict[str, Any]:
    uri = mongo_uri or Settings.from_env().mongodb_uri
    manager = _connect(uri, attempts=attempts, wait=wait)
    try:
        created = ensure_mongo_indexes(client=manager.client, database_name=database, collections=collections)
    finally:
        manager.disconnect()
    logger.info("mongo_index_run_finished", collections=sorted(created))
    return {"database": database or "from-uri", "indexes": created}


def main() -> int:
    args = _parser().parse_args()
    setup_logging()
    if args.list:
        print(json.dumps(index_plan(), indent=2))
        return 0
    summary = run(
        mongo_uri=args.mongo_uri,
        database=args.database,
        attempts=args.attempts,
        wait=args.wait,
        collections=args.collection,
    )
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
