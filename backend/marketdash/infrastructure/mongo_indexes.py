from __future__ import annotations

from typing import Any, Iterable

from pymongo import ASCENDING, DESCENDING

from marketdash.infrastructure.logging import get_logger
from marketdash.infrastructure.persistence_clients import DEFAULT_DATABASE

logger = get_logger(__name__)

IndexSpec = tuple[list[tuple[str, int]], dict[str, Any]]


MONGO_INDEX_SPECS: dict[str, list[IndexSpec]] = {
    "orders": [
        ([("id", ASCENDING)], {"name": "orders_id_unique", "unique": True}),
        ([("createdAt", DESCENDING)], {"name": "orders_created_desc"}),
        ([("storeId", ASCENDING), ("createdAt", DESCENDING)], {"name": "orders_store_created_desc"}),
    ],
    "stores": [
        ([("id", ASCENDING)], {"name": "stores_id_unique", "unique": True}),
    ],
    "notifications": [
        ([("id", ASCENDING)], {"name": "notifications_id_unique", "unique": True}),
        ([("createdAt", DESCENDING)], {"name": "notifications_created_desc"}),
        ([("read", ASCENDING), ("createdAt", DESCENDING)], {"name": "notifications_read_created_desc"}),
        ([("orderId", ASCENDING), ("type", ASCENDING)], {"name": "notifications_order_type_asc"}),
    ],
}


def ensure_mongo_indexes(
    *,
    client: Any,
    database_name: str | None = None,
    collections: Iterable[str] | None = None,
) -> dict[str, list[str]]:
    """Creates the indexes the poll query, store lookup and inbox feed rely on.

    ``create_index`` is idempotent, so this is safe to run on every deploy.
    """
    database = client[database_name] if database_name else client.get_default_database(DEFAULT_DATABASE)
    wanted = set(collections) if collections is not None else set(MONGO_INDEX_SPECS)
    unknown = wanted - set(MONGO_INDEX_SPECS)
    if unknown:
        raise ValueError(f"No index specs for: {', '.join(sorted(unknown))}")

    ensured: dict[str, list[str]] = {}
    for name in sorted(wanted):
        target = database[name]
        ensured[name] = [str(target.create_index(keys, **options)) for keys, options in MONGO_INDEX_SPECS[name]]
        logger.info("mongo_indexes_ensured", collection=name, indexes=ensured[name])
    return ensured
