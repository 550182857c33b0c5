from __future__ import annotations

from marketdash.core.config import Settings
from marketdash.infrastructure.broadcaster import NotificationBroadcaster
from marketdash.infrastructure.persistence_clients import MongoClientManager, RedisClientManager
from marketdash.repositories.notification_repository import NotificationRepository
from marketdash.repositories.order_repository import OrderRepository
from marketdash.repositories.store_repository import StoreRepository
from marketdash.services.inbox_service import InboxService
from marketdash.services.live_orders.highlights import HighlightTracker
from marketdash.services.live_orders.poller import OrderPoller
from marketdash.services.live_orders.store_names import StoreNameCache
from marketdash.services.notification_service import NotificationService
from marketdash.services.order_service import OrderService


class Container:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self.mongo_manager = MongoClientManager(
            uri=self.settings.mongodb_uri,
            enabled=self.settings.enable_external_services,
            request_timeout_seconds=self.settings.order_fetch_timeout_seconds,
        )
        self.redis_manager = RedisClientManager(
            url=self.settings.redis_url,
            enabled=self.settings.enable_external_services,
        )
        self.notification_broadcaster = NotificationBroadcaster()

        self.order_repository = OrderRepository(
            mongo_manager=self.mongo_manager,
        )
        self.store_repository = StoreRepository(
            mongo_manager=self.mongo_manager,
            redis_manager=self.redis_manager,
            cache_ttl_seconds=self.settings.store_cache_ttl_seconds,
        )
        self.notification_repository = NotificationRepository(
            mongo_manager=self.mongo_manager,
        )

        self.notification_service = NotificationService(
            notification_repository=self.notification_repository,
            broadcaster=self.notification_broadcaster,
        )
        self.inbox_service = InboxService(
            notification_repository=self.notification_repository,
            broadcaster=self.notification_broadcaster,
            feed_limit=self.settings.notification_feed_limit,
        )
        self.store_names = StoreNameCache(store_repository=self.store_repository)
        self.highlights = HighlightTracker()
        self.order_poller = OrderPoller(
            order_repository=self.order_repository,
            store_names=self.store_names,
            highlights=self.highlights,
            notification_service=self.notification_service,
            interval_seconds=self.settings.order_poll_interval_seconds,
            fetch_timeout_seconds=self.settings.order_fetch_timeout_seconds,
        )
        self.order_service = OrderService(
            order_repository=self.order_repository,
            notification_service=self.notification_service,
            order_poller=self.order_poller,
        )

    async def start(self) -> None:
        self.mongo_manager.connect()
        self.redis_manager.connect()
        if self.settings.enable_order_poller:
            await self.order_poller.start()

    async def stop(self) -> None:
        await self.order_poller.stop()
        self.mongo_manager.disconnect()
        self.redis_manager.disconnect()


container = Container()

settings = container.settings
mongo_manager = container.mongo_manager
redis_manager = container.redis_manager
notification_broadcaster = container.notification_broadcaster
order_repository = container.order_repository
store_repository = container.store_repository
notification_repository = container.notification_repository
notification_service = container.notification_service
inbox_service = container.inbox_service
store_names = container.store_names
highlights = container.highlights
order_poller = container.order_poller
order_service = container.order_service
