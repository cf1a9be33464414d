"""Service wiring and headless entry point (scheduler + evaluator)."""
import asyncio
import logging
import signal
import sys
from typing import Optional

from pricewatch.core.config import Settings, settings as default_settings
from pricewatch.core.database import create_engine, create_session_factory, init_db
from pricewatch.core.redis import create_redis
from pricewatch.messaging import EventBus
from pricewatch.providers import PriceProvider
from pricewatch.providers.metals import MetalsLiveProvider
from pricewatch.scheduler import JobScheduler, create_jobstore
from pricewatch.services import (
    AlertEvaluator,
    AlertRegistry,
    AlertRepository,
    InMemoryAlertRepository,
    QuoteFetcher,
    QuoteStore,
    SqlAlertRepository
)

logger = logging.getLogger(__name__)

FETCH_PRICE_JOB = "fetch-price"


class PriceWatchService:
    """Owns every component and their start/stop order."""

    def __init__(
        self,
        settings: Settings,
        provider: PriceProvider,
        store: QuoteStore,
        bus: EventBus,
        repository: AlertRepository,
        scheduler: JobScheduler,
        engine=None
    ):
        self.settings = settings
        self.provider = provider
        self.store = store
        self.bus = bus
        self.repository = repository
        self.scheduler = scheduler
        self.engine = engine

        self.fetcher = QuoteFetcher(provider, store, bus, cache_ttl=settings.quote_cache_ttl_seconds)
        self.registry = AlertRegistry(repository)
        self.evaluator = AlertEvaluator(repository, bus)
        self._started = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PriceWatchService":
        """Build the production component graph."""
        settings = settings or default_settings

        engine = None
        if settings.alert_store == "sql":
            engine = create_engine(settings.database_url)
            repository: AlertRepository = SqlAlertRepository(create_session_factory(engine))
        else:
            repository = InMemoryAlertRepository()

        return cls(
            settings=settings,
            provider=MetalsLiveProvider(
                url=settings.upstream_price_url,
                timeout=settings.fetch_timeout_seconds,
                price_field=settings.upstream_price_field,
                currency=settings.quote_currency,
                source=settings.upstream_source
            ),
            store=QuoteStore(create_redis(settings.redis_url), key=settings.quote_cache_key),
            bus=EventBus(settings.broker_url),
            repository=repository,
            scheduler=JobScheduler(create_jobstore(settings.scheduler_jobstore_url)),
            engine=engine
        )

    async def start(self) -> None:
        """
        Start consuming and scheduling.

        The evaluator subscribes before the first fetch so the startup price
        is evaluated too.
        """
        logger.info("=" * 60)
        logger.info("Starting price watch service...")
        logger.info(f"Log level: {self.settings.log_level}")
        logger.info(f"Fetch interval: every {self.settings.fetch_interval_seconds} seconds")
        logger.info(f"Quote cache TTL: {self.settings.quote_cache_ttl_seconds} seconds")
        logger.info(f"Dedup window: {self.settings.dedup_window_seconds} seconds")
        logger.info("=" * 60)

        if self.engine is not None:
            await init_db(self.engine)

        await self.bus.connect()
        await self.evaluator.start()

        self.scheduler.schedule(
            FETCH_PRICE_JOB,
            self.settings.fetch_interval_seconds,
            self.fetcher.fetch_and_cache
        )
        self.scheduler.start()
        self._started = True
        logger.info("Price watch service started")

    async def stop(self) -> None:
        """Graceful shutdown: timers first, then consumers, then connections."""
        if not self._started:
            return
        self._started = False

        logger.info("Stopping price watch service...")
        await self.scheduler.shutdown()
        await self.bus.close()
        await self.provider.close()
        await self.store.redis.aclose()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("Price watch service stopped")

    async def run(self) -> None:
        """Run until SIGINT/SIGTERM."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Signal handlers are unavailable on some platforms (Windows)
                logger.debug(f"Cannot install handler for {sig.name}")

        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()


async def main():
    """Main entry point for the headless service."""
    logging.basicConfig(
        level=getattr(logging, default_settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    service = PriceWatchService.from_settings()
    await service.run()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
