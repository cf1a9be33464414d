"""Alert evaluator: threshold checks and trigger dedup on price updates."""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pricewatch.core.config import settings
from pricewatch.messaging import ALERT_TRIGGERED, ALERTS_TOPIC, PRICE_UPDATED, PRICES_TOPIC, EventBus, Subscription
from pricewatch.models.alert import Alert, AlertStatus, TriggerEvent
from pricewatch.models.quote import Quote
from pricewatch.services.alert_repository import AlertRepository
from pricewatch.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


def within_dedup_window(last_triggered_at: Optional[datetime], now: datetime, window: timedelta) -> bool:
    """True if the alert fired less than `window` ago."""
    if last_triggered_at is None:
        return False
    return now - last_triggered_at < window


class AlertEvaluator:
    """
    Consumes `price.updated` and publishes `alert.triggered`.

    Assumes a single evaluator instance per repository; there is no locking
    between instances.
    """

    def __init__(
        self,
        repository: AlertRepository,
        bus: EventBus,
        dedup_window: Optional[timedelta] = None,
        clock: Clock = utc_now
    ):
        self.repository = repository
        self.bus = bus
        self.dedup_window = (
            dedup_window if dedup_window is not None
            else timedelta(seconds=settings.dedup_window_seconds)
        )
        self._clock = clock
        self._latest_observed_at: Optional[datetime] = None

    async def start(self) -> Subscription:
        """Subscribe to price updates."""
        subscription = await self.bus.subscribe(PRICES_TOPIC, PRICE_UPDATED, self.handle_price_update)
        logger.info("Alert listeners initialized successfully")
        return subscription

    async def handle_price_update(self, payload: Dict[str, Any]) -> List[TriggerEvent]:
        """
        Evaluate alerts for one `price.updated` event.

        Malformed payloads are dropped. Events observed before the newest one
        already processed are skipped: arrival order is not recency order
        across broker reconnects.
        """
        try:
            quote = Quote.from_payload(payload)
        except ValueError as e:
            logger.error(f"Discarding malformed price update {payload!r}: {e}")
            return []

        if self._latest_observed_at is not None and quote.observed_at < self._latest_observed_at:
            logger.warning(
                f"Skipping stale price update observed at {quote.observed_at.isoformat()} "
                f"(latest {self._latest_observed_at.isoformat()})"
            )
            return []

        logger.info(f"Price updated event received: {quote.price} {quote.currency}")
        triggered = await self.evaluate(quote.price)
        self._latest_observed_at = quote.observed_at
        return triggered

    async def evaluate(self, current_price: Decimal) -> List[TriggerEvent]:
        """
        Check every active alert against a price.

        A failure on one alert is logged and does not stop the others.

        Returns:
            Trigger events published for this price
        """
        now = self._clock()
        alerts = await self.repository.list_by_status(AlertStatus.ACTIVE)
        logger.debug(f"Evaluating {len(alerts)} active alerts at {current_price}")

        triggered: List[TriggerEvent] = []
        for alert in alerts:
            try:
                event = await self._evaluate_alert(alert, current_price, now)
            except Exception as e:
                logger.error(f"Error evaluating alert {alert.id}: {e}", exc_info=True)
                continue
            if event is not None:
                triggered.append(event)

        if triggered:
            logger.info(f"{len(triggered)} alerts triggered at {current_price}")
        return triggered

    async def _evaluate_alert(self, alert: Alert, current_price: Decimal, now: datetime) -> Optional[TriggerEvent]:
        if not alert.is_triggered_by(current_price):
            return None

        if within_dedup_window(alert.last_triggered_at, now, self.dedup_window):
            logger.debug(f"Alert {alert.id} within dedup window, last triggered {alert.last_triggered_at}")
            return None

        # The scanned copy may be stale: the API can pause or delete alerts while we yield
        marked = await self.repository.mark_triggered(alert.id, now)
        if marked is None:
            logger.info(f"Alert {alert.id} no longer active, not triggering")
            return None

        event = TriggerEvent(
            alert_id=alert.id,
            owner_id=marked.owner_id,
            current_price=current_price,
            min_price=marked.min_price,
            max_price=marked.max_price,
            triggered_at=now
        )
        await self.bus.publish(ALERTS_TOPIC, ALERT_TRIGGERED, event.to_payload())
        logger.info(f"Alert triggered: {alert.id} for {alert.owner_id} at {current_price}")
        return event
