"""Topic-based publish/subscribe over Redis Streams.

Each topic is a stream (``events:<topic>``). Every message carries a routing
key, and subscribers bind with an AMQP-style pattern: ``*`` matches exactly one
dot-separated word, ``#`` matches zero or more.

ARCHITECTURE:
- One auto-named consumer group per subscription acts as an exclusive queue
- XACK only after the handler returns, so a failing handler leaves the
  message pending and it is redelivered (at-least-once, duplicates possible)
- Lost connections are re-established through a BackoffPolicy; publishers and
  subscribers never see the reconnect
"""
import asyncio
import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from pricewatch.core.config import settings
from pricewatch.core.exceptions import BrokerUnavailable
from pricewatch.core.redis import create_redis, mask_redis_url
from pricewatch.messaging.backoff import BackoffPolicy

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]

# Errors that mean the connection is gone (as opposed to a rejected command)
CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)

# Sleep between polls when reads are non-blocking
IDLE_POLL_SECONDS = 0.1


def topic_matches(pattern: str, routing_key: str) -> bool:
    """
    Match a routing key against an AMQP topic pattern.

    Examples:
        price.* matches price.updated but not price.updated.gold
        price.# matches price, price.updated and price.updated.gold
    """
    return _match_words(pattern.split("."), routing_key.split("."))


def _match_words(pattern: List[str], words: List[str]) -> bool:
    if not pattern:
        return not words

    head, rest = pattern[0], pattern[1:]
    if head == "#":
        # Zero or more words
        return any(_match_words(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match_words(rest, words[1:])
    return False


class EventBus:
    """Lazily connected, self-healing Redis Streams event bus."""

    def __init__(
        self,
        url: Optional[str] = None,
        backoff: Optional[BackoffPolicy] = None,
        client_factory: Optional[Callable[[], redis.Redis]] = None,
        stream_maxlen: Optional[int] = None,
        publish_timeout: Optional[float] = None,
        redelivery_delay: Optional[float] = None,
        block_ms: Optional[int] = 1000,
        batch_size: int = 100
    ):
        self.url = url or settings.broker_url
        self.backoff = backoff or BackoffPolicy(
            delay=settings.broker_reconnect_delay_seconds,
            max_attempts=settings.broker_max_reconnect_attempts,
            jitter=settings.broker_reconnect_jitter_seconds
        )
        self._client_factory = client_factory or self._default_client
        self.stream_maxlen = stream_maxlen or settings.broker_stream_maxlen
        self.publish_timeout = publish_timeout or settings.broker_publish_timeout_seconds
        self.redelivery_delay = (
            redelivery_delay if redelivery_delay is not None
            else settings.broker_redelivery_delay_seconds
        )
        self.block_ms = block_ms
        self.batch_size = batch_size

        self._client: Optional[redis.Redis] = None
        self._lock = asyncio.Lock()
        self._subscriptions: List["Subscription"] = []

    def _default_client(self) -> redis.Redis:
        return create_redis(
            self.url,
            socket_timeout=settings.broker_socket_timeout_seconds,
            socket_connect_timeout=settings.broker_socket_timeout_seconds
        )

    @staticmethod
    def stream_key(topic: str) -> str:
        """Redis stream holding a topic's messages."""
        return f"events:{topic}"

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> redis.Redis:
        """Get the broker connection, establishing it on first use."""
        # Fast path: already connected
        if self._client is not None:
            return self._client

        async with self._lock:
            if self._client is None:
                self._client = await self._connect_with_backoff()
        return self._client

    async def _connect_with_backoff(self) -> redis.Redis:
        """Open a connection, retrying according to the backoff policy."""
        try:
            async for attempt in self.backoff.retrying(CONNECTION_ERRORS):
                with attempt:
                    client = self._client_factory()
                    try:
                        await client.ping()
                    except CONNECTION_ERRORS:
                        await self._close_quietly(client)
                        raise
        except CONNECTION_ERRORS as e:
            logger.error(f"Event broker unreachable at {mask_redis_url(self.url)}: {e}")
            raise BrokerUnavailable(f"Event broker unreachable: {e}") from e

        logger.info(f"Connected to event broker at {mask_redis_url(self.url)}")
        return client

    async def reset_connection(self, client: Optional[redis.Redis] = None) -> None:
        """
        Drop a broken connection so the next call reconnects.

        Args:
            client: The connection that failed; ignored if already replaced
        """
        async with self._lock:
            if self._client is None or (client is not None and client is not self._client):
                return
            stale, self._client = self._client, None
        logger.warning("Event broker connection lost, will reconnect")
        await self._close_quietly(stale)

    @staticmethod
    async def _close_quietly(client: redis.Redis) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.debug(f"Error closing broker connection: {e}")

    async def publish(self, topic: str, routing_key: str, payload: Dict[str, Any]) -> str:
        """
        Publish a message to a topic.

        Reconnects transparently; gives up with BrokerUnavailable once
        publish_timeout elapses.

        Returns:
            Stream message id
        """
        try:
            return await asyncio.wait_for(
                self._publish(topic, routing_key, payload),
                timeout=self.publish_timeout
            )
        except asyncio.TimeoutError as e:
            raise BrokerUnavailable(
                f"Could not publish {routing_key} within {self.publish_timeout}s"
            ) from e

    async def _publish(self, topic: str, routing_key: str, payload: Dict[str, Any]) -> str:
        body = json.dumps(payload)

        while True:
            client = await self.connect()
            try:
                message_id = await client.xadd(
                    self.stream_key(topic),
                    {"routing_key": routing_key, "payload": body},
                    maxlen=self.stream_maxlen,
                    approximate=True
                )
            except CONNECTION_ERRORS as e:
                logger.warning(f"Publish of {routing_key} interrupted: {e}")
                await self.reset_connection(client)
                continue

            logger.info(f"Event published: {routing_key} ({message_id})")
            logger.debug(f"Event payload: {body}")
            return message_id

    async def subscribe(self, topic: str, routing_key_pattern: str, handler: Handler) -> "Subscription":
        """
        Bind a handler to a topic pattern and start consuming.

        Only messages published after the subscription is created are
        delivered.
        """
        subscription = Subscription(self, topic, routing_key_pattern, handler)
        await subscription.declare()
        subscription.start()
        self._subscriptions.append(subscription)
        logger.info(f"Subscribed to {topic}/{routing_key_pattern} (group: {subscription.group})")
        return subscription

    async def close(self) -> None:
        """Stop all subscriptions and close the connection."""
        for subscription in self._subscriptions:
            await subscription.close()
        self._subscriptions.clear()

        async with self._lock:
            client, self._client = self._client, None
        if client is not None:
            await self._close_quietly(client)
            logger.info("Event broker connection closed")


class Subscription:
    """Exclusive consumer group and receive loop for one topic binding."""

    def __init__(self, bus: EventBus, topic: str, pattern: str, handler: Handler):
        self._bus = bus
        self.topic = topic
        self.pattern = pattern
        self.handler = handler
        self.stream = bus.stream_key(topic)
        self.group = f"{topic}.{uuid.uuid4().hex[:12]}"
        self.consumer = f"{self.group}.consumer"

        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        # Monotonic time at which pending messages are re-read; None when nothing is pending
        self._redeliver_at: Optional[float] = None

    async def declare(self) -> None:
        """Create the consumer group at the stream tail (idempotent)."""
        client = await self._bus.connect()
        await self._create_group(client, start_id="$")
        self._redeliver_at = None

    async def _create_group(self, client: redis.Redis, start_id: str) -> None:
        try:
            await client.xgroup_create(self.stream, self.group, id=start_id, mkstream=True)
            logger.debug(f"Created consumer group '{self.group}' for {self.stream}")
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.debug(f"Consumer group '{self.group}' already exists")

    def start(self) -> None:
        """Start the receive loop task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"subscription:{self.group}")

    async def run(self) -> None:
        """Receive loop: poll until close() is called."""
        while not self._stopping.is_set():
            try:
                processed = await self.poll_once()
                if not processed and not self._bus.block_ms:
                    await self._wait(IDLE_POLL_SECONDS)
            except CONNECTION_ERRORS as e:
                logger.warning(f"Subscription {self.group} lost connection: {e}")
                await self._bus.reset_connection()
                # Unacknowledged messages are re-read after reconnecting
                self._redeliver_at = 0.0
            except ResponseError as e:
                # Auto-healing: recreate consumer group if missing
                if "NOGROUP" in str(e):
                    logger.warning(f"Consumer group '{self.group}' missing - recreating")
                    client = await self._bus.connect()
                    await self._create_group(client, start_id="0")
                    continue
                logger.error(f"Error consuming {self.stream}: {e}")
                await self._wait(1)
            except RedisError as e:
                logger.error(f"Error consuming {self.stream}: {e}", exc_info=True)
                await self._wait(1)
            except BrokerUnavailable as e:
                logger.error(f"Subscription {self.group} stopped: {e}")
                return

    async def poll_once(self) -> int:
        """
        Read and dispatch one batch.

        Pending (previously failed) messages are re-read once their
        redelivery time is due; otherwise new messages are read.

        Returns:
            Number of messages read
        """
        client = await self._bus.connect()
        redeliver = self._redelivery_due()

        response = await client.xreadgroup(
            self.group,
            self.consumer,
            {self.stream: "0" if redeliver else ">"},
            count=self._bus.batch_size,
            block=None if redeliver else self._bus.block_ms
        )

        entries = [entry for _, stream_entries in response or [] for entry in stream_entries]
        failures = 0
        for message_id, fields in entries:
            if not await self._deliver(client, message_id, fields):
                failures += 1

        now = time.monotonic()
        if failures:
            if redeliver or self._redeliver_at is None:
                self._redeliver_at = now + self._bus.redelivery_delay
        elif redeliver:
            # A full batch may mean more pending messages behind it
            self._redeliver_at = now if len(entries) >= self._bus.batch_size else None

        return len(entries)

    def _redelivery_due(self) -> bool:
        return self._redeliver_at is not None and time.monotonic() >= self._redeliver_at

    async def _deliver(self, client: redis.Redis, message_id: str, fields: Optional[Dict[str, str]]) -> bool:
        """
        Hand one message to the handler.

        Returns:
            False if the handler failed and the message stays pending
        """
        if not fields:
            # Entry trimmed from the stream while pending
            await client.xack(self.stream, self.group, message_id)
            return True

        routing_key = fields.get("routing_key", "")
        if not topic_matches(self.pattern, routing_key):
            await client.xack(self.stream, self.group, message_id)
            return True

        try:
            payload = json.loads(fields["payload"])
        except (KeyError, ValueError) as e:
            logger.error(f"Dropping malformed message {message_id} on {self.stream}: {e}")
            await client.xack(self.stream, self.group, message_id)
            return True

        logger.info(f"Event received: {routing_key} ({message_id})")
        try:
            await self.handler(payload)
        except Exception as e:
            logger.error(
                f"Handler for {routing_key} failed on {message_id}, leaving unacknowledged: {e}",
                exc_info=True
            )
            return False

        await client.xack(self.stream, self.group, message_id)
        return True

    async def _wait(self, seconds: float) -> None:
        """Sleep unless close() is called first."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def close(self) -> None:
        """
        Stop consuming and remove the exclusive group.

        An in-flight handler finishes before the loop exits.
        """
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None

        client = self._bus._client
        if client is None:
            return
        try:
            await client.xgroup_destroy(self.stream, self.group)
            logger.debug(f"Destroyed consumer group '{self.group}'")
        except (RedisError, OSError) as e:
            logger.warning(f"Could not destroy consumer group '{self.group}': {e}")
