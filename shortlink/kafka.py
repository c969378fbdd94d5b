"""Kafka producer management for click events.

Delivery is at-most-once: a publish that fails is logged and dropped, never
retried. Messages are keyed by short code so a per-key-ordered topic keeps
each alias's events together.
"""

import logging

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from shortlink.config import Settings
from shortlink.metrics import CLICK_EVENTS_DROPPED_TOTAL, CLICK_EVENTS_PUBLISHED_TOTAL
from shortlink.schemas import ClickEvent

__all__ = ["EventPublisher"]

logger = logging.getLogger(__name__)


class EventPublisher:
    def __init__(self, settings: Settings, producer: AIOKafkaProducer | None = None):
        self._settings = settings
        self._topic = settings.KAFKA_CLICK_TOPIC
        self._producer = producer

    @property
    def enabled(self) -> bool:
        return self._producer is not None

    async def start(self) -> None:
        """Start the producer; on failure the publisher stays disabled."""
        if self._producer is not None:
            return

        producer = AIOKafkaProducer(
            bootstrap_servers=self._settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=self._settings.KAFKA_CLIENT_ID,
        )
        try:
            await producer.start()
        except (KafkaError, OSError) as exc:
            logger.warning(f"Kafka producer unavailable, click events will be dropped: {exc!r}")
            await producer.stop()
            return
        self._producer = producer
        logger.info(f"Kafka producer started for topic {self._topic}")

    async def stop(self) -> None:
        if self._producer is None:
            return
        await self._producer.stop()
        self._producer = None

    async def publish(self, event: ClickEvent) -> bool:
        if self._producer is None:
            CLICK_EVENTS_DROPPED_TOTAL.inc()
            logger.debug(f"Kafka disabled, dropped click event for {event.short_code}")
            return False

        try:
            await self._producer.send_and_wait(
                self._topic,
                event.model_dump_json().encode("utf-8"),
                key=event.short_code.encode("utf-8"),
            )
        except (KafkaError, OSError) as exc:
            CLICK_EVENTS_DROPPED_TOTAL.inc()
            logger.error(f"Kafka publish failed for {event.short_code}, event dropped: {exc!r}")
            return False

        CLICK_EVENTS_PUBLISHED_TOTAL.inc()
        return True
