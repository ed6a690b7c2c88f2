"""
Subscriber registry for the realtime order channel.

Each connection gets its own bounded queue; publishing puts a message on the
queue of every subscriber whose branch filter matches. Nothing is persisted
or replayed: a terminal that is not connected when an event is published
never sees it.
"""
import asyncio
import os
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

import structlog

from shared.events import build_event
from shared.observability import (
    pos_realtime_subscribers,
    pos_realtime_events_total,
    pos_realtime_dropped_total,
)

logger = structlog.get_logger(__name__)

REALTIME_QUEUE_SIZE = int(os.getenv("REALTIME_QUEUE_SIZE", "100"))


@dataclass
class Subscription:
    connection_id: str
    # Empty filter receives every branch (central aggregation terminal)
    branch_id: str = ""
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=REALTIME_QUEUE_SIZE))

    def matches(self, branch_id: Optional[str]) -> bool:
        return not branch_id or not self.branch_id or self.branch_id == branch_id


class SubscriberRegistry:
    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}

    def __len__(self):
        return len(self._subscriptions)

    def subscribe(self, branch_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(connection_id=str(uuid.uuid4()), branch_id=branch_id or "")
        self._subscriptions[subscription.connection_id] = subscription
        pos_realtime_subscribers.set(len(self._subscriptions))
        logger.info("realtime_subscribed", connection_id=subscription.connection_id,
                    branch_id=subscription.branch_id or None)
        return subscription

    def unsubscribe(self, connection_id: str) -> None:
        """Release a subscription. Safe to call twice."""
        if self._subscriptions.pop(connection_id, None) is not None:
            pos_realtime_subscribers.set(len(self._subscriptions))
            logger.info("realtime_unsubscribed", connection_id=connection_id)

    def publish(self, event: str, order: dict, branch_id: Optional[str] = None) -> int:
        """Queue `event` for every matching subscriber; returns how many were reached."""
        message = build_event(event, order, branch_id)
        delivered = 0
        # Snapshot: subscriptions may be released while we iterate
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(branch_id):
                continue
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                pos_realtime_dropped_total.inc()
                logger.warning("realtime_event_dropped", connection_id=subscription.connection_id, event_name=event)
        pos_realtime_events_total.labels(event=event).inc(delivered)
        logger.info("realtime_event_published", event_name=event, order_id=order.get("id"),
                    branch_id=branch_id, subscribers=delivered)
        return delivered

    def clear(self) -> None:
        self._subscriptions.clear()
        pos_realtime_subscribers.set(0)


# One registry per process; the order service publishes into it
hub = SubscriberRegistry()
