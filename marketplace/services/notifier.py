# marketplace/services/notifier.py
"""
Outbound buyer/supplier notifications.

Notifications are published to Kafka and consumed by the notification
service, which owns delivery (email, push, in-app). Publishing is
fire-and-forget: a failure is logged and reported as False, and never
undoes the state change that triggered it.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from marketplace.core.config import settings
from marketplace.core.kafka_producer import get_kafka_singleton

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    order_created = "order.created"
    order_accepted = "order.accepted"
    order_shipped = "order.shipped"
    order_delivered = "order.delivered"
    order_cancelled = "order.cancelled"
    payment_succeeded = "payment.succeeded"
    payment_failed = "payment.failed"
    payment_refunded = "payment.refunded"
    payment_cancelled = "payment.cancelled"
    supplier_application_approved = "supplier_application.approved"
    supplier_application_rejected = "supplier_application.rejected"


class NotifierInterface(ABC):
    @abstractmethod
    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Send a notification. Returns True if it was handed off."""
        pass


class KafkaNotifier(NotifierInterface):
    """Publishes notifications to the notifications topic."""

    def __init__(
        self,
        topic: Optional[str] = None,
        send_timeout: Optional[float] = None,
    ):
        self.topic = topic or settings.NOTIFICATIONS_TOPIC
        self.send_timeout = (
            send_timeout
            if send_timeout is not None
            else settings.NOTIFICATION_SEND_TIMEOUT_SECONDS
        )

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        kind = NotificationKind(kind)
        try:
            producer = get_kafka_singleton()

            if producer is None:
                logger.warning(f"Kafka producer unavailable, dropping {kind.value} for user {user_id}")
                return False

            event_data = {
                **(payload or {}),
                "type": kind.value,
                "userId": user_id,
                "occurredAt": datetime.now(timezone.utc).isoformat(),
            }

            future = producer.send(self.topic, key=user_id, value=event_data)
            # Wait briefly for the broker ack so failures show up in the logs.
            future.get(timeout=self.send_timeout)

            logger.info(f"Published {kind.value} notification for user {user_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish {kind.value} notification: {e}", exc_info=True)
            return False


def publish_notification(
    notifier: NotifierInterface,
    user_id: str,
    kind: NotificationKind,
    payload: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Hand a notification to any notifier after a committed state change.

    Failures, raised or returned, are logged and reported as False so the
    caller's result stands.
    """
    kind = NotificationKind(kind)
    try:
        sent = notifier.notify(user_id, kind, payload)
    except Exception as e:
        logger.error(f"Notifier raised while sending {kind.value} to user {user_id}: {e}", exc_info=True)
        return False
    if not sent:
        logger.warning(f"{kind.value} notification for user {user_id} was not delivered")
    return bool(sent)
