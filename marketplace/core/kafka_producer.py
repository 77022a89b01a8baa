# marketplace/core/kafka_producer.py

import json
import logging
from typing import Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError

from marketplace.core.config import settings

logger = logging.getLogger(__name__)

_producer: Optional[KafkaProducer] = None


def get_kafka_singleton() -> Optional[KafkaProducer]:
    """
    Get or lazily create the process-wide Kafka producer.

    Returns None when the broker cannot be reached; callers treat that as
    "publishing unavailable" rather than an error.
    """
    global _producer
    if _producer is None:
        try:
            _producer = KafkaProducer(
                bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS.split(","),
                value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
                key_serializer=lambda k: k.encode("utf-8") if k else None,
                request_timeout_ms=5000,
                retries=3,
            )
            logger.info("Kafka producer connected")
        except KafkaError as e:
            logger.error(f"Failed to connect to Kafka: {e}")
            return None
    return _producer


def close_kafka_singleton() -> None:
    """Flush and close the producer on shutdown."""
    global _producer
    if _producer is not None:
        try:
            _producer.flush(timeout=5)
            _producer.close()
        except KafkaError as e:
            logger.warning(f"Error closing Kafka producer: {e}")
        _producer = None
