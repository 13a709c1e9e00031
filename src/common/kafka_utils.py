# tradeguard/src/common/kafka_utils.py
from aiokafka import AIOKafkaProducer, AIOKafkaConsumer
from aiokafka.admin import AIOKafkaAdminClient
from kafka.admin import NewTopic
from src.common.config import settings
from typing import AsyncGenerator, Iterable
from contextlib import asynccontextmanager
import asyncio
import logging
import json

logger = logging.getLogger(__name__)


def serialize_key(k) -> bytes | None:
    if k is None:
        return None
    if isinstance(k, (bytes, bytearray)):
        return bytes(k)
    return str(k).encode("utf-8")


def serialize_value(v) -> bytes | None:
    if v is None:
        return None
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    # Decimals and datetimes travel as strings
    return json.dumps(v, default=str).encode("utf-8")


@asynccontextmanager
async def get_kafka_producer(bootstrap_servers: str | None = None) -> AsyncGenerator[AIOKafkaProducer, None]:
    producer = AIOKafkaProducer(
        bootstrap_servers=bootstrap_servers or settings.KAFKA_BOOTSTRAP_SERVERS,
        key_serializer=serialize_key,
        value_serializer=serialize_value,
    )
    await producer.start()
    try:
        yield producer
    finally:
        await producer.stop()


@asynccontextmanager
async def get_kafka_consumer(
    topic: str,
    group_id: str,
    auto_offset_reset: str = "earliest",
    attempts: int = 5,
) -> AsyncGenerator[AIOKafkaConsumer, None]:
    # Kafka may still be starting when the worker comes up
    consumer = None
    for i in range(attempts):
        consumer = AIOKafkaConsumer(
            topic,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=group_id,
            auto_offset_reset=auto_offset_reset,
            enable_auto_commit=False,  # committed after the message is fully processed
        )
        try:
            await consumer.start()
            logger.info(f"Kafka consumer started for topic={topic} group_id={group_id}")
            break
        except Exception as e:
            if i == attempts - 1:
                raise
            logger.warning(f"Kafka not reachable ({e}), retrying in 5s ({i + 1}/{attempts})")
            await asyncio.sleep(5)

    try:
        yield consumer
    finally:
        await consumer.stop()


async def ensure_topics(topics: Iterable[str]) -> None:
    """Create any missing topics. Failures are logged; producers will surface real outages."""
    admin = AIOKafkaAdminClient(bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS)
    try:
        await admin.start()
        existing = set(await admin.list_topics())
        new_topics = [
            NewTopic(name=t, num_partitions=1, replication_factor=1)
            for t in topics if t not in existing
        ]
        if new_topics:
            await admin.create_topics(new_topics=new_topics)
            logger.info(f"Created topics: {[t.name for t in new_topics]}")
    except Exception as e:
        logger.warning(f"Failed to ensure Kafka topics: {e}")
    finally:
        await admin.close()
