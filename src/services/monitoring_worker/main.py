# tradeguard/src/services/monitoring_worker/main.py

import asyncio
import json
from contextlib import asynccontextmanager
import logging

from aiokafka import TopicPartition

from src.common.config import settings
from src.common.db import build_engine, build_session_factory
from src.common.kafka_utils import ensure_topics, get_kafka_consumer, get_kafka_producer
from src.common.redis_utils import get_redis_client
from src.services.container import EngineServices, build_services
from src.services.integrations.notifications import KafkaNotificationSink
from src.services.monitoring_worker.consumer_logic import process_transaction_message

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def consume_loop(
    consumer,
    services: EngineServices,
    producer,
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> None:
    """
    Evaluates each completed trade and publishes newly opened alerts, committing
    the offset only afterwards. A message that fails is sought back to and
    retried, so a later commit never moves past it; after `max_attempts`
    failures its partition is paused at that offset for an operator to look at.
    """
    max_attempts = max_attempts or settings.WORKER_MAX_ATTEMPTS
    backoff_seconds = settings.WORKER_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
    failures = {}

    async for msg in consumer:
        logger.info(f"Consumed message: Topic={msg.topic}, Partition={msg.partition}, Offset={msg.offset}")
        tp = TopicPartition(msg.topic, msg.partition)
        try:
            message_data = json.loads(msg.value.decode('utf-8'))
            new_alerts = await process_transaction_message(message_data, services.monitor)

            for alert in new_alerts:
                await producer.send_and_wait(settings.KAFKA_ALERTS_TOPIC, alert, key=alert["user_id"])
        except json.JSONDecodeError as e:
            logger.error(f"Error decoding JSON from Kafka message at offset {msg.offset}: {e}")
        except Exception as e:
            attempts = failures.get((tp, msg.offset), 0) + 1
            failures[(tp, msg.offset)] = attempts
            consumer.seek(tp, msg.offset)
            if attempts >= max_attempts:
                logger.critical(
                    f"Message at {tp.topic}[{tp.partition}] offset {msg.offset} failed {attempts} times, "
                    f"pausing the partition: {e}",
                    exc_info=True,
                )
                consumer.pause(tp)
            else:
                logger.error(
                    f"Error processing message at offset {msg.offset} (attempt {attempts}/{max_attempts}): {e}",
                    exc_info=True,
                )
                await asyncio.sleep(backoff_seconds * attempts)
            continue

        failures.pop((tp, msg.offset), None)
        await consumer.commit()
        logger.info(f"Successfully processed and committed offset {msg.offset}.")


async def consume_messages(services: EngineServices, producer) -> None:
    logger.info(
        f"Starting Kafka consumer for topic '{settings.KAFKA_COMPLETED_TRADES_TOPIC}' "
        f"with group_id '{settings.KAFKA_CONSUMER_GROUP_ID}'..."
    )

    try:
        async with get_kafka_consumer(
            settings.KAFKA_COMPLETED_TRADES_TOPIC,
            settings.KAFKA_CONSUMER_GROUP_ID
        ) as consumer:
            await consume_loop(consumer, services, producer)

    except asyncio.CancelledError:
        logger.info("Consumer task cancelled.")
    except Exception as e:
        logger.critical(f"Consumer encountered an unrecoverable error: {e}", exc_info=True)
    finally:
        logger.info("Kafka consumer stopped.")


@asynccontextmanager
async def lifespan_worker():
    logger.info("Monitoring worker starting...")
    await ensure_topics([
        settings.KAFKA_COMPLETED_TRADES_TOPIC,
        settings.KAFKA_ALERTS_TOPIC,
        settings.KAFKA_NOTIFICATIONS_TOPIC,
    ])

    engine = build_engine()
    async with get_redis_client() as redis_client, get_kafka_producer() as producer:
        services = build_services(
            build_session_factory(engine),
            redis_client,
            KafkaNotificationSink(producer, settings.KAFKA_NOTIFICATIONS_TOPIC),
        )
        await services.rule_store.seed_default_rules()

        consumer_task = asyncio.create_task(consume_messages(services, producer))
        try:
            yield
        finally:
            consumer_task.cancel()
            try:
                await consumer_task
            except asyncio.CancelledError:
                pass
    await engine.dispose()
    logger.info("Monitoring worker shutting down gracefully.")


async def _main():
    async with lifespan_worker():
        stop_event = asyncio.Event()
        try:
            await stop_event.wait()
        except asyncio.CancelledError:
            pass


if __name__ == "__main__":
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        logger.info("Monitoring worker stopped by user.")
