# tradeguard/src/services/producer_cli/send_trade.py

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from src.common.config import settings
from src.common.kafka_utils import get_kafka_producer

LOG = logging.getLogger("producer_cli")


def build_test_trades(seed: uuid.UUID | None = None) -> list[dict]:
    """Return completed-trade messages that exercise the stock monitoring rules.

    One user trades an escalating sequence with several counterparties, the
    last trade being high-value. If seed is provided, ids are deterministic.
    """
    if seed:
        base = uuid.UUID(int=seed.int)
        user = uuid.uuid5(base, "user")
        counterparties = [uuid.uuid5(base, f"cp{i}") for i in range(4)]
        trade_ids = [uuid.uuid5(base, f"trade{i}") for i in range(4)]
    else:
        user = uuid.uuid4()
        counterparties = [uuid.uuid4() for _ in range(4)]
        trade_ids = [uuid.uuid4() for _ in range(4)]

    start = datetime.now(timezone.utc) - timedelta(minutes=4)
    amounts = [Decimal("1200.00"), Decimal("2500.00"), Decimal("6000.00"), Decimal("15000.00")]

    return [
        {
            "transaction_id": str(trade_ids[i]),
            "user_id": str(user),
            "counterparty_id": str(counterparties[i]),
            "amount": str(amount),
            "currency": "ZAR",
            "timestamp": (start + timedelta(minutes=i)).isoformat(),
        }
        for i, amount in enumerate(amounts)
    ]


async def send_messages(bootstrap_servers: str, topic: str, messages: list[dict], interval: float = 1.0):
    LOG.info("Starting producer to %s", bootstrap_servers)
    async with get_kafka_producer(bootstrap_servers) as producer:
        for msg in messages:
            try:
                LOG.info("Sending trade to topic=%s payload=%s", topic, msg)
                # Keyed by user so one user's trades are evaluated in order
                await producer.send_and_wait(topic, msg, key=msg["user_id"])
                LOG.info("Message sent")
            except Exception:
                LOG.exception("Failed to send message to Kafka")
            await asyncio.sleep(interval)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Send test completed trades to Kafka (TradeGuard)")
    p.add_argument("--bootstrap", default=None, help="Kafka bootstrap servers (overrides .env)")
    p.add_argument("--topic", default=None, help="Kafka topic to send to (overrides .env)")
    p.add_argument("--interval", type=float, default=1.0, help="Seconds between messages")
    p.add_argument("--seed", type=str, default=None, help="Seed UUID for deterministic test IDs")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(stream=sys.stdout, level=logging.DEBUG if args.debug else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    bootstrap = args.bootstrap or settings.KAFKA_BOOTSTRAP_SERVERS
    topic = args.topic or settings.KAFKA_COMPLETED_TRADES_TOPIC

    seed = None
    if args.seed:
        try:
            seed = uuid.UUID(args.seed)
        except ValueError:
            LOG.warning("Invalid seed provided, ignoring")

    asyncio.run(send_messages(bootstrap, topic, build_test_trades(seed=seed), interval=args.interval))


if __name__ == "__main__":
    main()
