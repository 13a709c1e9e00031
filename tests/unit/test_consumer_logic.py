"""Unit tests for the completed-trade message handler and the worker consume loop."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

from aiokafka import TopicPartition

from src.common.config import settings
from src.services.monitoring.alert_lifecycle import RecordedAlerts
from src.services.monitoring.rule_engine import EvaluationResult
from src.services.monitoring_worker.consumer_logic import process_transaction_message
from src.services.monitoring_worker.main import consume_loop

DETECTED = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def stored_alert(alert_id):
    return SimpleNamespace(
        alert_id=alert_id,
        user_id="u1",
        rule_id="high-value",
        rule_name="High-Value Transaction",
        severity="high",
        transactions=["t1"],
        detected_at=DETECTED,
        status="new",
    )


class TestProcessTransactionMessage:
    async def test_invalid_message_is_dropped(self) -> None:
        monitor = AsyncMock()
        assert await process_transaction_message({"user_id": "u1"}, monitor) == []
        monitor.evaluate.assert_not_awaited()

    async def test_new_alerts_are_returned_for_publishing(self) -> None:
        monitor = AsyncMock()
        monitor.evaluate.return_value = (
            EvaluationResult(),
            RecordedAlerts(created=[stored_alert("a1")], merged=[stored_alert("a2")]),
        )
        message = {"transaction_id": "t1", "user_id": "u1", "amount": "15000", "timestamp": DETECTED.isoformat()}

        payloads = await process_transaction_message(message, monitor)

        assert [p["alert_id"] for p in payloads] == ["a1"]
        assert payloads[0]["detected_at"] == DETECTED.isoformat()
        transaction = monitor.evaluate.await_args.args[0]
        assert transaction.transaction_id == "t1"
        assert monitor.evaluate.await_args.kwargs == {"record": True}

    async def test_no_match_publishes_nothing(self) -> None:
        monitor = AsyncMock()
        monitor.evaluate.return_value = (EvaluationResult(), None)
        message = {"transaction_id": "t1", "user_id": "u1", "amount": "10"}
        assert await process_transaction_message(message, monitor) == []


class FakeConsumer:
    """Single-partition consumer whose position follows seek() the way aiokafka's does."""

    def __init__(self, payloads, topic="completed_trades"):
        self.messages = [
            SimpleNamespace(topic=topic, partition=0, offset=i, value=json.dumps(p).encode("utf-8"))
            for i, p in enumerate(payloads)
        ]
        self.position = 0
        self.paused = set()
        self.committed = []

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.paused or self.position >= len(self.messages):
            raise StopAsyncIteration
        msg = self.messages[self.position]
        self.position += 1
        return msg

    def seek(self, tp, offset):
        self.position = offset

    def pause(self, *partitions):
        self.paused.update(partitions)

    async def commit(self):
        self.committed.append(self.position)


def trade_message(transaction_id):
    return {"transaction_id": transaction_id, "user_id": "u1", "amount": "100", "timestamp": DETECTED.isoformat()}


class TestConsumeLoop:
    """Offsets only move past a message once it has been processed."""

    async def test_failed_message_is_retried_before_moving_on(self) -> None:
        monitor = AsyncMock()
        no_match = (EvaluationResult(), None)
        monitor.evaluate.side_effect = [RuntimeError("database unavailable"), no_match, no_match]
        consumer = FakeConsumer([trade_message("t1"), trade_message("t2")])

        await consume_loop(consumer, SimpleNamespace(monitor=monitor), AsyncMock(), max_attempts=3, backoff_seconds=0)

        evaluated = [call.args[0].transaction_id for call in monitor.evaluate.await_args_list]
        assert evaluated == ["t1", "t1", "t2"]
        assert consumer.committed == [1, 2]
        assert consumer.paused == set()

    async def test_persistent_failure_pauses_without_committing_past_it(self) -> None:
        monitor = AsyncMock()
        monitor.evaluate.side_effect = RuntimeError("database unavailable")
        consumer = FakeConsumer([trade_message("t1"), trade_message("t2")])

        await consume_loop(consumer, SimpleNamespace(monitor=monitor), AsyncMock(), max_attempts=2, backoff_seconds=0)

        assert monitor.evaluate.await_count == 2
        assert consumer.committed == []
        assert consumer.position == 0
        assert consumer.paused == {TopicPartition("completed_trades", 0)}

    async def test_undecodable_message_is_committed_past(self) -> None:
        monitor = AsyncMock()
        monitor.evaluate.return_value = (EvaluationResult(), None)
        consumer = FakeConsumer([trade_message("t2")])
        consumer.messages.insert(0, SimpleNamespace(topic="completed_trades", partition=0, offset=0, value=b"{not json"))
        consumer.messages[1].offset = 1

        await consume_loop(consumer, SimpleNamespace(monitor=monitor), AsyncMock(), max_attempts=2, backoff_seconds=0)

        assert consumer.committed == [1, 2]
        assert monitor.evaluate.await_count == 1

    async def test_new_alerts_are_published_keyed_by_user(self) -> None:
        monitor = AsyncMock()
        monitor.evaluate.return_value = (EvaluationResult(), RecordedAlerts(created=[stored_alert("a1")]))
        producer = AsyncMock()
        consumer = FakeConsumer([trade_message("t1")])

        await consume_loop(consumer, SimpleNamespace(monitor=monitor), producer, max_attempts=2, backoff_seconds=0)

        topic, payload = producer.send_and_wait.await_args.args
        assert topic == settings.KAFKA_ALERTS_TOPIC
        assert payload["alert_id"] == "a1"
        assert producer.send_and_wait.await_args.kwargs == {"key": "u1"}
        assert consumer.committed == [1]
