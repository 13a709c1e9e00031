"""Unit tests for notification delivery and dispute message templates."""

import json
from unittest.mock import AsyncMock

import pytest

from src.services.disputes.notifications import DisputeNotifier
from src.services.integrations.audit import Auditor, AuditSink
from src.services.integrations.notifications import KafkaNotificationSink, NotificationSink, Notifier
from tests.fakes import RecordingSink


class BrokenSink(NotificationSink, AuditSink):
    async def notify(self, user_id, kind, title, message, metadata=None):
        raise ConnectionError("broker down")

    async def record(self, operation, resource_type, resource_id, actor_id, details=None):
        raise ConnectionError("database down")


class TestNotifier:
    async def test_priority_travels_in_metadata(self) -> None:
        sink = RecordingSink()
        assert await Notifier(sink).send("u1", "security", "Title", "Body", priority="high", metadata={"a": 1})
        assert sink.sent[0]["metadata"] == {"priority": "high", "a": 1}

    async def test_sink_failures_are_swallowed(self) -> None:
        """Delivery happens after the state change committed, so errors never reach the caller."""
        assert await Notifier(BrokenSink()).send("u1", "security", "Title", "Body") is False

    async def test_audit_failures_are_swallowed(self) -> None:
        await Auditor(BrokenSink()).record("dispute_created", "dispute", "d1", "u1")


class TestKafkaNotificationSink:
    async def test_publishes_json_keyed_by_user(self) -> None:
        producer = AsyncMock()
        sink = KafkaNotificationSink(producer, "user_notifications")
        await sink.notify("u1", "dispute", "Dispute Filed", "Body", {"disputeId": "d1"})

        topic, payload = producer.send_and_wait.await_args.args
        assert topic == "user_notifications"
        assert producer.send_and_wait.await_args.kwargs["key"] == b"u1"
        body = json.loads(payload)
        assert body["type"] == "dispute"
        assert body["metadata"] == {"disputeId": "d1"}
        assert body["status"] == "unread"


class TestDisputeNotifier:
    @pytest.mark.parametrize(
        "status,title,priority",
        [
            ("UnderReview", "Dispute Under Review", "medium"),
            ("Resolved", "Dispute Resolved", "high"),
            ("Rejected", "Dispute Rejected", "high"),
            ("Arbitration", "Dispute Update", "medium"),
        ],
    )
    async def test_status_titles(self, status, title, priority) -> None:
        sink = RecordingSink()
        await DisputeNotifier(Notifier(sink)).status_update("u1", "d1", status)
        assert sink.sent[0]["title"] == title
        assert sink.sent[0]["metadata"]["priority"] == priority
        assert sink.sent[0]["metadata"]["status"] == status

    async def test_resolution_reason_becomes_the_message(self) -> None:
        sink = RecordingSink()
        await DisputeNotifier(Notifier(sink)).status_update("u1", "d1", "Resolved", "evidence sufficient")
        assert sink.sent[0]["message"] == "evidence sufficient"

    async def test_every_admin_is_told_about_new_disputes(self) -> None:
        sink = RecordingSink()
        await DisputeNotifier(Notifier(sink)).admin_new_dispute(["a1", "a2"], "d1", "t1")
        assert [n["user_id"] for n in sink.sent] == ["a1", "a2"]
        assert {n["title"] for n in sink.sent} == {"New Dispute Filed"}
