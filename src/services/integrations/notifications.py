# tradeguard/src/services/integrations/notifications.py
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aiokafka import AIOKafkaProducer

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    @abstractmethod
    async def notify(
        self, user_id: str, kind: str, title: str, message: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        pass


class KafkaNotificationSink(NotificationSink):
    """Publishes notifications for the delivery service; keyed by user so a user's messages stay ordered."""

    def __init__(self, producer: AIOKafkaProducer, topic: str):
        self.producer = producer
        self.topic = topic

    async def notify(self, user_id, kind, title, message, metadata=None):
        payload = {
            "user_id": user_id,
            "type": kind,
            "title": title,
            "message": message,
            "metadata": metadata or {},
            "status": "unread",
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await self.producer.send_and_wait(
            self.topic,
            json.dumps(payload, default=str).encode("utf-8"),
            key=user_id.encode("utf-8"),
        )


class Notifier:
    """Fire-and-forget front for a sink: delivery failures are logged and never reach the caller."""

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    async def send(
        self,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        priority: str = "medium",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        try:
            await self.sink.notify(user_id, kind, title, message, {"priority": priority, **(metadata or {})})
            return True
        except Exception as e:
            logger.error(f"Failed to notify user {user_id} ({kind}: {title}): {e}", exc_info=True)
            return False
