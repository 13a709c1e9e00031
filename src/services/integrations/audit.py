# tradeguard/src/services/integrations/audit.py
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from src.models import AuditRecord

logger = logging.getLogger(__name__)


class AuditSink(ABC):
    @abstractmethod
    async def record(
        self,
        operation: str,
        resource_type: str,
        resource_id: str,
        actor_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass


class SqlAuditSink(AuditSink):
    """Append-only compliance trail in the audit_log table, written in its own session."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(self, operation, resource_type, resource_id, actor_id, details=None):
        async with self.session_factory() as session:
            session.add(
                AuditRecord(
                    operation=operation,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    actor_id=actor_id,
                    details=details or {},
                )
            )
            await session.commit()


class Auditor:
    """Called after the state change has committed, so failures are logged only."""

    def __init__(self, sink: AuditSink):
        self.sink = sink

    async def record(
        self,
        operation: str,
        resource_type: str,
        resource_id: str,
        actor_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            await self.sink.record(operation, resource_type, resource_id, actor_id, details)
        except Exception as e:
            logger.error(f"Failed to audit {operation} on {resource_type}/{resource_id}: {e}", exc_info=True)
