import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.common.concurrency import run_with_conflict_retry, unit_of_work
from src.common.errors import ConcurrencyConflict, InvalidTransition, NotFound
from src.models import TransactionAlert
from src.models.base import utcnow
from src.services.api.schemas import AlertCreate
from src.services.integrations.audit import Auditor
from src.services.integrations.notifications import Notifier
from src.services.integrations.roles import RoleDirectory

logger = logging.getLogger(__name__)

OPEN_ALERT_STATUSES = ("new", "under-review")
TERMINAL_ALERT_STATUSES = ("resolved", "false-positive")
ALERT_TRANSITIONS = {
    "new": {"under-review", "resolved", "false-positive"},
    "under-review": {"resolved", "false-positive"},
    "resolved": set(),
    "false-positive": set(),
}
SEVERITY_RANK = {"low": 0, "medium": 1, "high": 2, "critical": 3}
ELEVATED_SEVERITIES = ("high", "critical")


def open_key(user_id: str, rule_id: str) -> str:
    return f"{user_id}:{rule_id}"


@dataclass
class RecordedAlerts:
    created: List[TransactionAlert] = field(default_factory=list)
    merged: List[TransactionAlert] = field(default_factory=list)


class AlertService:
    """
    Persists alert candidates and drives the alert review state machine:
    new -> under-review -> resolved | false-positive, with new -> terminal allowed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier: Notifier,
        auditor: Auditor,
        role_directory: RoleDirectory,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.auditor = auditor
        self.role_directory = role_directory

    # ----------------------
    # Recording
    # ----------------------
    async def record_alerts(self, candidates: List[AlertCreate]) -> RecordedAlerts:
        """
        Stores candidates, folding each into the user's open alert for the same
        rule when one exists instead of raising a duplicate.
        """
        recorded = RecordedAlerts()
        for candidate in candidates:
            alert, created = await run_with_conflict_retry(lambda: self._record_one(candidate))
            if created:
                recorded.created.append(alert)
                await self._announce(alert)
            else:
                recorded.merged.append(alert)
        return recorded

    async def _record_one(self, candidate: AlertCreate) -> tuple[TransactionAlert, bool]:
        key = open_key(candidate.user_id, candidate.rule_id)
        try:
            async with unit_of_work(self.session_factory) as session:
                result = await session.execute(select(TransactionAlert).where(TransactionAlert.open_key == key))
                existing = result.scalar_one_or_none()
                if existing is not None:
                    missing = [t for t in candidate.transactions if t not in existing.transactions]
                    if missing:
                        existing.transactions = list(existing.transactions) + missing
                    return existing, False

                alert = TransactionAlert(**candidate.model_dump(), open_key=key)
                session.add(alert)
                return alert, True
        except IntegrityError as e:
            # Another writer opened the same user+rule alert first
            raise ConcurrencyConflict(f"Open alert for {key} was created concurrently") from e

    async def _announce(self, alert: TransactionAlert) -> None:
        await self.auditor.record(
            "alert_created",
            "transaction_alert",
            alert.alert_id,
            None,
            {"user_id": alert.user_id, "rule_id": alert.rule_id, "severity": alert.severity},
        )
        elevated = alert.severity in ELEVATED_SEVERITIES
        await self.notifier.send(
            alert.user_id,
            "security",
            "Unusual Trading Activity Detected",
            "We've identified potentially unusual activity in your recent trading pattern. "
            "Please review your account for security.",
            priority="high" if elevated else "medium",
            metadata={"alertId": alert.alert_id},
        )
        if not elevated:
            return
        try:
            admin_ids = await self.role_directory.get_users_with_role("admin")
        except Exception as e:
            logger.error(f"Failed to look up admins for alert {alert.alert_id}: {e}", exc_info=True)
            return
        for admin_id in admin_ids:
            await self.notifier.send(
                admin_id,
                "admin",
                f"{alert.severity.upper()} Security Alert",
                f"Suspicious transaction detected. User ID: {alert.user_id}, Rule: {alert.rule_name}",
                priority="high",
                metadata={"alertId": alert.alert_id, "userId": alert.user_id, "transactions": alert.transactions},
            )

    # ----------------------
    # Lifecycle
    # ----------------------
    async def update_status(
        self,
        alert_id: str,
        new_status: str,
        resolution_note: Optional[str],
        reviewer_id: str,
    ) -> TransactionAlert:
        async def _transition():
            async with unit_of_work(self.session_factory) as session:
                alert = await session.get(TransactionAlert, alert_id)
                if alert is None:
                    raise NotFound(f"Alert {alert_id} not found")
                previous = alert.status
                if new_status not in ALERT_TRANSITIONS.get(previous, set()):
                    raise InvalidTransition(f"Alert {alert_id} is '{previous}' and cannot move to '{new_status}'")

                if previous == "new":
                    alert.reviewed_by = reviewer_id
                    alert.reviewed_at = utcnow()
                alert.status = new_status
                if new_status in TERMINAL_ALERT_STATUSES:
                    alert.resolution = resolution_note
                    alert.open_key = None
            return alert, previous

        alert, previous = await run_with_conflict_retry(_transition)
        logger.info(f"Alert {alert_id} moved {previous} -> {new_status} by {reviewer_id}")
        await self.auditor.record(
            "alert_status_updated",
            "transaction_alert",
            alert_id,
            reviewer_id,
            {"from": previous, "to": new_status, "resolution": resolution_note},
        )
        return alert

    # ----------------------
    # Queries
    # ----------------------
    async def get_alert(self, alert_id: str) -> TransactionAlert:
        async with self.session_factory() as session:
            alert = await session.get(TransactionAlert, alert_id)
        if alert is None:
            raise NotFound(f"Alert {alert_id} not found")
        return alert

    async def list_alerts(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        limit: int = 100,
    ) -> List[TransactionAlert]:
        query = select(TransactionAlert)
        if user_id:
            query = query.where(TransactionAlert.user_id == user_id)
        if status:
            query = query.where(TransactionAlert.status == status)
        if severity:
            query = query.where(TransactionAlert.severity == severity)
        query = query.order_by(TransactionAlert.detected_at.desc(), TransactionAlert.alert_id).limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def open_alerts_for_user(self, user_id: str) -> List[TransactionAlert]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TransactionAlert)
                .where(TransactionAlert.user_id == user_id, TransactionAlert.status.in_(OPEN_ALERT_STATUSES))
                .order_by(TransactionAlert.detected_at.asc(), TransactionAlert.alert_id)
            )
            return list(result.scalars().all())

    async def alerts_for_user(self, user_id: str) -> List[TransactionAlert]:
        """Every alert ever raised for the user, in any status, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TransactionAlert)
                .where(TransactionAlert.user_id == user_id)
                .order_by(TransactionAlert.detected_at.desc(), TransactionAlert.alert_id)
            )
            return list(result.scalars().all())
