import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.common.concurrency import is_unique_violation, run_with_conflict_retry, unit_of_work
from src.common.errors import (
    ConcurrencyConflict,
    DuplicateDispute,
    InvalidState,
    InvalidTransition,
    NotFound,
    Unauthorized,
)
from src.models import Dispute, DisputeComment, DisputeEvidence, DisputeResolution, DisputeTimelineEntry
from src.models.base import new_id, utcnow
from src.services.api.schemas import DisputeCreate, EvidenceIn, ResolutionDecision
from src.services.disputes import transitions as t
from src.services.disputes.notifications import DisputeNotifier
from src.services.integrations.audit import Auditor
from src.services.integrations.roles import RoleDirectory
from src.services.integrations.trades import TradeService

logger = logging.getLogger(__name__)


class DisputeWorkflow:
    """
    Drives disputes from filing to a terminal state.

    Status changes are version-checked read-validate-write units, retried on
    ConcurrencyConflict. Evidence, comments and timeline entries are inserts
    into their own tables. Trade status is signalled after the dispute commit;
    `trade_sync_pending` stays set until the trade service has acknowledged it,
    and `reconcile_trade` re-applies it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        trade_service: TradeService,
        role_directory: RoleDirectory,
        notifier: DisputeNotifier,
        auditor: Auditor,
    ):
        self.session_factory = session_factory
        self.trade_service = trade_service
        self.role_directory = role_directory
        self.notifier = notifier
        self.auditor = auditor

    # ----------------------
    # Helpers
    # ----------------------
    @staticmethod
    async def _load(session, dispute_id: str) -> Dispute:
        dispute = await session.get(Dispute, dispute_id)
        if dispute is None:
            raise NotFound(f"Dispute {dispute_id} not found")
        return dispute

    async def _is_staff(self, user_id: str) -> bool:
        for role in t.STAFF_ROLES:
            if user_id in await self.role_directory.get_users_with_role(role):
                return True
        return False

    async def _require_staff(self, user_id: str, action: str) -> None:
        if not await self._is_staff(user_id):
            raise Unauthorized(f"User {user_id} is not allowed to {action}")

    async def _admin_ids(self) -> List[str]:
        try:
            return await self.role_directory.get_users_with_role("admin")
        except Exception as e:
            logger.error(f"Failed to look up admins: {e}", exc_info=True)
            return []

    async def _signal_trade(
        self,
        dispute_id: str,
        ticket_id: str,
        dispute_status: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        trade_status = t.trade_status_for(dispute_status)
        try:
            await self.trade_service.set_trade_status(ticket_id, trade_status, extra)
        except Exception as e:
            logger.error(
                f"Trade {ticket_id} not updated to {trade_status} for dispute {dispute_id}: {e}", exc_info=True
            )
            await self.auditor.record(
                "trade_sync_failed",
                "dispute",
                dispute_id,
                None,
                {"ticket_id": ticket_id, "trade_status": trade_status, "error": str(e)},
            )
            return False

        # Only clear the marker if no later transition has superseded this one
        async with unit_of_work(self.session_factory) as session:
            await session.execute(
                update(Dispute)
                .where(Dispute.dispute_id == dispute_id, Dispute.status == dispute_status)
                .values(trade_sync_pending=False)
                .execution_options(synchronize_session=False)
            )
        return True

    async def _notify_parties(self, dispute: Dispute, status: str, message: Optional[str] = None) -> None:
        for user_id in (dispute.user_id, dispute.counterparty_id):
            await self.notifier.status_update(user_id, dispute.dispute_id, status, message)

    # ----------------------
    # Filing
    # ----------------------
    async def create_dispute(self, request: DisputeCreate) -> str:
        trade = await self.trade_service.get_trade(request.ticket_id)
        if trade is None:
            raise NotFound(f"Trade {request.ticket_id} not found")

        dispute_id = new_id()
        try:
            async with unit_of_work(self.session_factory) as session:
                existing = await session.execute(
                    select(Dispute.dispute_id).where(Dispute.open_ticket_id == request.ticket_id)
                )
                if existing.scalar_one_or_none() is not None:
                    raise DuplicateDispute(f"Trade {request.ticket_id} already has an open dispute")

                prior = await session.execute(
                    select(func.count()).select_from(Dispute).where(Dispute.counterparty_id == request.counterparty_id)
                )
                dispute = Dispute(
                    dispute_id=dispute_id,
                    ticket_id=request.ticket_id,
                    open_ticket_id=request.ticket_id,
                    user_id=request.filer_id,
                    counterparty_id=request.counterparty_id,
                    reason=request.reason,
                    description=request.description,
                    status=t.OPEN,
                    priority=t.priority_for(trade.amount),
                    flags=t.initial_flags(trade.amount, prior.scalar_one()),
                    trade_sync_pending=True,
                )
                session.add(dispute)
                for item in request.initial_evidence:
                    session.add(DisputeEvidence(dispute_id=dispute_id, user_id=request.filer_id, **item.model_dump()))
                session.add(
                    DisputeTimelineEntry(
                        dispute_id=dispute_id, status=t.OPEN, actor_id=request.filer_id, message="Dispute created"
                    )
                )
        except IntegrityError as e:
            if is_unique_violation(e, "open_ticket_id"):
                raise DuplicateDispute(f"Trade {request.ticket_id} already has an open dispute") from e
            raise

        logger.info(f"Dispute {dispute_id} filed on trade {request.ticket_id} by {request.filer_id}")
        await self._signal_trade(dispute_id, request.ticket_id, t.OPEN, {"dispute_id": dispute_id})

        await self.notifier.dispute_created(request.filer_id, dispute_id, request.ticket_id)
        await self.notifier.filed_against(request.counterparty_id, dispute_id, request.ticket_id)
        await self.notifier.admin_new_dispute(await self._admin_ids(), dispute_id, request.ticket_id)
        await self.auditor.record(
            "dispute_created",
            "dispute",
            dispute_id,
            request.filer_id,
            {"ticket_id": request.ticket_id, "priority": dispute.priority, "flags": dispute.flags},
        )
        return dispute_id

    # ----------------------
    # Threads
    # ----------------------
    async def submit_evidence(self, dispute_id: str, user_id: str, evidence: EvidenceIn) -> str:
        evidence_id = new_id()

        async def _append():
            async with unit_of_work(self.session_factory) as session:
                dispute = await self._load(session, dispute_id)
                if user_id not in (dispute.user_id, dispute.counterparty_id):
                    raise Unauthorized(f"User {user_id} is not a party to dispute {dispute_id}")
                if dispute.status not in t.EVIDENCE_STATUSES:
                    raise InvalidState(f"Dispute {dispute_id} is '{dispute.status}' and no longer accepts evidence")

                session.add(
                    DisputeEvidence(evidence_id=evidence_id, dispute_id=dispute_id, user_id=user_id, **evidence.model_dump())
                )
                # Bumps the version, so a status change committed since the read fails this unit
                dispute.updated_at = utcnow()
                if dispute.status == t.OPEN:
                    dispute.status = t.EVIDENCE
                    session.add(
                        DisputeTimelineEntry(
                            dispute_id=dispute_id, status=t.EVIDENCE, actor_id=user_id, message="Evidence submitted"
                        )
                    )
            return dispute

        dispute = await run_with_conflict_retry(_append)
        other = dispute.counterparty_id if user_id == dispute.user_id else dispute.user_id
        await self.notifier.evidence_submitted(other, dispute_id, dispute.ticket_id)
        await self.auditor.record("evidence_submitted", "dispute", dispute_id, user_id, {"evidence_id": evidence_id})
        return evidence_id

    async def add_comment(
        self,
        dispute_id: str,
        user_id: str,
        role: str,
        message: str,
        is_private: bool = False,
    ) -> str:
        staff = role in t.STAFF_ROLES
        if staff and user_id not in await self.role_directory.get_users_with_role(role):
            raise Unauthorized(f"User {user_id} does not hold the {role} role")

        comment_id = new_id()

        async def _append():
            async with unit_of_work(self.session_factory) as session:
                dispute = await self._load(session, dispute_id)
                if not staff and user_id not in (dispute.user_id, dispute.counterparty_id):
                    raise Unauthorized(f"User {user_id} is not a party to dispute {dispute_id}")
                if t.is_terminal(dispute.status):
                    raise InvalidState(f"Dispute {dispute_id} is '{dispute.status}' and closed for comments")
                session.add(
                    DisputeComment(
                        comment_id=comment_id,
                        dispute_id=dispute_id,
                        user_id=user_id,
                        role=role,
                        message=message,
                        is_private=is_private,
                    )
                )
                dispute.updated_at = utcnow()
            return dispute

        dispute = await run_with_conflict_retry(_append)

        if not is_private:
            if staff:
                recipients = [dispute.user_id, dispute.counterparty_id]
            else:
                recipients = [dispute.counterparty_id if user_id == dispute.user_id else dispute.user_id]
            for recipient in recipients:
                await self.notifier.new_comment(recipient, dispute_id, dispute.ticket_id)
        await self.auditor.record(
            "comment_added", "dispute", dispute_id, user_id, {"comment_id": comment_id, "is_private": is_private}
        )
        return comment_id

    # ----------------------
    # Transitions
    # ----------------------
    async def update_status(
        self,
        dispute_id: str,
        actor_id: str,
        new_status: str,
        message: Optional[str] = None,
    ) -> Dispute:
        staff = await self._is_staff(actor_id)

        async def _transition():
            async with unit_of_work(self.session_factory) as session:
                dispute = await self._load(session, dispute_id)
                if not staff and not (actor_id == dispute.user_id and new_status == t.CANCELLED):
                    raise Unauthorized(f"User {actor_id} may not move dispute {dispute_id} to '{new_status}'")
                previous = dispute.status
                if not t.can_transition(previous, new_status):
                    raise InvalidTransition(f"Dispute {dispute_id} is '{previous}' and cannot move to '{new_status}'")

                dispute.status = new_status
                if new_status == t.ARBITRATION:
                    dispute.escalated_to_arbitration = True
                    dispute.escalated_at = utcnow()
                if t.is_terminal(new_status):
                    dispute.open_ticket_id = None
                    dispute.trade_sync_pending = True
                session.add(
                    DisputeTimelineEntry(dispute_id=dispute_id, status=new_status, actor_id=actor_id, message=message)
                )
            return dispute, previous

        dispute, previous = await run_with_conflict_retry(_transition)
        logger.info(f"Dispute {dispute_id} moved {previous} -> {new_status} by {actor_id}")

        if t.is_terminal(new_status):
            await self._signal_trade(dispute_id, dispute.ticket_id, new_status)
        await self._notify_parties(dispute, new_status, message)
        await self.auditor.record(
            "dispute_status_updated",
            "dispute",
            dispute_id,
            actor_id,
            {"from": previous, "to": new_status, "message": message},
        )
        return await self.get_dispute(dispute_id)

    async def resolve(self, dispute_id: str, admin_id: str, resolution: ResolutionDecision) -> Dispute:
        await self._require_staff(admin_id, "resolve disputes")

        async def _resolve():
            try:
                async with unit_of_work(self.session_factory) as session:
                    dispute = await self._load(session, dispute_id)
                    if t.is_terminal(dispute.status):
                        raise InvalidTransition(f"Dispute {dispute_id} is already '{dispute.status}'")
                    previous = dispute.status
                    session.add(DisputeResolution(dispute_id=dispute_id, resolved_by=admin_id, **resolution.model_dump()))
                    dispute.status = t.RESOLVED
                    dispute.open_ticket_id = None
                    dispute.trade_sync_pending = True
                    session.add(
                        DisputeTimelineEntry(
                            dispute_id=dispute_id, status=t.RESOLVED, actor_id=admin_id, message=resolution.reason
                        )
                    )
            except IntegrityError as e:
                if is_unique_violation(e, "dispute_id"):
                    raise ConcurrencyConflict(f"Dispute {dispute_id} was resolved concurrently") from e
                raise
            return dispute, previous

        dispute, previous = await run_with_conflict_retry(_resolve)
        logger.info(f"Dispute {dispute_id} resolved in favour of {resolution.decision} by {admin_id}")

        await self._signal_trade(dispute_id, dispute.ticket_id, t.RESOLVED, {"resolution": resolution.decision})
        await self._notify_parties(dispute, t.RESOLVED, resolution.reason)
        await self.auditor.record(
            "dispute_resolved",
            "dispute",
            dispute_id,
            admin_id,
            {"from": previous, "decision": resolution.decision, "reason": resolution.reason},
        )
        return await self.get_dispute(dispute_id)

    async def escalate_to_arbitration(self, dispute_id: str, admin_id: str, reason: str) -> Dispute:
        await self._require_staff(admin_id, "escalate disputes")
        return await self.update_status(dispute_id, admin_id, t.ARBITRATION, f"Escalated to arbitration: {reason}")

    async def add_flag(self, dispute_id: str, actor_id: str, flag: str) -> Dispute:
        await self._require_staff(actor_id, "flag disputes")

        async def _flag():
            async with unit_of_work(self.session_factory) as session:
                dispute = await self._load(session, dispute_id)
                if t.is_terminal(dispute.status):
                    raise InvalidState(f"Dispute {dispute_id} is '{dispute.status}' and can no longer be flagged")
                if flag not in dispute.flags:
                    dispute.flags = list(dispute.flags) + [flag]

        await run_with_conflict_retry(_flag)
        await self.auditor.record("dispute_flagged", "dispute", dispute_id, actor_id, {"flag": flag})
        return await self.get_dispute(dispute_id)

    # ----------------------
    # Queries
    # ----------------------
    async def get_dispute(self, dispute_id: str) -> Dispute:
        async with self.session_factory() as session:
            return await self._load(session, dispute_id)

    async def list_disputes(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dispute]:
        query = select(Dispute)
        if user_id:
            query = query.where(or_(Dispute.user_id == user_id, Dispute.counterparty_id == user_id))
        if status:
            query = query.where(Dispute.status == status)
        query = query.order_by(Dispute.created_at.desc(), Dispute.dispute_id).limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def check_timeline_consistency(self, dispute_id: str) -> bool:
        dispute = await self.get_dispute(dispute_id)
        if not dispute.timeline:
            return False
        return dispute.timeline[-1].status == dispute.status

    # ----------------------
    # Trade reconciliation
    # ----------------------
    async def reconcile_trade(self, dispute_id: str) -> bool:
        """Re-applies the trade status the dispute's current state requires."""
        dispute = await self.get_dispute(dispute_id)
        extra: Dict[str, Any] = {}
        if not t.is_terminal(dispute.status):
            extra["dispute_id"] = dispute.dispute_id
        elif dispute.status == t.RESOLVED and dispute.resolution is not None:
            extra["resolution"] = dispute.resolution.decision
        return await self._signal_trade(dispute.dispute_id, dispute.ticket_id, dispute.status, extra or None)

    async def reconcile_pending(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Dispute.dispute_id).where(Dispute.trade_sync_pending.is_(True)).order_by(Dispute.created_at)
            )
            pending = list(result.scalars().all())

        repaired = 0
        for dispute_id in pending:
            if await self.reconcile_trade(dispute_id):
                repaired += 1
        if pending:
            logger.info(f"Reconciled {repaired}/{len(pending)} disputes with pending trade updates")
        return repaired
