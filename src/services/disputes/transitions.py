"""
Dispute state machine and the trade status each dispute state implies.

    Open -> Evidence -> UnderReview -> Arbitration -> PendingResolution
    Resolved is reachable from every open state; Open, Evidence and UnderReview
    may be cancelled; Resolved, Rejected and Cancelled are terminal.
"""
from decimal import Decimal
from typing import List, Optional

from src.common.config import settings

OPEN = "Open"
EVIDENCE = "Evidence"
UNDER_REVIEW = "UnderReview"
ARBITRATION = "Arbitration"
PENDING_RESOLUTION = "PendingResolution"
RESOLVED = "Resolved"
REJECTED = "Rejected"
CANCELLED = "Cancelled"

TERMINAL_STATUSES = frozenset({RESOLVED, REJECTED, CANCELLED})
EVIDENCE_STATUSES = frozenset({OPEN, EVIDENCE, UNDER_REVIEW})

TRANSITIONS = {
    OPEN: frozenset({EVIDENCE, UNDER_REVIEW, RESOLVED, CANCELLED}),
    EVIDENCE: frozenset({UNDER_REVIEW, RESOLVED, CANCELLED}),
    UNDER_REVIEW: frozenset({ARBITRATION, RESOLVED, REJECTED, CANCELLED}),
    ARBITRATION: frozenset({PENDING_RESOLUTION, RESOLVED, REJECTED}),
    PENDING_RESOLUTION: frozenset({RESOLVED, REJECTED}),
    RESOLVED: frozenset(),
    REJECTED: frozenset(),
    CANCELLED: frozenset(),
}

STAFF_ROLES = ("admin", "arbitrator")


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def trade_status_for(dispute_status: str) -> str:
    if dispute_status == RESOLVED:
        return "Completed"
    if dispute_status == REJECTED:
        return "Active"
    if dispute_status == CANCELLED:
        return "Cancelled"
    return "Disputed"


def priority_for(amount: Optional[Decimal]) -> str:
    amount = amount or Decimal(0)
    if amount > Decimal(str(settings.DISPUTE_HIGH_PRIORITY_AMOUNT)):
        return "high"
    if amount > Decimal(str(settings.DISPUTE_MEDIUM_PRIORITY_AMOUNT)):
        return "medium"
    return "low"


def initial_flags(amount: Optional[Decimal], prior_counterparty_disputes: int) -> List[str]:
    flags = []
    if (amount or Decimal(0)) > Decimal(str(settings.DISPUTE_HIGH_VALUE_AMOUNT)):
        flags.append("high_value")
    if prior_counterparty_disputes >= settings.REPEAT_OFFENDER_DISPUTES:
        flags.append("repeat_offender")
    return flags
