# tradeguard/src/services/api/schemas/transaction.py

from pydantic import BaseModel, Field, condecimal
from typing import Optional, List
from datetime import datetime, timezone

from .alert import AlertCreate


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionEvent(BaseModel):
    transaction_id: str = Field(..., examples=["trade_abc123"], description="Trade ticket id of the completed transaction")
    user_id: str = Field(..., examples=["user_789"], description="User whose activity is being monitored")
    counterparty_id: Optional[str] = Field(None, examples=["user_456"], description="Other party of the trade")
    amount: condecimal(ge=0) = Field(..., examples=[1500.00], description="Trade amount")
    currency: str = Field("ZAR", min_length=3, max_length=3)
    timestamp: datetime = Field(default_factory=_utcnow, description="When the trade completed (UTC if naive)")

    def occurred_at(self) -> datetime:
        if self.timestamp.tzinfo is None:
            return self.timestamp.replace(tzinfo=timezone.utc)
        return self.timestamp


class EvaluateRequest(BaseModel):
    transaction: TransactionEvent
    history: Optional[List[TransactionEvent]] = Field(
        None, description="Prior transactions of the user; loaded from completed trades when omitted"
    )
    record: bool = Field(False, description="Persist the resulting alerts (deduplicated against open alerts)")


class SkippedRule(BaseModel):
    rule_id: str
    reason: str


class EvaluationResponse(BaseModel):
    alerts: List[AlertCreate]
    skipped_rules: List[SkippedRule] = Field(default_factory=list)
    recorded_alert_ids: List[str] = Field(default_factory=list)

