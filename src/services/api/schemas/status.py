# tradeguard/src/services/api/schemas/status.py

from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime
from decimal import Decimal


class TradingStatus(BaseModel):
    status: Literal["normal", "restricted"]
    alerts: int
    critical_alerts: int
    is_flagged: bool
    reason: Optional[str] = None


class AccountFlag(BaseModel):
    user_id: str
    reason: str
    flagged_by: str
    flagged_at: datetime


class FlagRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    flagged_by: str


class TransactionMetrics(BaseModel):
    total_transactions: int
    total_amount: Decimal
    avg_amount: Decimal
    first_transaction: Optional[datetime] = None
    last_transaction: Optional[datetime] = None


class AlertMetrics(BaseModel):
    total_alerts: int
    high_severity_alerts: int
    recent_alerts: int = Field(..., description="Alerts detected in the last RISK_REPORT_RECENT_DAYS days")


class RiskAssessment(BaseModel):
    risk_score: int = Field(..., ge=0, le=100)
    risk_level: Literal["low", "medium", "high", "extreme"]
    risk_factors: List[str] = Field(default_factory=list)


class UserRiskReport(BaseModel):
    user_id: str
    generated_at: datetime
    transaction_metrics: TransactionMetrics
    alert_metrics: AlertMetrics
    risk_assessment: RiskAssessment
