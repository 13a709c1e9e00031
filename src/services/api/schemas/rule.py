# tradeguard/src/services/api/schemas/rule.py

from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, Literal
from datetime import datetime

from .alert import Severity

PatternType = Literal["rapid", "escalating", "unusual-hours", "multiple-counterparties"]


class RuleThresholds(BaseModel):
    # Deliberately unconstrained: stored rules are validated by the engine, which skips bad ones
    time_window_minutes: int
    max_transactions: Optional[int] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    max_counterparties: Optional[int] = None
    pattern_type: Optional[PatternType] = None


class MonitoringRuleSchema(BaseModel):
    rule_id: str
    name: str
    description: str = ""
    severity: Severity
    enabled: bool = True
    thresholds: RuleThresholds

    @classmethod
    def from_record(cls, record) -> "MonitoringRuleSchema":
        return cls(
            rule_id=record.rule_id,
            name=record.name,
            description=record.description or "",
            severity=record.severity,
            enabled=record.enabled,
            thresholds=RuleThresholds(
                time_window_minutes=record.time_window_minutes,
                max_transactions=record.max_transactions,
                min_amount=record.min_amount,
                max_amount=record.max_amount,
                max_counterparties=record.max_counterparties,
                pattern_type=record.pattern_type,
            ),
        )


class RuleCreate(BaseModel):
    rule_id: Optional[str] = Field(None, description="Optional stable id, generated when omitted")
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    severity: Severity = "medium"
    enabled: bool = True
    thresholds: RuleThresholds


class RuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    severity: Optional[Severity] = None
    enabled: Optional[bool] = None
    thresholds: Optional[RuleThresholds] = None


class RuleResponse(MonitoringRuleSchema):
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record) -> "RuleResponse":
        base = MonitoringRuleSchema.from_record(record)
        return cls(**base.model_dump(), created_at=record.created_at, updated_at=record.updated_at)
