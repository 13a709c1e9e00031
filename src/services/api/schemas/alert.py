# tradeguard/src/services/api/schemas/alert.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal
from datetime import datetime

Severity = Literal["low", "medium", "high", "critical"]
AlertStatus = Literal["new", "under-review", "resolved", "false-positive"]


class AlertCreate(BaseModel):
    user_id: str
    rule_id: str
    rule_name: str
    severity: Severity
    transactions: List[str] = Field(..., min_length=1, description="Evidence set: ids of the matched transactions")
    detected_at: datetime
    status: AlertStatus = "new"


class AlertResponse(AlertCreate):
    alert_id: str
    resolution: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AlertStatusUpdate(BaseModel):
    status: AlertStatus
    reviewer_id: str
    resolution: Optional[str] = None
