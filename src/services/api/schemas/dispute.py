# tradeguard/src/services/api/schemas/dispute.py

from pydantic import BaseModel, ConfigDict, Field, condecimal
from decimal import Decimal
from typing import Optional, List, Literal
from datetime import datetime

DisputeStatus = Literal[
    "Open", "Evidence", "UnderReview", "Arbitration", "PendingResolution", "Resolved", "Rejected", "Cancelled"
]
EvidenceType = Literal["image", "document", "text", "video"]
CommentRole = Literal["buyer", "seller", "admin", "arbitrator"]
Decision = Literal["buyer", "seller", "partial", "rejected"]
DisputeFlag = Literal["fraud", "urgent", "repeat_offender", "high_value"]


class EvidenceIn(BaseModel):
    type: EvidenceType
    content: str = Field(..., min_length=1, description="URL for media, text body for text evidence")
    description: str = ""


class DisputeCreate(BaseModel):
    ticket_id: str
    filer_id: str
    counterparty_id: str
    reason: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    initial_evidence: List[EvidenceIn] = Field(default_factory=list)


class EvidenceSubmit(EvidenceIn):
    user_id: str


class CommentCreate(BaseModel):
    user_id: str
    role: CommentRole
    message: str = Field(..., min_length=1)
    is_private: bool = False


class DisputeStatusUpdate(BaseModel):
    actor_id: str
    status: DisputeStatus
    message: Optional[str] = None


class ResolutionDecision(BaseModel):
    decision: Decision
    reason: str = Field(..., min_length=1)
    buyer_refund_amount: Optional[condecimal(ge=0, decimal_places=2)] = None
    seller_payment_amount: Optional[condecimal(ge=0, decimal_places=2)] = None
    additional_notes: Optional[str] = None


class ResolveRequest(BaseModel):
    admin_id: str
    resolution: ResolutionDecision


class EscalateRequest(BaseModel):
    admin_id: str
    reason: str = Field(..., min_length=1)


class DisputeFlagRequest(BaseModel):
    actor_id: str
    flag: DisputeFlag


class EvidenceResponse(BaseModel):
    evidence_id: str
    user_id: str
    type: EvidenceType
    content: str
    description: str
    submitted_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommentResponse(BaseModel):
    comment_id: str
    user_id: str
    role: CommentRole
    message: str
    is_private: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimelineEntryResponse(BaseModel):
    status: DisputeStatus
    timestamp: datetime
    message: Optional[str] = None
    actor_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ResolutionResponse(BaseModel):
    decision: Decision
    reason: str
    resolved_by: str
    resolved_at: datetime
    buyer_refund_amount: Optional[Decimal] = None
    seller_payment_amount: Optional[Decimal] = None
    additional_notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DisputeResponse(BaseModel):
    dispute_id: str
    ticket_id: str
    user_id: str
    counterparty_id: str
    reason: str
    description: str
    status: DisputeStatus
    priority: Literal["low", "medium", "high"]
    flags: List[DisputeFlag]
    escalated_to_arbitration: bool
    escalated_at: Optional[datetime] = None
    trade_sync_pending: bool
    created_at: datetime
    updated_at: datetime
    evidence: List[EvidenceResponse] = Field(default_factory=list)
    comments: List[CommentResponse] = Field(default_factory=list)
    timeline: List[TimelineEntryResponse] = Field(default_factory=list)
    resolution: Optional[ResolutionResponse] = None

    model_config = ConfigDict(from_attributes=True)


class CreatedResponse(BaseModel):
    id: str
