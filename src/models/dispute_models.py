# tradeguard/src/models/dispute_models.py
"""
Dispute ORM models.

Evidence, comments and timeline entries live in their own tables and are only
ever inserted, so concurrent submissions from both parties never overwrite
each other. The dispute row itself is version-checked on every update.
"""
from sqlalchemy import Column, String, Boolean, Integer, Text, DECIMAL, JSON, ForeignKey
from sqlalchemy.orm import relationship
from src.models.base import Base, UTCDateTime, new_id, utcnow


class Dispute(Base):
    __tablename__ = "disputes"

    dispute_id = Column(String(36), primary_key=True, default=new_id, index=True)
    ticket_id = Column(String(36), nullable=False, index=True)
    # Equal to ticket_id while the dispute is open, NULL once terminal
    open_ticket_id = Column(String(36), unique=True, nullable=True)
    user_id = Column(String(36), nullable=False, index=True)
    counterparty_id = Column(String(36), nullable=False, index=True)
    reason = Column(String(255), nullable=False)
    description = Column(Text, default="", nullable=False)
    status = Column(String(20), default="Open", nullable=False, index=True)
    priority = Column(String(10), default="low", nullable=False)
    flags = Column(JSON, nullable=False, default=list)
    escalated_to_arbitration = Column(Boolean, default=False, nullable=False)
    escalated_at = Column(UTCDateTime, nullable=True)
    trade_sync_pending = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    evidence = relationship("DisputeEvidence", lazy="selectin", order_by="DisputeEvidence.seq")
    comments = relationship("DisputeComment", lazy="selectin", order_by="DisputeComment.seq")
    timeline = relationship("DisputeTimelineEntry", lazy="selectin", order_by="DisputeTimelineEntry.seq")
    resolution = relationship("DisputeResolution", lazy="selectin", uselist=False)

    __mapper_args__ = {"version_id_col": version}


class DisputeEvidence(Base):
    __tablename__ = "dispute_evidence"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    evidence_id = Column(String(36), unique=True, default=new_id, nullable=False)
    dispute_id = Column(String(36), ForeignKey("disputes.dispute_id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    type = Column(String(10), nullable=False)
    content = Column(Text, nullable=False)
    description = Column(Text, default="", nullable=False)
    submitted_at = Column(UTCDateTime, default=utcnow, nullable=False)


class DisputeComment(Base):
    __tablename__ = "dispute_comments"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    comment_id = Column(String(36), unique=True, default=new_id, nullable=False)
    dispute_id = Column(String(36), ForeignKey("disputes.dispute_id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    role = Column(String(12), nullable=False)
    message = Column(Text, nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)


class DisputeTimelineEntry(Base):
    __tablename__ = "dispute_timeline"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    dispute_id = Column(String(36), ForeignKey("disputes.dispute_id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    actor_id = Column(String(36), nullable=True)
    message = Column(Text, nullable=True)
    timestamp = Column(UTCDateTime, default=utcnow, nullable=False)


class DisputeResolution(Base):
    __tablename__ = "dispute_resolutions"

    resolution_id = Column(String(36), primary_key=True, default=new_id)
    # Unique: a dispute is resolved exactly once
    dispute_id = Column(String(36), ForeignKey("disputes.dispute_id"), unique=True, nullable=False)
    decision = Column(String(10), nullable=False)
    reason = Column(Text, nullable=False)
    resolved_by = Column(String(36), nullable=False)
    resolved_at = Column(UTCDateTime, default=utcnow, nullable=False)
    buyer_refund_amount = Column(DECIMAL(14, 2), nullable=True)
    seller_payment_amount = Column(DECIMAL(14, 2), nullable=True)
    additional_notes = Column(Text, nullable=True)
