# tradeguard/src/models/trade_models.py
"""
Trade (escrow ticket) ORM model. Completed trades are the transactions the
monitoring rules evaluate; disputes only ever signal a new status on them.
"""
from sqlalchemy import Column, String, DECIMAL, ForeignKey
from src.models.base import Base, UTCDateTime, new_id, utcnow


class Trade(Base):
    __tablename__ = "trades"

    trade_id = Column(String(36), primary_key=True, default=new_id, index=True)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    counterparty_id = Column(String(36), ForeignKey("users.user_id"), nullable=True, index=True)
    amount = Column(DECIMAL(14, 2), nullable=False)
    currency = Column(String(3), default="ZAR", nullable=False)
    status = Column(String(20), default="Open", nullable=False)
    dispute_id = Column(String(36), nullable=True)
    resolution = Column(String(20), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False, index=True)
    completed_at = Column(UTCDateTime, nullable=True, index=True)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
