# tradeguard/src/models/audit_models.py

from sqlalchemy import Column, String, Integer, JSON
from src.models.base import Base, UTCDateTime, utcnow


class AuditRecord(Base):
    __tablename__ = "audit_log"

    audit_id = Column(Integer, primary_key=True, autoincrement=True)
    operation = Column(String(50), nullable=False, index=True)
    resource_type = Column(String(30), nullable=False)
    resource_id = Column(String(64), nullable=False, index=True)
    actor_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    recorded_at = Column(UTCDateTime, default=utcnow, nullable=False)
