# tradeguard/src/models/monitoring_models.py
"""
Monitoring ORM models: MonitoringRule and TransactionAlert.

Both carry a version column that SQLAlchemy checks on every UPDATE, so a
writer working from a stale read fails instead of overwriting.
"""
from sqlalchemy import Column, String, Boolean, Integer, Text, DECIMAL, JSON, Index
from src.models.base import Base, UTCDateTime, new_id, utcnow


class MonitoringRule(Base):
    __tablename__ = "monitoring_rules"

    rule_id = Column(String(64), primary_key=True, default=new_id, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, default="", nullable=False)
    severity = Column(String(10), default="medium", nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    time_window_minutes = Column(Integer, nullable=False)
    max_transactions = Column(Integer, nullable=True)
    min_amount = Column(DECIMAL(14, 2), nullable=True)
    max_amount = Column(DECIMAL(14, 2), nullable=True)
    max_counterparties = Column(Integer, nullable=True)
    pattern_type = Column(String(30), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class TransactionAlert(Base):
    __tablename__ = "transaction_alerts"

    alert_id = Column(String(36), primary_key=True, default=new_id, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    rule_id = Column(String(64), nullable=False, index=True)
    # Copied from the rule when the alert is raised and never updated
    rule_name = Column(String(100), nullable=False)
    severity = Column(String(10), nullable=False)
    transactions = Column(JSON, nullable=False, default=list)
    detected_at = Column(UTCDateTime, default=utcnow, nullable=False)
    status = Column(String(20), default="new", nullable=False)
    # "<user_id>:<rule_id>" while the alert is open, NULL once terminal
    open_key = Column(String(128), unique=True, nullable=True)
    resolution = Column(Text, nullable=True)
    reviewed_by = Column(String(36), nullable=True)
    reviewed_at = Column(UTCDateTime, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("idx_alert_user_status", "user_id", "status"),
        Index("idx_alert_user_rule_status", "user_id", "rule_id", "status"),
    )
