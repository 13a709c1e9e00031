# tradeguard/src/models/__init__.py
# For convenient imports like `from src.models import Dispute`
from .base import Base
from .user_models import User
from .trade_models import Trade
from .monitoring_models import MonitoringRule, TransactionAlert
from .dispute_models import Dispute, DisputeEvidence, DisputeComment, DisputeTimelineEntry, DisputeResolution
from .audit_models import AuditRecord
