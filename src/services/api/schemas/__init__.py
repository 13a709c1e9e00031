# tradeguard/src/services/api/schemas/__init__.py

from .alert import AlertCreate, AlertResponse, AlertStatusUpdate
from .rule import RuleThresholds, MonitoringRuleSchema, RuleCreate, RuleUpdate, RuleResponse
from .transaction import TransactionEvent, EvaluateRequest, EvaluationResponse, SkippedRule
from .status import TradingStatus, AccountFlag, FlagRequest, UserRiskReport
from .dispute import (
    EvidenceIn,
    DisputeCreate,
    EvidenceSubmit,
    CommentCreate,
    DisputeStatusUpdate,
    ResolutionDecision,
    ResolveRequest,
    EscalateRequest,
    DisputeFlagRequest,
    DisputeResponse,
    CreatedResponse,
)
