# tradeguard/src/services/api/api/endpoints_v1.py

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
import logging

from src.services.api.schemas import (
    AccountFlag,
    AlertResponse,
    AlertStatusUpdate,
    CommentCreate,
    CreatedResponse,
    DisputeCreate,
    DisputeFlagRequest,
    DisputeResponse,
    DisputeStatusUpdate,
    EscalateRequest,
    EvaluateRequest,
    EvaluationResponse,
    EvidenceIn,
    EvidenceSubmit,
    FlagRequest,
    ResolveRequest,
    RuleCreate,
    RuleResponse,
    RuleUpdate,
    TradingStatus,
    UserRiskReport,
)
from src.services.api.dependencies import get_services
from src.services.container import EngineServices

LOG = logging.getLogger("tradeguard.api")

router = APIRouter()

# ----------------------
# Monitoring Rule Endpoints
# ----------------------
@router.post("/rules", response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule_endpoint(rule: RuleCreate, services: EngineServices = Depends(get_services)):
    record = await services.rule_store.create_rule(rule, actor_id="api")
    return RuleResponse.from_record(record)

@router.get("/rules", response_model=List[RuleResponse])
async def list_rules_endpoint(enabled_only: bool = False, services: EngineServices = Depends(get_services)):
    return [RuleResponse.from_record(r) for r in await services.rule_store.list_rules(enabled_only)]

@router.get("/rules/{rule_id}", response_model=RuleResponse)
async def get_rule_endpoint(rule_id: str, services: EngineServices = Depends(get_services)):
    return RuleResponse.from_record(await services.rule_store.get_rule(rule_id))

@router.patch("/rules/{rule_id}", response_model=RuleResponse)
async def update_rule_endpoint(rule_id: str, updates: RuleUpdate, services: EngineServices = Depends(get_services)):
    record = await services.rule_store.update_rule(rule_id, updates, actor_id="api")
    return RuleResponse.from_record(record)

@router.post("/rules/{rule_id}/enable", response_model=RuleResponse)
async def enable_rule_endpoint(rule_id: str, services: EngineServices = Depends(get_services)):
    return RuleResponse.from_record(await services.rule_store.set_rule_enabled(rule_id, True, actor_id="api"))

@router.post("/rules/{rule_id}/disable", response_model=RuleResponse)
async def disable_rule_endpoint(rule_id: str, services: EngineServices = Depends(get_services)):
    return RuleResponse.from_record(await services.rule_store.set_rule_enabled(rule_id, False, actor_id="api"))

# ----------------------
# Transaction Evaluation
# ----------------------
@router.post("/transactions/evaluate", response_model=EvaluationResponse)
async def evaluate_transaction_endpoint(request: EvaluateRequest, services: EngineServices = Depends(get_services)):
    """
    Evaluates a completed transaction against the enabled rules. When `record`
    is set the alerts are stored, merging into the user's open alerts per rule.
    """
    result, recorded = await services.monitor.evaluate(request.transaction, request.history, request.record)
    recorded_ids = []
    if recorded is not None:
        recorded_ids = [a.alert_id for a in recorded.created + recorded.merged]
    return EvaluationResponse(alerts=result.alerts, skipped_rules=result.skipped, recorded_alert_ids=recorded_ids)

# ----------------------
# Alert Endpoints
# ----------------------
@router.get("/alerts", response_model=List[AlertResponse])
async def list_alerts_endpoint(
    user_id: Optional[str] = None,
    alert_status: Optional[str] = Query(None, alias="status"),
    severity: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    services: EngineServices = Depends(get_services),
):
    return await services.alert_service.list_alerts(user_id, alert_status, severity, limit)

@router.get("/alerts/{alert_id}", response_model=AlertResponse)
async def get_alert_endpoint(alert_id: str, services: EngineServices = Depends(get_services)):
    return await services.alert_service.get_alert(alert_id)

@router.patch("/alerts/{alert_id}/status", response_model=AlertResponse)
async def update_alert_status_endpoint(
    alert_id: str,
    update: AlertStatusUpdate,
    services: EngineServices = Depends(get_services),
):
    return await services.alert_service.update_status(alert_id, update.status, update.resolution, update.reviewer_id)

# ----------------------
# Trading Status & Account Flags
# ----------------------
@router.get("/users/{user_id}/trading-status", response_model=TradingStatus)
async def trading_status_endpoint(user_id: str, services: EngineServices = Depends(get_services)):
    return await services.trading_status.compute_status(user_id)

@router.get("/users/{user_id}/risk-report", response_model=UserRiskReport)
async def risk_report_endpoint(user_id: str, services: EngineServices = Depends(get_services)):
    """Trade and alert metrics for the user with an alert-based risk score."""
    return await services.risk_reports.generate(user_id)

@router.post("/users/{user_id}/flag", response_model=AccountFlag, status_code=status.HTTP_201_CREATED)
async def flag_account_endpoint(user_id: str, flag: FlagRequest, services: EngineServices = Depends(get_services)):
    LOG.info("Flagging account %s by %s", user_id, flag.flagged_by)
    return await services.flags.flag_account(user_id, flag.reason, flag.flagged_by)

@router.delete("/users/{user_id}/flag")
async def unflag_account_endpoint(user_id: str, actor_id: str, services: EngineServices = Depends(get_services)):
    removed = await services.flags.unflag_account(user_id, actor_id)
    return {"user_id": user_id, "removed": removed}

# ----------------------
# Dispute Endpoints
# ----------------------
@router.post("/disputes", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
async def create_dispute_endpoint(dispute: DisputeCreate, services: EngineServices = Depends(get_services)):
    dispute_id = await services.disputes.create_dispute(dispute)
    return await services.disputes.get_dispute(dispute_id)

@router.get("/disputes", response_model=List[DisputeResponse])
async def list_disputes_endpoint(
    user_id: Optional[str] = None,
    dispute_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    services: EngineServices = Depends(get_services),
):
    return await services.disputes.list_disputes(user_id, dispute_status, limit)

@router.post("/disputes/reconcile")
async def reconcile_pending_endpoint(services: EngineServices = Depends(get_services)):
    """Re-applies trade status updates that failed after their dispute change committed."""
    return {"repaired": await services.disputes.reconcile_pending()}

@router.get("/disputes/{dispute_id}", response_model=DisputeResponse)
async def get_dispute_endpoint(dispute_id: str, services: EngineServices = Depends(get_services)):
    return await services.disputes.get_dispute(dispute_id)

@router.post("/disputes/{dispute_id}/evidence", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def submit_evidence_endpoint(
    dispute_id: str,
    evidence: EvidenceSubmit,
    services: EngineServices = Depends(get_services),
):
    item = EvidenceIn(type=evidence.type, content=evidence.content, description=evidence.description)
    return CreatedResponse(id=await services.disputes.submit_evidence(dispute_id, evidence.user_id, item))

@router.post("/disputes/{dispute_id}/comments", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_comment_endpoint(
    dispute_id: str,
    comment: CommentCreate,
    services: EngineServices = Depends(get_services),
):
    comment_id = await services.disputes.add_comment(
        dispute_id, comment.user_id, comment.role, comment.message, comment.is_private
    )
    return CreatedResponse(id=comment_id)

@router.patch("/disputes/{dispute_id}/status", response_model=DisputeResponse)
async def update_dispute_status_endpoint(
    dispute_id: str,
    update: DisputeStatusUpdate,
    services: EngineServices = Depends(get_services),
):
    return await services.disputes.update_status(dispute_id, update.actor_id, update.status, update.message)

@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute_endpoint(
    dispute_id: str,
    request: ResolveRequest,
    services: EngineServices = Depends(get_services),
):
    return await services.disputes.resolve(dispute_id, request.admin_id, request.resolution)

@router.post("/disputes/{dispute_id}/escalate", response_model=DisputeResponse)
async def escalate_dispute_endpoint(
    dispute_id: str,
    request: EscalateRequest,
    services: EngineServices = Depends(get_services),
):
    return await services.disputes.escalate_to_arbitration(dispute_id, request.admin_id, request.reason)

@router.post("/disputes/{dispute_id}/flags", response_model=DisputeResponse)
async def flag_dispute_endpoint(
    dispute_id: str,
    request: DisputeFlagRequest,
    services: EngineServices = Depends(get_services),
):
    return await services.disputes.add_flag(dispute_id, request.actor_id, request.flag)

@router.post("/disputes/{dispute_id}/reconcile")
async def reconcile_dispute_endpoint(dispute_id: str, services: EngineServices = Depends(get_services)):
    return {"dispute_id": dispute_id, "synced": await services.disputes.reconcile_trade(dispute_id)}

@router.get("/disputes/{dispute_id}/consistency")
async def timeline_consistency_endpoint(dispute_id: str, services: EngineServices = Depends(get_services)):
    return {"dispute_id": dispute_id, "consistent": await services.disputes.check_timeline_consistency(dispute_id)}
