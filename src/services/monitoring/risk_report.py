from datetime import datetime, timedelta
from decimal import Decimal

from src.common.config import settings
from src.models.base import utcnow
from src.services.api.schemas import UserRiskReport
from src.services.api.schemas.status import AlertMetrics, RiskAssessment, TransactionMetrics
from src.services.integrations.trades import SqlTradeService
from src.services.monitoring.alert_lifecycle import AlertService, ELEVATED_SEVERITIES

ALERT_WEIGHT = 5
HIGH_SEVERITY_WEIGHT = 15
# Lower bounds, checked from the top
RISK_LEVELS = ((80, "extreme"), (50, "high"), (20, "medium"))


def risk_level_for(score: int) -> str:
    for floor, level in RISK_LEVELS:
        if score >= floor:
            return level
    return "low"


class UserRiskReporter:
    """
    Read-only summary of a user's recent trading and alert history with an
    alert-based risk score: 5 points per alert plus 15 per high or critical
    alert, capped at 100.
    """

    def __init__(self, trade_service: SqlTradeService, alert_service: AlertService):
        self.trade_service = trade_service
        self.alert_service = alert_service

    async def generate(self, user_id: str, now: datetime | None = None) -> UserRiskReport:
        now = now or utcnow()
        trades = await self.trade_service.recent_trades(user_id, settings.RISK_REPORT_TRADE_LIMIT)
        alerts = await self.alert_service.alerts_for_user(user_id)

        total_amount = sum((t.amount for t in trades), Decimal("0"))
        avg_amount = (total_amount / len(trades)).quantize(Decimal("0.01")) if trades else Decimal("0")

        high_severity = sum(1 for a in alerts if a.severity in ELEVATED_SEVERITIES)
        recent_since = now - timedelta(days=settings.RISK_REPORT_RECENT_DAYS)
        recent = sum(1 for a in alerts if a.detected_at >= recent_since)

        score = min(100, len(alerts) * ALERT_WEIGHT + high_severity * HIGH_SEVERITY_WEIGHT)
        factors = []
        if alerts:
            factors.append(f"{len(alerts)} security alerts detected")
        if high_severity:
            factors.append(f"{high_severity} high-severity alerts detected")

        return UserRiskReport(
            user_id=user_id,
            generated_at=now,
            transaction_metrics=TransactionMetrics(
                total_transactions=len(trades),
                total_amount=total_amount,
                avg_amount=avg_amount,
                # trades are newest first
                first_transaction=trades[-1].created_at if trades else None,
                last_transaction=trades[0].created_at if trades else None,
            ),
            alert_metrics=AlertMetrics(
                total_alerts=len(alerts),
                high_severity_alerts=high_severity,
                recent_alerts=recent,
            ),
            risk_assessment=RiskAssessment(risk_score=score, risk_level=risk_level_for(score), risk_factors=factors),
        )
