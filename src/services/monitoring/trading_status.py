from src.services.api.schemas import TradingStatus
from src.services.monitoring.account_flags import AccountFlagRegistry
from src.services.monitoring.alert_lifecycle import AlertService, ELEVATED_SEVERITIES, SEVERITY_RANK


class TradingStatusAggregator:
    """
    Read-only projection of a user's open alerts and account flag into a
    normal/restricted trading status. Never writes, so it needs no locking and
    may reflect a slightly stale snapshot.
    """

    def __init__(self, alert_service: AlertService, flags: AccountFlagRegistry):
        self.alert_service = alert_service
        self.flags = flags

    async def compute_status(self, user_id: str) -> TradingStatus:
        open_alerts = await self.alert_service.open_alerts_for_user(user_id)
        flag = await self.flags.get_flag(user_id)

        critical_alerts = sum(1 for a in open_alerts if a.severity in ELEVATED_SEVERITIES)
        is_flagged = flag is not None

        reason = None
        if is_flagged:
            reason = flag.reason or "Account flagged for review"
        elif open_alerts:
            # Ties go to the earliest alert; open_alerts is ordered by detection time
            _, worst = max(enumerate(open_alerts), key=lambda p: (SEVERITY_RANK.get(p[1].severity, 0), -p[0]))
            reason = worst.rule_name

        return TradingStatus(
            status="restricted" if critical_alerts > 0 or is_flagged else "normal",
            alerts=len(open_alerts),
            critical_alerts=critical_alerts,
            is_flagged=is_flagged,
            reason=reason,
        )
