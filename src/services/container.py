# tradeguard/src/services/container.py
"""
Wires the engine's services around one session factory. The API lifespan and
the monitoring worker each build one of these at startup.
"""
from dataclasses import dataclass

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.services.disputes.notifications import DisputeNotifier
from src.services.disputes.workflow import DisputeWorkflow
from src.services.integrations.audit import Auditor, AuditSink, SqlAuditSink
from src.services.integrations.notifications import NotificationSink, Notifier
from src.services.integrations.roles import RoleDirectory, SqlRoleDirectory
from src.services.integrations.trades import SqlTradeService
from src.services.monitoring.account_flags import AccountFlagRegistry
from src.services.monitoring.alert_lifecycle import AlertService
from src.services.monitoring.monitor import TransactionMonitor
from src.services.monitoring.risk_report import UserRiskReporter
from src.services.monitoring.rule_store import RuleStore
from src.services.monitoring.trading_status import TradingStatusAggregator


@dataclass
class EngineServices:
    session_factory: async_sessionmaker
    rule_store: RuleStore
    alert_service: AlertService
    monitor: TransactionMonitor
    flags: AccountFlagRegistry
    trading_status: TradingStatusAggregator
    disputes: DisputeWorkflow
    trade_service: SqlTradeService
    risk_reports: UserRiskReporter


def build_services(
    session_factory: async_sessionmaker,
    redis_client: redis.Redis,
    notification_sink: NotificationSink,
    audit_sink: AuditSink | None = None,
    role_directory: RoleDirectory | None = None,
) -> EngineServices:
    auditor = Auditor(audit_sink or SqlAuditSink(session_factory))
    notifier = Notifier(notification_sink)
    roles = role_directory or SqlRoleDirectory(session_factory)
    trade_service = SqlTradeService(session_factory)

    rule_store = RuleStore(session_factory, auditor)
    alert_service = AlertService(session_factory, notifier, auditor, roles)
    flags = AccountFlagRegistry(redis_client, auditor)
    return EngineServices(
        session_factory=session_factory,
        rule_store=rule_store,
        alert_service=alert_service,
        monitor=TransactionMonitor(rule_store, alert_service, trade_service),
        flags=flags,
        trading_status=TradingStatusAggregator(alert_service, flags),
        disputes=DisputeWorkflow(session_factory, trade_service, roles, DisputeNotifier(notifier), auditor),
        trade_service=trade_service,
        risk_reports=UserRiskReporter(trade_service, alert_service),
    )
