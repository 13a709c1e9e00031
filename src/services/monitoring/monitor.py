import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from src.services.api.schemas import TransactionEvent
from src.services.integrations.trades import SqlTradeService
from src.services.monitoring.alert_lifecycle import AlertService, RecordedAlerts
from src.services.monitoring.rule_engine import EvaluationResult, RuleEngine
from src.services.monitoring.rule_store import RuleStore

logger = logging.getLogger(__name__)


class TransactionMonitor:
    """Loads the enabled rules and the user's recent trades, evaluates, and optionally records alerts."""

    def __init__(
        self,
        rule_store: RuleStore,
        alert_service: AlertService,
        trade_service: SqlTradeService,
        engine: Optional[RuleEngine] = None,
    ):
        self.rule_store = rule_store
        self.alert_service = alert_service
        self.trade_service = trade_service
        self.engine = engine or RuleEngine()

    async def evaluate(
        self,
        transaction: TransactionEvent,
        history: Optional[List[TransactionEvent]] = None,
        record: bool = False,
    ) -> Tuple[EvaluationResult, Optional[RecordedAlerts]]:
        rules = await self.rule_store.load_enabled_rules()
        if history is None:
            window = RuleEngine.history_window_minutes(rules)
            since = transaction.occurred_at() - timedelta(minutes=window)
            history = await self.trade_service.recent_completed(transaction.user_id, since)

        result = self.engine.evaluate(transaction, history, rules)
        if not record or not result.alerts:
            return result, None

        recorded = await self.alert_service.record_alerts(result.alerts)
        logger.info(
            f"Transaction {transaction.transaction_id}: {len(recorded.created)} new alert(s), "
            f"{len(recorded.merged)} merged into open alerts"
        )
        return result, recorded
