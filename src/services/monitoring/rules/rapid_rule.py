from typing import List

from src.common.config import settings
from src.services.monitoring.rules.base_rule import BaseRule
from src.services.api.schemas import MonitoringRuleSchema, TransactionEvent


class RapidTransactionsRule(BaseRule):
    """Too many transactions inside the window. Also backs plain volume rules."""

    def __init__(self, config: MonitoringRuleSchema):
        super().__init__(config)
        self.max_transactions = config.thresholds.max_transactions or settings.RAPID_DEFAULT_MAX_TRANSACTIONS

    def evaluate(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        recent = self.transactions_in_window(event, history)
        is_triggered = len(recent) >= self.max_transactions
        return is_triggered, recent if is_triggered else []
