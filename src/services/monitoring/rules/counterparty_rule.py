from typing import List

from src.common.config import settings
from src.services.monitoring.rules.base_rule import BaseRule
from src.services.api.schemas import MonitoringRuleSchema, TransactionEvent


class MultipleCounterpartiesRule(BaseRule):
    def __init__(self, config: MonitoringRuleSchema):
        super().__init__(config)
        self.max_counterparties = config.thresholds.max_counterparties or settings.COUNTERPARTY_DEFAULT_THRESHOLD

    def evaluate(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        matched = [tx for tx in self.transactions_in_window(event, history) if tx.counterparty_id]
        distinct = {tx.counterparty_id for tx in matched}
        is_triggered = len(distinct) >= self.max_counterparties
        return is_triggered, matched if is_triggered else []
