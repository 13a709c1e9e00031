from decimal import Decimal
from typing import List

from src.common.config import settings
from src.services.monitoring.rules.base_rule import BaseRule
from src.services.api.schemas import MonitoringRuleSchema, TransactionEvent


class EscalatingAmountsRule(BaseRule):
    """
    A run of non-decreasing amounts that ends at the triggering transaction,
    at least `min_run` long, whose last amount is `factor` times the first.
    """

    def __init__(self, config: MonitoringRuleSchema, min_run: int | None = None, factor: float | None = None):
        super().__init__(config)
        self.min_run = min_run or settings.ESCALATION_MIN_RUN
        self.factor = Decimal(str(factor or settings.ESCALATION_FACTOR))

    def evaluate(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        recent = self.transactions_in_window(event, history)
        # Only the part of the window up to and including the triggering transaction
        end = next(i for i, tx in enumerate(recent) if tx.transaction_id == event.transaction_id)
        run = [recent[end]]
        for tx in reversed(recent[:end]):
            if tx.amount > run[0].amount:
                break
            run.insert(0, tx)

        if len(run) < self.min_run:
            return False, []

        first, last = run[0].amount, run[-1].amount
        if first <= 0:
            is_triggered = last > 0
        else:
            is_triggered = last >= first * self.factor
        return is_triggered, run if is_triggered else []
