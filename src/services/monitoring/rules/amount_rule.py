from typing import List

from src.services.monitoring.rules.base_rule import BaseRule
from src.services.api.schemas import TransactionEvent


class HighValueRule(BaseRule):
    """Single transaction at or above the rule's minAmount."""

    def evaluate(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        is_triggered = event.amount >= self.thresholds.min_amount
        return is_triggered, [event] if is_triggered else []


class AmountCeilingRule(BaseRule):
    """Rule with only a maxAmount: matches through BaseRule.check and never on its own."""

    def evaluate(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        return False, []
