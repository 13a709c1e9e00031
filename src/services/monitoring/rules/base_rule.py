from abc import ABC, abstractmethod
from datetime import timedelta
from typing import List

from src.common.errors import InvalidRule
from src.services.api.schemas import MonitoringRuleSchema, TransactionEvent


class BaseRule(ABC):
    def __init__(self, config: MonitoringRuleSchema):
        if config.thresholds.time_window_minutes <= 0:
            raise InvalidRule(
                f"Rule {config.rule_id} has non-positive timeWindowMinutes "
                f"({config.thresholds.time_window_minutes})"
            )
        self.config = config
        self.rule_id = config.rule_id
        self.name = config.name
        self.severity = config.severity
        self.thresholds = config.thresholds

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.thresholds.time_window_minutes)

    def transactions_in_window(
        self, event: TransactionEvent, history: List[TransactionEvent]
    ) -> List[TransactionEvent]:
        """
        The user's transactions in [t - window, t], including the triggering one,
        de-duplicated by id and ordered by time.
        """
        end = event.occurred_at()
        start = end - self.window
        by_id = {}
        for tx in history:
            if tx.user_id == event.user_id and start <= tx.occurred_at() <= end:
                by_id[tx.transaction_id] = tx
        by_id[event.transaction_id] = event
        return sorted(by_id.values(), key=lambda tx: (tx.occurred_at(), tx.transaction_id))

    def passes_amount_gate(self, event: TransactionEvent) -> bool:
        min_amount = self.thresholds.min_amount
        return min_amount is None or event.amount >= min_amount

    def exceeds_max_amount(self, event: TransactionEvent) -> bool:
        max_amount = self.thresholds.max_amount
        return max_amount is not None and event.amount > max_amount

    def check(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        """
        Applies the amount thresholds shared by every rule, then the rule itself.
        Below minAmount nothing matches; above maxAmount the transaction alone matches.
        """
        if not self.passes_amount_gate(event):
            return False, []
        if self.exceeds_max_amount(event):
            return True, [event]
        return self.evaluate(event, history)

    @abstractmethod
    def evaluate(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        """
        Evaluates the rule against the transaction and the user's recent history.
        Returns (is_triggered, matched_transactions).
        """
        pass
