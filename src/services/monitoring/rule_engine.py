import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from src.common.errors import InvalidRule
from src.services.api.schemas import AlertCreate, MonitoringRuleSchema, SkippedRule, TransactionEvent
from src.services.monitoring.rules.amount_rule import AmountCeilingRule, HighValueRule
from src.services.monitoring.rules.base_rule import BaseRule
from src.services.monitoring.rules.counterparty_rule import MultipleCounterpartiesRule
from src.services.monitoring.rules.escalating_rule import EscalatingAmountsRule
from src.services.monitoring.rules.rapid_rule import RapidTransactionsRule
from src.services.monitoring.rules.unusual_hours_rule import UnusualHoursRule

logger = logging.getLogger(__name__)

PATTERN_RULES = {
    "rapid": RapidTransactionsRule,
    "escalating": EscalatingAmountsRule,
    "unusual-hours": UnusualHoursRule,
    "multiple-counterparties": MultipleCounterpartiesRule,
}


def build_rule(config: MonitoringRuleSchema) -> BaseRule:
    """Instantiates the matcher for a stored rule, raising InvalidRule for unusable configuration."""
    thresholds = config.thresholds
    if thresholds.pattern_type is not None:
        return PATTERN_RULES[thresholds.pattern_type](config)
    # A volume rule that also sets minAmount only counts when the transaction reaches it
    if thresholds.max_transactions is not None:
        return RapidTransactionsRule(config)
    if thresholds.min_amount is not None:
        return HighValueRule(config)
    if thresholds.max_amount is not None:
        return AmountCeilingRule(config)
    raise InvalidRule(f"Rule {config.rule_id} defines no pattern and no amount or count threshold")


@dataclass
class EvaluationResult:
    alerts: List[AlertCreate] = field(default_factory=list)
    skipped: List[SkippedRule] = field(default_factory=list)


class RuleEngine:
    """
    Deterministic single-pass evaluation of a completed transaction against the
    enabled monitoring rules. Emits one alert candidate per matching rule.

    The caller supplies the user's history covering the largest enabled window
    and de-duplicates candidates against open alerts before persisting them.
    """

    def evaluate(
        self,
        transaction: TransactionEvent,
        history: List[TransactionEvent],
        rules: List[MonitoringRuleSchema],
        detected_at: datetime | None = None,
    ) -> EvaluationResult:
        result = EvaluationResult()
        detected_at = detected_at or transaction.occurred_at()

        for config in rules:
            if not config.enabled:
                continue
            try:
                rule = build_rule(config)
            except InvalidRule as e:
                logger.warning(f"Skipping rule {config.rule_id}: {e.message}")
                result.skipped.append(SkippedRule(rule_id=config.rule_id, reason=e.message))
                continue

            is_triggered, matched = rule.check(transaction, history)
            if not is_triggered:
                continue

            result.alerts.append(
                AlertCreate(
                    user_id=transaction.user_id,
                    rule_id=rule.rule_id,
                    rule_name=rule.name,
                    severity=rule.severity,
                    transactions=[tx.transaction_id for tx in matched] or [transaction.transaction_id],
                    detected_at=detected_at,
                )
            )

        if result.alerts:
            logger.info(
                f"Transaction {transaction.transaction_id} matched {len(result.alerts)} rule(s): "
                f"{', '.join(a.rule_name for a in result.alerts)}"
            )
        return result

    @staticmethod
    def history_window_minutes(rules: List[MonitoringRuleSchema]) -> int:
        """Largest window among enabled, well-formed rules: how much history the caller must load."""
        windows = [r.thresholds.time_window_minutes for r in rules if r.enabled and r.thresholds.time_window_minutes > 0]
        return max(windows, default=0)
