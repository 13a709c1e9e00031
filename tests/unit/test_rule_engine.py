"""Unit tests for the monitoring rule matchers and the rule engine."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.common.errors import InvalidRule
from src.services.api.schemas import MonitoringRuleSchema, RuleThresholds, TransactionEvent
from src.services.monitoring.rule_engine import RuleEngine, build_rule
from src.services.monitoring.rules.amount_rule import AmountCeilingRule, HighValueRule
from src.services.monitoring.rules.escalating_rule import EscalatingAmountsRule
from src.services.monitoring.rules.rapid_rule import RapidTransactionsRule
from src.services.monitoring.rules.unusual_hours_rule import UnusualHoursRule, hour_in_band

NOON = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def rule(rule_id="r1", severity="medium", enabled=True, **thresholds) -> MonitoringRuleSchema:
    thresholds.setdefault("time_window_minutes", 60)
    return MonitoringRuleSchema(
        rule_id=rule_id,
        name=rule_id.replace("-", " ").title(),
        severity=severity,
        enabled=enabled,
        thresholds=RuleThresholds(**thresholds),
    )


def tx(tx_id, minutes=0, amount="100", counterparty=None, user="u1", at=NOON) -> TransactionEvent:
    return TransactionEvent(
        transaction_id=tx_id,
        user_id=user,
        counterparty_id=counterparty,
        amount=Decimal(amount),
        timestamp=at + timedelta(minutes=minutes),
    )


class TestRapidTransactions:
    """maxTransactions within the window, counting the triggering transaction."""

    def test_triggers_at_threshold(self) -> None:
        """N transactions in the window produce exactly one alert listing all N."""
        rapid = rule("rapid", pattern_type="rapid", time_window_minutes=10, max_transactions=3)
        history = [tx("t1", -8), tx("t2", -4)]
        result = RuleEngine().evaluate(tx("t3"), history, [rapid])
        assert len(result.alerts) == 1
        assert result.alerts[0].transactions == ["t1", "t2", "t3"]

    def test_one_below_threshold_does_not_trigger(self) -> None:
        """N-1 transactions in the window produce no alert."""
        rapid = rule("rapid", pattern_type="rapid", time_window_minutes=10, max_transactions=3)
        result = RuleEngine().evaluate(tx("t3"), [tx("t2", -4)], [rapid])
        assert result.alerts == []

    def test_transactions_outside_window_are_ignored(self) -> None:
        """History older than the window does not count."""
        rapid = rule("rapid", pattern_type="rapid", time_window_minutes=10, max_transactions=3)
        history = [tx("t1", -11), tx("t2", -4)]
        assert RuleEngine().evaluate(tx("t3"), history, [rapid]).alerts == []

    def test_other_users_and_duplicates_are_ignored(self) -> None:
        """Only the user's own distinct transactions count towards the threshold."""
        rapid = rule("rapid", pattern_type="rapid", time_window_minutes=10, max_transactions=3)
        event = tx("t3")
        history = [tx("t2", -4), tx("x1", -2, user="u2"), event]
        assert RuleEngine().evaluate(event, history, [rapid]).alerts == []

    def test_min_amount_gates_pattern(self) -> None:
        """A pattern rule with minAmount ignores transactions below it."""
        rapid = rule("rapid", pattern_type="rapid", time_window_minutes=10, max_transactions=2, min_amount=1000)
        history = [tx("t1", -2, amount="5000")]
        assert RuleEngine().evaluate(tx("t2", amount="500"), history, [rapid]).alerts == []
        assert len(RuleEngine().evaluate(tx("t2", amount="1500"), history, [rapid]).alerts) == 1

    def test_volume_rule_without_pattern(self) -> None:
        """maxTransactions alone behaves as a rapid-activity rule."""
        volume = rule("volume", time_window_minutes=30, max_transactions=2)
        result = RuleEngine().evaluate(tx("t2"), [tx("t1", -20)], [volume])
        assert [a.rule_id for a in result.alerts] == ["volume"]


class TestEscalatingAmounts:
    """Non-decreasing run ending at the transaction, last/first at least the factor."""

    def test_escalating_sequence_triggers(self) -> None:
        """100, 200, 300 is a run of three with ratio 3."""
        escalating = rule("escalating", pattern_type="escalating", time_window_minutes=1440)
        history = [tx("t1", -60, "100"), tx("t2", -30, "200")]
        result = RuleEngine().evaluate(tx("t3", amount="300"), history, [escalating])
        assert result.alerts[0].transactions == ["t1", "t2", "t3"]

    def test_flat_growth_below_factor_does_not_trigger(self) -> None:
        """100, 120, 140 never reaches 1.5 times the first amount."""
        escalating = rule("escalating", pattern_type="escalating", time_window_minutes=1440)
        history = [tx("t1", -60, "100"), tx("t2", -30, "120")]
        assert RuleEngine().evaluate(tx("t3", amount="140"), history, [escalating]).alerts == []

    def test_drop_breaks_the_run(self) -> None:
        """A decrease resets the run, leaving only two transactions."""
        escalating = rule("escalating", pattern_type="escalating", time_window_minutes=1440)
        history = [tx("t1", -60, "300"), tx("t2", -30, "100")]
        assert RuleEngine().evaluate(tx("t3", amount="200"), history, [escalating]).alerts == []

    def test_run_starts_after_the_last_drop(self) -> None:
        """Only the run that ends at the transaction is considered."""
        escalating = rule("escalating", pattern_type="escalating", time_window_minutes=1440)
        history = [tx("t0", -90, "900"), tx("t1", -60, "100"), tx("t2", -30, "150")]
        result = RuleEngine().evaluate(tx("t3", amount="400"), history, [escalating])
        assert result.alerts[0].transactions == ["t1", "t2", "t3"]

    def test_custom_run_length_and_factor(self) -> None:
        """Run length and ratio are configurable on the matcher."""
        config = rule("escalating", pattern_type="escalating", time_window_minutes=1440)
        matcher = EscalatingAmountsRule(config, min_run=2, factor=1.1)
        is_triggered, matched = matcher.evaluate(tx("t2", amount="115"), [tx("t1", -10, "100")])
        assert is_triggered
        assert [m.transaction_id for m in matched] == ["t1", "t2"]

    def test_exact_factor_is_enough(self) -> None:
        """100, 120, 150 reaches exactly 1.5 times the first amount and matches."""
        escalating = rule("escalating", pattern_type="escalating", time_window_minutes=1440)
        history = [tx("t1", -60, "100"), tx("t2", -30, "120")]
        assert len(RuleEngine().evaluate(tx("t3", amount="150"), history, [escalating]).alerts) == 1


class TestUnusualHours:
    """Transactions inside the configured off-hours band."""

    @pytest.mark.parametrize(
        "hour,start,end,expected",
        [
            (2, 0, 5, True),
            (5, 0, 5, False),
            (12, 0, 5, False),
            (23, 22, 5, True),
            (3, 22, 5, True),
            (12, 22, 5, False),
            (4, 4, 4, False),
        ],
    )
    def test_hour_in_band(self, hour, start, end, expected) -> None:
        """Bands are [start, end) and wrap past midnight when start > end."""
        assert hour_in_band(hour, start, end) is expected

    def test_night_transaction_triggers(self) -> None:
        """A 02:00 UTC trade falls in the default band."""
        night = rule("unusual-hours", pattern_type="unusual-hours", severity="low")
        result = RuleEngine().evaluate(tx("t1", at=NOON.replace(hour=2)), [], [night])
        assert result.alerts[0].severity == "low"
        assert result.alerts[0].transactions == ["t1"]

    def test_daytime_transaction_does_not_trigger(self) -> None:
        night = rule("unusual-hours", pattern_type="unusual-hours")
        assert RuleEngine().evaluate(tx("t1"), [], [night]).alerts == []

    def test_hours_are_read_in_the_monitoring_timezone(self) -> None:
        """23:30 UTC is 01:30 in Johannesburg."""
        config = rule("unusual-hours", pattern_type="unusual-hours")
        matcher = UnusualHoursRule(config, start_hour=0, end_hour=5, timezone="Africa/Johannesburg")
        is_triggered, _ = matcher.evaluate(tx("t1", at=NOON.replace(hour=23, minute=30)), [])
        assert is_triggered


class TestMultipleCounterparties:
    def test_distinct_counterparties_trigger(self) -> None:
        """Three different counterparties inside the window reach the default threshold."""
        spread = rule("spread", pattern_type="multiple-counterparties")
        history = [tx("t1", -30, counterparty="a"), tx("t2", -20, counterparty="b")]
        result = RuleEngine().evaluate(tx("t3", counterparty="c"), history, [spread])
        assert result.alerts[0].transactions == ["t1", "t2", "t3"]

    def test_repeated_counterparty_counts_once(self) -> None:
        spread = rule("spread", pattern_type="multiple-counterparties")
        history = [tx("t1", -30, counterparty="a"), tx("t2", -20, counterparty="a")]
        assert RuleEngine().evaluate(tx("t3", counterparty="b"), history, [spread]).alerts == []

    def test_threshold_is_configurable(self) -> None:
        spread = rule("spread", pattern_type="multiple-counterparties", max_counterparties=2)
        result = RuleEngine().evaluate(tx("t2", counterparty="b"), [tx("t1", -5, counterparty="a")], [spread])
        assert len(result.alerts) == 1


class TestHighValue:
    def test_amount_only_rule(self) -> None:
        """A rule with only minAmount matches a single large transaction."""
        high = rule("high-value", severity="high", min_amount=10000)
        result = RuleEngine().evaluate(tx("t1", amount="15000"), [], [high])
        assert len(result.alerts) == 1
        assert result.alerts[0].severity == "high"
        assert result.alerts[0].rule_name == "High Value"

    def test_threshold_is_inclusive(self) -> None:
        high = build_rule(rule("high-value", min_amount=10000))
        assert isinstance(high, HighValueRule)
        assert high.evaluate(tx("t1", amount="10000"), [])[0]
        assert not high.evaluate(tx("t1", amount="9999.99"), [])[0]


class TestAmountThresholds:
    """minAmount gates every rule; maxAmount alone is enough to match."""

    def test_max_amount_only_rule(self) -> None:
        ceiling = rule("ceiling", severity="high", max_amount=20000)
        assert isinstance(build_rule(ceiling), AmountCeilingRule)
        result = RuleEngine().evaluate(tx("t1", amount="20000.01"), [], [ceiling])
        assert [a.transactions for a in result.alerts] == [["t1"]]

    def test_max_amount_is_exclusive(self) -> None:
        ceiling = rule("ceiling", max_amount=20000)
        assert RuleEngine().evaluate(tx("t1", amount="20000"), [], [ceiling]).alerts == []

    def test_max_amount_matches_without_the_pattern(self) -> None:
        """A single oversized trade trips a rapid rule even with no history."""
        rapid = rule("rapid", pattern_type="rapid", max_transactions=3, max_amount=50000)
        assert RuleEngine().evaluate(tx("t1", amount="60000"), [], [rapid]).alerts[0].transactions == ["t1"]
        assert RuleEngine().evaluate(tx("t1", amount="40000"), [], [rapid]).alerts == []

    def test_min_amount_gate_applies_before_max_amount(self) -> None:
        banded = rule("banded", min_amount=100000, max_amount=50000)
        assert RuleEngine().evaluate(tx("t1", amount="60000"), [], [banded]).alerts == []

    def test_volume_rule_with_min_amount_counts_only_large_triggers(self) -> None:
        """No pattern, minAmount and maxTransactions together: both apply."""
        gated = rule("gated-volume", min_amount=1000, max_transactions=2)
        assert isinstance(build_rule(gated), RapidTransactionsRule)
        assert RuleEngine().evaluate(tx("t1", amount="5000"), [], [gated]).alerts == []
        history = [tx("t1", -5, amount="200")]
        assert RuleEngine().evaluate(tx("t2", amount="500"), history, [gated]).alerts == []
        result = RuleEngine().evaluate(tx("t2", amount="1500"), history, [gated])
        assert result.alerts[0].transactions == ["t1", "t2"]


class TestRuleEngine:
    """Skipping, ordering and determinism across a batch of rules."""

    def test_malformed_rule_is_skipped_and_reported(self) -> None:
        """A non-positive window is excluded without aborting the other rules."""
        broken = rule("broken", time_window_minutes=0, min_amount=1)
        high = rule("high-value", min_amount=10000)
        result = RuleEngine().evaluate(tx("t1", amount="20000"), [], [broken, high])
        assert [a.rule_id for a in result.alerts] == ["high-value"]
        assert [s.rule_id for s in result.skipped] == ["broken"]

    def test_rule_without_any_criterion_is_skipped(self) -> None:
        result = RuleEngine().evaluate(tx("t1"), [], [rule("empty")])
        assert result.alerts == []
        assert result.skipped[0].rule_id == "empty"

    def test_disabled_rules_are_ignored(self) -> None:
        high = rule("high-value", enabled=False, min_amount=10)
        result = RuleEngine().evaluate(tx("t1", amount="20000"), [], [high])
        assert result.alerts == []
        assert result.skipped == []

    def test_one_alert_per_matching_rule_in_rule_order(self) -> None:
        rules = [
            rule("high-value", min_amount=1000),
            rule("night", pattern_type="unusual-hours"),
            rule("volume", max_transactions=1),
        ]
        result = RuleEngine().evaluate(tx("t1", amount="5000", at=NOON.replace(hour=1)), [], rules)
        assert [a.rule_id for a in result.alerts] == ["high-value", "night", "volume"]

    def test_evaluation_is_deterministic(self) -> None:
        """Same inputs give equal alerts, stamped with the transaction time."""
        rules = [rule("rapid", pattern_type="rapid", max_transactions=2), rule("high-value", min_amount=100)]
        history = [tx("t1", -5)]
        first = RuleEngine().evaluate(tx("t2", amount="500"), history, rules)
        second = RuleEngine().evaluate(tx("t2", amount="500"), history, rules)
        assert first.alerts == second.alerts
        assert all(a.detected_at == NOON for a in first.alerts)

    def test_history_window_covers_largest_enabled_rule(self) -> None:
        rules = [
            rule("a", time_window_minutes=10),
            rule("b", time_window_minutes=1440),
            rule("c", enabled=False, time_window_minutes=5000),
        ]
        assert RuleEngine.history_window_minutes(rules) == 1440

    def test_matcher_rejects_non_positive_window(self) -> None:
        with pytest.raises(InvalidRule):
            build_rule(rule("broken", time_window_minutes=-5, pattern_type="rapid"))
