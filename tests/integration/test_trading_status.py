"""Integration tests for monitoring a trade end to end and deriving trading status."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from src.services.api.schemas import AlertCreate, TransactionEvent

NOON = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def trade_event(tx_id, amount, minutes=0, user_id="buyer-1", counterparty_id="seller-1"):
    return TransactionEvent(
        transaction_id=tx_id,
        user_id=user_id,
        counterparty_id=counterparty_id,
        amount=Decimal(amount),
        timestamp=NOON + timedelta(minutes=minutes),
    )


class TestMonitorToStatus:
    async def test_high_value_trade_restricts_user(self, services) -> None:
        """A 15000 trade under the stock rules raises one high alert and restricts the user."""
        await services.rule_store.seed_default_rules()

        result, recorded = await services.monitor.evaluate(trade_event("t1", "15000"), record=True)

        assert [a.rule_id for a in result.alerts] == ["high-value"]
        assert len(recorded.created) == 1
        status = await services.trading_status.compute_status("buyer-1")
        assert status.status == "restricted"
        assert status.alerts == 1
        assert status.critical_alerts == 1
        assert status.is_flagged is False
        assert status.reason == "High-Value Transaction"

    async def test_closing_the_alert_restores_normal(self, services) -> None:
        await services.rule_store.seed_default_rules()
        _, recorded = await services.monitor.evaluate(trade_event("t1", "15000"), record=True)
        await services.alert_service.update_status(recorded.created[0].alert_id, "false-positive", "ok", "admin-1")

        status = await services.trading_status.compute_status("buyer-1")
        assert status.status == "normal"
        assert status.alerts == 0
        assert status.reason is None

    async def test_history_is_loaded_from_completed_trades(self, services, make_trade) -> None:
        """Without explicit history the monitor reads the user's recent completed trades."""
        await services.rule_store.seed_default_rules()
        await make_trade("1000", completed_at=NOON - timedelta(hours=2))
        await make_trade("2000", completed_at=NOON - timedelta(hours=1))

        result, _ = await services.monitor.evaluate(trade_event("t3", "3000"))

        escalating = [a for a in result.alerts if a.rule_id == "escalating-amounts"]
        assert len(escalating) == 1
        assert len(escalating[0].transactions) == 3

    async def test_evaluate_without_record_stores_nothing(self, services) -> None:
        await services.rule_store.seed_default_rules()
        result, recorded = await services.monitor.evaluate(trade_event("t1", "15000"), history=[])
        assert len(result.alerts) == 1
        assert recorded is None
        assert await services.alert_service.list_alerts(user_id="buyer-1") == []


class TestComputeStatus:
    async def _raise(self, services, rule_id, severity, minutes=0):
        await services.alert_service.record_alerts([
            AlertCreate(
                user_id="buyer-1",
                rule_id=rule_id,
                rule_name=rule_id.replace("-", " ").title(),
                severity=severity,
                transactions=[f"{rule_id}-tx"],
                detected_at=NOON + timedelta(minutes=minutes),
            )
        ])

    async def test_no_alerts_is_normal(self, services) -> None:
        status = await services.trading_status.compute_status("buyer-1")
        assert status.model_dump() == {
            "status": "normal", "alerts": 0, "critical_alerts": 0, "is_flagged": False, "reason": None,
        }

    async def test_low_alerts_stay_normal_but_give_a_reason(self, services) -> None:
        await self._raise(services, "unusual-hours", "low")
        await self._raise(services, "rapid-transactions", "medium", minutes=1)
        status = await services.trading_status.compute_status("buyer-1")
        assert status.status == "normal"
        assert status.alerts == 2
        assert status.critical_alerts == 0
        assert status.reason == "Rapid Transactions"

    async def test_ties_go_to_the_earliest_alert(self, services) -> None:
        await self._raise(services, "escalating-amounts", "high")
        await self._raise(services, "high-value", "high", minutes=5)
        status = await services.trading_status.compute_status("buyer-1")
        assert status.critical_alerts == 2
        assert status.reason == "Escalating Amounts"

    async def test_flag_restricts_without_alerts(self, services) -> None:
        await services.flags.flag_account("buyer-1", "KYC documents expired", "admin-1")
        status = await services.trading_status.compute_status("buyer-1")
        assert status.status == "restricted"
        assert status.is_flagged is True
        assert status.reason == "KYC documents expired"

        assert await services.flags.unflag_account("buyer-1", "admin-1") is True
        assert (await services.trading_status.compute_status("buyer-1")).status == "normal"
        assert await services.flags.unflag_account("buyer-1", "admin-1") is False

    async def test_flag_reason_wins_over_alerts(self, services) -> None:
        await self._raise(services, "high-value", "critical")
        await services.flags.flag_account("buyer-1", "Manual review", "admin-1")
        status = await services.trading_status.compute_status("buyer-1")
        assert status.reason == "Manual review"
        assert status.critical_alerts == 1

    async def test_status_is_read_only(self, services) -> None:
        """Computing status repeatedly never changes the alerts it reads."""
        await self._raise(services, "high-value", "high")
        before = await services.alert_service.list_alerts(user_id="buyer-1")
        for _ in range(3):
            await services.trading_status.compute_status("buyer-1")
        after = await services.alert_service.list_alerts(user_id="buyer-1")
        assert [(a.alert_id, a.status, a.version) for a in before] == [(a.alert_id, a.status, a.version) for a in after]
