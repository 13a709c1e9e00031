import logging
from typing import List

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.common.concurrency import run_with_conflict_retry, unit_of_work
from src.common.errors import InvalidRule, NotFound
from src.models import MonitoringRule
from src.models.base import new_id
from src.services.api.schemas import MonitoringRuleSchema, RuleCreate, RuleThresholds, RuleUpdate
from src.services.integrations.audit import Auditor

logger = logging.getLogger(__name__)

DEFAULT_RULES = [
    RuleCreate(
        rule_id="rapid-transactions",
        name="Rapid Transactions",
        description="Multiple transactions in a short time window",
        severity="medium",
        thresholds=RuleThresholds(time_window_minutes=10, max_transactions=5, pattern_type="rapid"),
    ),
    RuleCreate(
        rule_id="unusual-hours",
        name="Unusual Hours Activity",
        description="Transactions outside normal business hours",
        severity="low",
        thresholds=RuleThresholds(time_window_minutes=60, pattern_type="unusual-hours"),
    ),
    RuleCreate(
        rule_id="high-value",
        name="High-Value Transaction",
        description="Single high-value transaction",
        severity="high",
        thresholds=RuleThresholds(time_window_minutes=60, min_amount=10000),
    ),
    RuleCreate(
        rule_id="multiple-counterparties",
        name="Multiple Counterparties",
        description="Transactions with many different counterparties in short period",
        severity="medium",
        thresholds=RuleThresholds(time_window_minutes=60, pattern_type="multiple-counterparties"),
    ),
    RuleCreate(
        rule_id="escalating-amounts",
        name="Escalating Transaction Amounts",
        description="Increasingly large transactions in a sequence",
        severity="high",
        thresholds=RuleThresholds(time_window_minutes=1440, pattern_type="escalating"),
    ),
]


def _validate_thresholds(thresholds: RuleThresholds) -> None:
    if thresholds.time_window_minutes <= 0:
        raise InvalidRule("timeWindowMinutes must be greater than zero")
    for name in ("max_transactions", "max_counterparties", "min_amount", "max_amount"):
        value = getattr(thresholds, name)
        if value is not None and value <= 0:
            raise InvalidRule(f"{name} must be greater than zero")


def _apply_thresholds(record: MonitoringRule, thresholds: RuleThresholds) -> None:
    record.time_window_minutes = thresholds.time_window_minutes
    record.max_transactions = thresholds.max_transactions
    record.min_amount = thresholds.min_amount
    record.max_amount = thresholds.max_amount
    record.max_counterparties = thresholds.max_counterparties
    record.pattern_type = thresholds.pattern_type


class RuleStore:
    """Monitoring rules are created and edited by operators and never deleted, only disabled."""

    def __init__(self, session_factory: async_sessionmaker, auditor: Auditor):
        self.session_factory = session_factory
        self.auditor = auditor

    async def create_rule(self, data: RuleCreate, actor_id: str | None = None) -> MonitoringRule:
        _validate_thresholds(data.thresholds)
        async with unit_of_work(self.session_factory) as session:
            record = MonitoringRule(
                rule_id=data.rule_id or new_id(),
                name=data.name,
                description=data.description,
                severity=data.severity,
                enabled=data.enabled,
            )
            _apply_thresholds(record, data.thresholds)
            session.add(record)
        await self.auditor.record("rule_created", "monitoring_rule", record.rule_id, actor_id, {"name": record.name})
        return record

    async def get_rule(self, rule_id: str) -> MonitoringRule:
        async with self.session_factory() as session:
            record = await session.get(MonitoringRule, rule_id)
        if record is None:
            raise NotFound(f"Monitoring rule {rule_id} not found")
        return record

    async def list_rules(self, enabled_only: bool = False) -> List[MonitoringRule]:
        async with self.session_factory() as session:
            query = select(MonitoringRule).order_by(MonitoringRule.created_at, MonitoringRule.rule_id)
            if enabled_only:
                query = query.where(MonitoringRule.enabled == True)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def update_rule(self, rule_id: str, updates: RuleUpdate, actor_id: str | None = None) -> MonitoringRule:
        if updates.thresholds is not None:
            _validate_thresholds(updates.thresholds)

        async def _update():
            async with unit_of_work(self.session_factory) as session:
                record = await session.get(MonitoringRule, rule_id)
                if record is None:
                    raise NotFound(f"Monitoring rule {rule_id} not found")
                for field in ("name", "description", "severity", "enabled"):
                    value = getattr(updates, field)
                    if value is not None:
                        setattr(record, field, value)
                if updates.thresholds is not None:
                    _apply_thresholds(record, updates.thresholds)
            return record

        record = await run_with_conflict_retry(_update)
        await self.auditor.record(
            "rule_updated", "monitoring_rule", rule_id, actor_id, updates.model_dump(exclude_none=True, mode="json")
        )
        return record

    async def set_rule_enabled(self, rule_id: str, enabled: bool, actor_id: str | None = None) -> MonitoringRule:
        return await self.update_rule(rule_id, RuleUpdate(enabled=enabled), actor_id)

    async def seed_default_rules(self) -> int:
        async with self.session_factory() as session:
            count = await session.scalar(select(func.count()).select_from(MonitoringRule))
        if count:
            return 0
        for rule in DEFAULT_RULES:
            await self.create_rule(rule, actor_id="system")
        logger.info(f"Created {len(DEFAULT_RULES)} default transaction monitoring rules")
        return len(DEFAULT_RULES)

    async def load_enabled_rules(self) -> List[MonitoringRuleSchema]:
        """Enabled rules as engine input. Records that fail to parse are reported and left out."""
        rules = []
        for record in await self.list_rules(enabled_only=True):
            try:
                rules.append(MonitoringRuleSchema.from_record(record))
            except ValidationError as e:
                logger.warning(f"Skipping unparseable monitoring rule {record.rule_id}: {e}")
        return rules
