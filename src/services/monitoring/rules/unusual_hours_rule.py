from typing import List
from zoneinfo import ZoneInfo

from src.common.config import settings
from src.services.monitoring.rules.base_rule import BaseRule
from src.services.api.schemas import MonitoringRuleSchema, TransactionEvent


def hour_in_band(hour: int, start: int, end: int) -> bool:
    if start == end:
        return False
    if start < end:
        return start <= hour < end
    # Band wraps past midnight, e.g. 22-05
    return hour >= start or hour < end


class UnusualHoursRule(BaseRule):
    def __init__(
        self,
        config: MonitoringRuleSchema,
        start_hour: int | None = None,
        end_hour: int | None = None,
        timezone: str | None = None,
    ):
        super().__init__(config)
        self.start_hour = settings.OFF_HOURS_START if start_hour is None else start_hour
        self.end_hour = settings.OFF_HOURS_END if end_hour is None else end_hour
        self.tz = ZoneInfo(timezone or settings.MONITORING_TIMEZONE)

    def evaluate(self, event: TransactionEvent, history: List[TransactionEvent]) -> tuple[bool, List[TransactionEvent]]:
        local_hour = event.occurred_at().astimezone(self.tz).hour
        is_triggered = hour_in_band(local_hour, self.start_hour, self.end_hour)
        return is_triggered, [event] if is_triggered else []
