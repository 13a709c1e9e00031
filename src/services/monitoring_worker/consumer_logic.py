import logging
from typing import List

from pydantic import ValidationError

from src.services.api.schemas import TransactionEvent
from src.services.monitoring.monitor import TransactionMonitor

logger = logging.getLogger(__name__)


def alert_payload(alert) -> dict:
    return {
        "alert_id": alert.alert_id,
        "user_id": alert.user_id,
        "rule_id": alert.rule_id,
        "rule_name": alert.rule_name,
        "severity": alert.severity,
        "transactions": list(alert.transactions),
        "detected_at": alert.detected_at.isoformat(),
        "status": alert.status,
    }


async def process_transaction_message(message_data: dict, monitor: TransactionMonitor) -> List[dict]:
    """
    Evaluates one completed-trade message and records the resulting alerts.
    Returns the newly opened alerts for publishing downstream; merges into
    already open alerts are not republished.
    """
    logger.info(f"Processing trade {message_data.get('transaction_id')} for user_id={message_data.get('user_id')}")

    try:
        transaction = TransactionEvent(**message_data)
    except ValidationError as e:
        # Unparseable messages can never succeed, so they are dropped rather than retried
        logger.error(f"Invalid trade message format: {e}")
        return []

    _, recorded = await monitor.evaluate(transaction, record=True)
    if recorded is None:
        return []
    return [alert_payload(a) for a in recorded.created]
