# tradeguard/src/services/integrations/trades.py
"""
Trade/escrow service boundary. The engine reads trades and signals status
changes on them; escrow balances are never computed here.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.models import Trade
from src.services.api.schemas import TransactionEvent


class TradeService(ABC):
    @abstractmethod
    async def get_trade(self, ticket_id: str) -> Optional[Trade]:
        pass

    @abstractmethod
    async def set_trade_status(self, ticket_id: str, status: str, extra: Optional[Dict[str, Any]] = None) -> None:
        pass


class SqlTradeService(TradeService):
    TRADE_FIELDS = ("dispute_id", "resolution")

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_trade(self, ticket_id):
        async with self.session_factory() as session:
            return await session.get(Trade, ticket_id)

    async def set_trade_status(self, ticket_id, status, extra=None):
        async with self.session_factory() as session:
            trade = await session.get(Trade, ticket_id)
            if trade is None:
                raise LookupError(f"Trade {ticket_id} not found")
            trade.status = status
            for key, value in (extra or {}).items():
                if key in self.TRADE_FIELDS:
                    setattr(trade, key, value)
            await session.commit()

    async def recent_completed(self, user_id: str, since: datetime) -> List[TransactionEvent]:
        """Completed trades of a user since `since`, as monitoring transactions."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Trade)
                .where(Trade.user_id == user_id, Trade.completed_at.is_not(None), Trade.completed_at >= since)
                .order_by(Trade.completed_at.asc())
            )
            return [trade_to_event(t) for t in result.scalars().all()]

    async def recent_trades(self, user_id: str, limit: int) -> List[Trade]:
        """The user's latest trades in any status, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Trade)
                .where(Trade.user_id == user_id)
                .order_by(Trade.created_at.desc(), Trade.trade_id)
                .limit(limit)
            )
            return list(result.scalars().all())


def trade_to_event(trade: Trade) -> TransactionEvent:
    return TransactionEvent(
        transaction_id=trade.trade_id,
        user_id=trade.user_id,
        counterparty_id=trade.counterparty_id,
        amount=trade.amount,
        currency=trade.currency,
        timestamp=trade.completed_at or trade.created_at,
    )
