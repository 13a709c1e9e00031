"""Shared fixtures: a throwaway SQLite database, seeded users and trades, recording sinks."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.common.db import build_engine, build_session_factory, create_all
from src.models import Trade, User
from src.services.container import build_services
from tests.fakes import FakeRedis, RecordingSink

BASE_TIME = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path):
    """File-backed so concurrent sessions really are separate connections."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tradeguard.db'}", echo=False)
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def users(session_factory):
    """Ids of one admin, one arbitrator, both trade parties and an unrelated user."""
    people = {
        "admin": User(user_id="admin-1", username="admin", email="admin@example.com", role="admin"),
        "arbitrator": User(user_id="arb-1", username="arbitrator", email="arb@example.com", role="arbitrator"),
        "buyer": User(user_id="buyer-1", username="buyer", email="buyer@example.com"),
        "seller": User(user_id="seller-1", username="seller", email="seller@example.com"),
        "outsider": User(user_id="outsider-1", username="outsider", email="outsider@example.com"),
    }
    async with session_factory() as session:
        session.add_all(people.values())
        await session.commit()
    return {role: user.user_id for role, user in people.items()}


@pytest.fixture
def make_trade(session_factory, users):
    """Creates a completed trade between buyer and seller and returns its id."""

    async def _make(
        amount="1500.00", user_id=None, counterparty_id=None, completed_at=BASE_TIME, status="Active", created_at=None
    ):
        trade = Trade(
            user_id=user_id or users["buyer"],
            counterparty_id=counterparty_id or users["seller"],
            amount=Decimal(amount),
            status=status,
            completed_at=completed_at,
        )
        if created_at is not None:
            trade.created_at = created_at
        async with session_factory() as session:
            session.add(trade)
            await session.commit()
        return trade.trade_id

    return _make


@pytest.fixture
def get_trade(session_factory):
    async def _get(trade_id):
        async with session_factory() as session:
            return await session.get(Trade, trade_id)

    return _get


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def notifications():
    return RecordingSink()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def services(session_factory, fake_redis, notifications, users):
    return build_services(session_factory, fake_redis, notifications)
