# tradeguard/src/common/concurrency.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from src.common.config import settings
from src.common.errors import ConcurrencyConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def unit_of_work(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """
    Opens a session for a single read-validate-write unit and commits it on exit.
    A version-id mismatch on flush is surfaced as ConcurrencyConflict.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except StaleDataError as e:
            await session.rollback()
            raise ConcurrencyConflict(f"Entity changed since it was read: {e}") from e
        except BaseException:
            await session.rollback()
            raise


async def run_with_conflict_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int | None = None,
) -> T:
    """
    Re-runs a whole unit of work when it loses an optimistic-concurrency race.
    Validation errors propagate on the first attempt.
    """
    attempts = attempts or settings.CONFLICT_MAX_RETRIES
    for i in range(attempts):
        try:
            return await operation()
        except ConcurrencyConflict:
            if i < attempts - 1:
                logger.info(f"Concurrency conflict, retrying ({i + 1}/{attempts})")
            else:
                logger.warning(f"Concurrency conflict persisted after {attempts} attempts")
                raise


def is_unique_violation(error: IntegrityError, column: str) -> bool:
    return column in str(error.orig)
