# tradeguard/src/common/redis_utils.py
import redis.asyncio as redis
from src.common.config import settings
from contextlib import asynccontextmanager
from typing import AsyncGenerator


def create_redis_client(url: str | None = None) -> redis.Redis:
    return redis.from_url(url or settings.REDIS_URL, encoding="utf-8", decode_responses=True)


@asynccontextmanager
async def get_redis_client() -> AsyncGenerator[redis.Redis, None]:
    """
    Provides an async Redis client that is properly closed.
    """
    redis_client = None
    try:
        redis_client = create_redis_client()
        yield redis_client
    finally:
        if redis_client:
            await redis_client.aclose()
