# tradeguard/src/services/api/main.py

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from src.common.config import settings
from src.common.db import build_engine, build_session_factory
from src.common.errors import (
    ConcurrencyConflict,
    DuplicateDispute,
    EngineError,
    InvalidRule,
    InvalidTransition,
    NotFound,
    Unauthorized,
)
from src.common.kafka_utils import ensure_topics, get_kafka_producer
from src.common.redis_utils import create_redis_client
from src.services.api.api.endpoints_v1 import router as v1_router
from src.services.api.api.health import router as health_router
from src.services.api.dependencies import get_api_key
from src.services.container import build_services
from src.services.integrations.notifications import KafkaNotificationSink

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Checked in order, so subclasses come before their parents
ERROR_STATUS_CODES = [
    (NotFound, 404),
    (Unauthorized, 403),
    (DuplicateDispute, 409),
    (InvalidTransition, 409),
    (ConcurrencyConflict, 409),
    (InvalidRule, 422),
]


def status_code_for(error: EngineError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles startup and shutdown events for the FastAPI application.
    """
    logger.info("TradeGuard API starting...")
    await ensure_topics([settings.KAFKA_NOTIFICATIONS_TOPIC, settings.KAFKA_ALERTS_TOPIC])

    engine = build_engine()
    redis_client = create_redis_client()
    async with get_kafka_producer() as producer:
        app.state.services = build_services(
            build_session_factory(engine),
            redis_client,
            KafkaNotificationSink(producer, settings.KAFKA_NOTIFICATIONS_TOPIC),
        )
        await app.state.services.rule_store.seed_default_rules()

        yield  # Application runs here

        logger.info("TradeGuard API shutting down...")
    await redis_client.aclose()
    await engine.dispose()


def create_app(lifespan_handler=lifespan) -> FastAPI:
    app = FastAPI(
        title="TradeGuard API",
        version="1.0.0",
        description="Transaction risk monitoring and dispute resolution.",
        lifespan=lifespan_handler,
    )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError):
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())

    app.include_router(health_router, prefix="/health", tags=["Health"])
    app.include_router(v1_router, prefix="/api/v1", tags=["API v1"], dependencies=[Depends(get_api_key)])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.services.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True
    )
