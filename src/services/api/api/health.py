# tradeguard/src/services/api/api/health.py

import logging

from fastapi import APIRouter, Depends, Response, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.services.api.dependencies import get_services
from src.services.container import EngineServices

LOG = logging.getLogger("tradeguard.api")

router = APIRouter()

@router.get("", status_code=status.HTTP_200_OK)
async def liveness():
    return {"status": "ok", "service": "tradeguard-api"}

@router.get("/ready")
async def readiness(response: Response, services: EngineServices = Depends(get_services)):
    """
    Checks the stores the API cannot serve without: the database behind rules,
    alerts and disputes, and Redis behind account flags. 503 while either is down.
    """
    checks = {}
    try:
        async with services.session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        LOG.warning("Readiness: database unavailable: %s", e)
        checks["database"] = "unavailable"

    try:
        await services.flags.redis.ping()
        checks["redis"] = "ok"
    except RedisError as e:
        LOG.warning("Readiness: redis unavailable: %s", e)
        checks["redis"] = "unavailable"

    ready = all(v == "ok" for v in checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "ok" if ready else "unavailable", "checks": checks}
