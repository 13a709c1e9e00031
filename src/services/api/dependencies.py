# tradeguard/src/services/api/dependencies.py

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from src.common.config import settings
from src.services.container import EngineServices

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def get_api_key(api_key: str = Security(api_key_header)) -> str:
    if api_key == settings.API_KEY:
        return api_key
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Could not validate credentials",
    )


def get_services(request: Request) -> EngineServices:
    """The service container built once in the app lifespan."""
    return request.app.state.services
