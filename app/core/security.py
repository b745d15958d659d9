import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.database import get_db
from app.models.api_key import WILDCARD_PERMISSION, ApiKey
from app.services.integration_service import IntegrationService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

BOOTSTRAP_KEY_NAME = "bootstrap"


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
        headers={"WWW-Authenticate": "Bearer"}
    )


def is_bootstrap_key(raw_key: str) -> bool:
    if not settings.BOOTSTRAP_API_KEY:
        return False
    return hmac.compare_digest(raw_key.encode("utf-8"), settings.BOOTSTRAP_API_KEY.encode("utf-8"))


async def get_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> ApiKey:
    """Resolve the bearer token to an API key; unknown, revoked and expired keys all get 401"""
    if credentials is None or not credentials.credentials:
        raise _unauthorized()

    raw_key = credentials.credentials
    if is_bootstrap_key(raw_key):
        # Not persisted
        return ApiKey(name=BOOTSTRAP_KEY_NAME, permissions=[WILDCARD_PERMISSION], is_active=True)

    api_key = await IntegrationService(db).verify_api_key(raw_key)
    if api_key is None:
        raise _unauthorized()
    return api_key


def require_permission(permission: str):
    async def checker(api_key: ApiKey = Depends(get_api_key)) -> ApiKey:
        if not api_key.allows(permission):
            logger.warning(f"API key {api_key.key_prefix or api_key.name} lacks {permission}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}"
            )
        return api_key

    return checker
