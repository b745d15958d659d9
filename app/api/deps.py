from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.exceptions import (
    CommerceSyncError,
    ConfigurationError,
    DuplicateRecordError,
    NotFoundError,
    TransientPlatformError,
    ValidationError,
)
from app.db.database import async_session_maker
from app.services.platform_clients import PlatformClientPool


def get_platform_clients(request: Request) -> PlatformClientPool:
    return request.app.state.platform_clients


def http_error(error: CommerceSyncError) -> HTTPException:
    """Translate an engine error into the HTTP error an endpoint should raise"""
    if isinstance(error, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (ConfigurationError, ValidationError)):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, DuplicateRecordError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, TransientPlatformError):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=error.to_dict())


def get_session_maker() -> async_sessionmaker:
    """Session factory for work that outlives the request, such as background tasks"""
    return async_session_maker
