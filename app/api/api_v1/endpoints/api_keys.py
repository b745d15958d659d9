from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import http_error
from app.core.exceptions import CommerceSyncError
from app.core.security import require_permission
from app.db.database import get_db
from app.models.api_key import ApiKey
from app.schemas.api_key import ApiKeyCreate, ApiKeyResponse, IssuedApiKey
from app.services.integration_service import IntegrationService

router = APIRouter()


@router.post("/", response_model=IssuedApiKey)
async def issue_api_key(
    api_key_in: ApiKeyCreate,
    db: AsyncSession = Depends(get_db),
    issuer: ApiKey = Depends(require_permission("api_keys:write"))
):
    """Issue a new API key. The raw key is only ever returned here."""
    return await IntegrationService(db).issue_api_key(
        api_key_in.name,
        api_key_in.permissions,
        created_by=issuer.name,
        expires_at=api_key_in.expires_at
    )


@router.get("/", response_model=List[ApiKeyResponse], dependencies=[Depends(require_permission("api_keys:read"))])
async def get_api_keys(db: AsyncSession = Depends(get_db)):
    return await IntegrationService(db).get_api_keys()


@router.delete("/{api_key_id}", dependencies=[Depends(require_permission("api_keys:write"))])
async def revoke_api_key(api_key_id: str, db: AsyncSession = Depends(get_db)):
    try:
        await IntegrationService(db).revoke_api_key(api_key_id)
    except CommerceSyncError as e:
        raise http_error(e)
    return {"message": "API key revoked"}
