from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1)
    permissions: List[str] = Field(min_length=1)
    expires_at: Optional[datetime] = None


class ApiKeyResponse(BaseModel):
    id: str
    name: str
    key_prefix: str
    permissions: List[str]
    is_active: bool
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class IssuedApiKey(BaseModel):
    """Returned exactly once, at issuance"""

    id: str
    key: str
    key_prefix: str
