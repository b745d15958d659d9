from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime

from app.models.enums import WebhookStatus


class WebhookQueueEntryResponse(BaseModel):
    id: str
    integration_id: str
    event_type: str
    payload: Dict[str, Any]
    status: WebhookStatus
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
