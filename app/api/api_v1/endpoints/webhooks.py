import json
import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_platform_clients, get_session_maker, http_error
from app.core.exceptions import CommerceSyncError
from app.core.security import require_permission
from app.db.database import get_db
from app.models.enums import PlatformType, WebhookStatus
from app.schemas.webhook import WebhookQueueEntryResponse
from app.services.integration_service import IntegrationService
from app.services.platform_clients import PlatformClientPool
from app.services.request_signer import verify_webhook_signature
from app.services.webhook_processor import ORDER_TOPICS, WebhookProcessor, drain_webhook_queue

logger = logging.getLogger(__name__)

router = APIRouter()

TOPIC_HEADER = "X-WC-Webhook-Topic"
EVENT_HEADER = "X-WC-Webhook-Event"
SIGNATURE_HEADER = "X-WC-Webhook-Signature"


@router.get("/queue", response_model=List[WebhookQueueEntryResponse], dependencies=[Depends(require_permission("webhooks:read"))])
async def get_webhook_queue(limit: int = 50, db: AsyncSession = Depends(get_db)):
    """Most recent webhook deliveries, newest first"""
    return await IntegrationService(db).get_recent_webhooks(limit=limit)


@router.post(
    "/queue/{entry_id}/retry",
    response_model=WebhookQueueEntryResponse,
    dependencies=[Depends(require_permission("webhooks:write"))]
)
async def retry_webhook(
    entry_id: str,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients)
):
    processor = WebhookProcessor(db, clients)
    try:
        entry = await processor.integration_service.get_webhook(entry_id)
        if entry.event_type not in ORDER_TOPICS:
            raise HTTPException(status_code=400, detail="Unsupported webhook event type")
        if await processor.process_entry(entry, include_failed=True) is None:
            raise HTTPException(status_code=409, detail="Webhook is already completed or being processed")
        return await processor.integration_service.get_webhook(entry_id)
    except CommerceSyncError as e:
        raise http_error(e)


@router.post("/{platform}/{integration_id}", status_code=202)
async def receive_webhook(
    platform: PlatformType,
    integration_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    clients: PlatformClientPool = Depends(get_platform_clients),
    session_maker: async_sessionmaker = Depends(get_session_maker)
):
    """
    Accept a signed webhook delivery from an external platform.

    Nothing is queued unless the integration exists, is active, belongs to
    `platform`, and the signature over the raw body verifies against the
    integration's webhook secret. Queued deliveries are imported after the
    response is sent.
    """
    service = IntegrationService(db, clients)
    try:
        integration = await service.get_integration(integration_id)
    except CommerceSyncError as e:
        raise http_error(e)

    if not integration.is_active:
        raise HTTPException(status_code=400, detail="Integration is not active")
    if integration.platform_type != platform:
        raise HTTPException(status_code=400, detail=f"Integration is not a {platform.value} integration")

    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    # Sent unsigned by the storefront when a webhook is first registered
    if not signature and body.startswith(b"webhook_id="):
        return {"success": True, "message": "Ping received"}

    try:
        secret = getattr(integration.credentials, "webhook_secret", None)
    except ValueError:
        secret = None
    if not secret or not signature or not verify_webhook_signature(body, signature, secret):
        logger.warning(f"Rejected webhook for integration {integration_id}: signature did not verify")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")

    topic = request.headers.get(TOPIC_HEADER) or request.headers.get(EVENT_HEADER) or "unknown"
    entry = await service.enqueue_webhook(integration_id, topic, payload, signature)
    logger.info(f"Queued {topic} webhook {entry.id} for integration {integration_id}")

    background_tasks.add_task(drain_webhook_queue, session_maker, clients)

    return {"success": True, "message": "Webhook received", "id": entry.id, "status": WebhookStatus.PENDING}
