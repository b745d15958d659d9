"""
Integration registry.

Owns integration configuration, sync log bookkeeping, product mappings, API
keys and the inbound webhook queue. The sync pipelines go through this
service for every write to those tables.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ConfigurationError,
    DuplicateRecordError,
    NotFoundError,
    ValidationError,
)
from app.crud.api_key import api_key_crud
from app.crud.integration import integration_crud, sync_log_crud
from app.crud.product_mapping import product_mapping_crud
from app.crud.webhook_queue import webhook_queue_crud
from app.models.api_key import ApiKey
from app.models.enums import (
    IntegrationSyncStatus,
    PlatformType,
    SyncDirection,
    SyncLogStatus,
    SyncType,
    WebhookStatus,
)
from app.models.integration import Integration
from app.models.product_mapping import ProductMapping
from app.models.sync_log import SyncLog
from app.models.webhook_queue import WebhookQueueEntry
from app.schemas.api_key import IssuedApiKey
from app.schemas.credentials import PlatformCredentials, WooCommerceCredentials
from app.schemas.integration import IntegrationCreate, IntegrationUpdate
from app.schemas.product_mapping import ProductMappingCreate
from app.services.platform_clients import PlatformClientPool
from app.services.woocommerce_client import WooCommerceClient

logger = logging.getLogger(__name__)

API_KEY_DISPLAY_PREFIX_LENGTH = 12


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def summarize_status(succeeded: int, failed: int) -> SyncLogStatus:
    if failed == 0:
        return SyncLogStatus.SUCCESS
    if succeeded > 0:
        return SyncLogStatus.PARTIAL
    return SyncLogStatus.FAILED


class IntegrationService:
    def __init__(self, db: AsyncSession, clients: Optional[PlatformClientPool] = None):
        self.db = db
        self.clients = clients

    # Integrations

    async def create_integration(self, integration_in: IntegrationCreate) -> Integration:
        integration = await integration_crud.create(self.db, obj_in={
            "name": integration_in.name,
            "platform_type": integration_in.platform_type,
            "is_active": integration_in.is_active,
            "config": integration_in.config.model_dump(),
            "sync_status": IntegrationSyncStatus.DISCONNECTED,
        })
        logger.info(f"Created {integration.platform_type.value} integration {integration.id}")
        return integration

    async def get_integrations(self) -> List[Integration]:
        return await integration_crud.get_all(self.db)

    async def get_integration(self, integration_id: str) -> Integration:
        integration = await integration_crud.get(self.db, integration_id)
        if not integration:
            raise NotFoundError(f"Integration {integration_id} not found", {"integration_id": integration_id})
        return integration

    async def get_active_integration(self, integration_id: str, platform_type: PlatformType) -> Integration:
        integration = await integration_crud.get(self.db, integration_id)
        if not integration:
            raise ConfigurationError("Integration not found", {"integration_id": integration_id})
        if not integration.is_active:
            raise ConfigurationError("Integration is not active", {"integration_id": integration_id})
        if integration.platform_type != platform_type:
            raise ConfigurationError(
                f"Integration is not a {platform_type.value} integration",
                {"integration_id": integration_id, "platform_type": integration.platform_type.value}
            )
        return integration

    async def update_integration(self, integration_id: str, integration_in: IntegrationUpdate) -> Integration:
        integration = await self.get_integration(integration_id)
        updates: Dict[str, Any] = integration_in.model_dump(exclude_unset=True, exclude={"config"})
        if integration_in.config is not None:
            if integration_in.config.platform_type != integration.platform_type.value:
                raise ValidationError(
                    f"config is for {integration_in.config.platform_type}, "
                    f"integration is {integration.platform_type.value}"
                )
            updates["config"] = integration_in.config.model_dump()
        updates = {key: value for key, value in updates.items() if value is not None}
        integration = await integration_crud.update(self.db, db_obj=integration, obj_in=updates)
        if self.clients:
            self.clients.evict(integration.id)
        return integration

    async def delete_integration(self, integration_id: str) -> None:
        await self.get_integration(integration_id)
        await integration_crud.remove(self.db, id=integration_id)
        if self.clients:
            self.clients.evict(integration_id)
        logger.info(f"Deleted integration {integration_id}")

    async def test_connection(self, credentials: PlatformCredentials) -> bool:
        if not isinstance(credentials, WooCommerceCredentials):
            raise ConfigurationError(f"Connection test is not supported for {credentials.platform_type}")
        http_client = self.clients.http_client if self.clients else None
        client = WooCommerceClient(credentials, http_client=http_client)
        try:
            return await client.test_connection()
        finally:
            await client.aclose()

    async def mark_sync_success(self, integration_id: str) -> None:
        integration = await integration_crud.get(self.db, integration_id)
        if not integration:
            return
        integration.last_sync_at = datetime.utcnow()
        integration.sync_status = IntegrationSyncStatus.CONNECTED
        integration.error_message = None
        await self.db.commit()

    async def mark_sync_error(self, integration_id: str, error_message: str) -> None:
        integration = await integration_crud.get(self.db, integration_id)
        if not integration:
            return
        integration.sync_status = IntegrationSyncStatus.ERROR
        integration.error_message = error_message
        await self.db.commit()

    # Sync logs

    async def open_sync_log(
        self,
        integration_id: str,
        sync_type: SyncType,
        direction: SyncDirection
    ) -> SyncLog:
        return await sync_log_crud.create(self.db, obj_in={
            "integration_id": integration_id,
            "sync_type": sync_type,
            "direction": direction,
            "status": SyncLogStatus.RUNNING,
            "records_processed": 0,
            "records_failed": 0,
            "started_at": datetime.utcnow(),
        })

    async def close_sync_log(
        self,
        sync_log_id: str,
        status: SyncLogStatus,
        *,
        records_processed: int = 0,
        records_failed: int = 0,
        details: Optional[Dict[str, Any]] = None,
        errors: Optional[List[str]] = None,
        error: Optional[str] = None
    ) -> SyncLog:
        sync_log = await sync_log_crud.get(self.db, sync_log_id)
        if not sync_log:
            raise NotFoundError(f"Sync log {sync_log_id} not found")
        sync_log.status = status
        sync_log.records_processed = records_processed
        sync_log.records_failed = records_failed
        sync_log.completed_at = datetime.utcnow()
        sync_log.details = details
        if error:
            sync_log.error_details = {"error": error}
        elif errors:
            sync_log.error_details = {"errors": errors[:settings.SYNC_ERROR_LIMIT]}
        await self.db.commit()
        return sync_log

    async def get_sync_logs(self, integration_id: Optional[str] = None, limit: int = 50) -> List[SyncLog]:
        return await sync_log_crud.get_for_integration(self.db, integration_id, limit=limit)

    # Product mappings

    async def create_product_mapping(self, integration_id: str, mapping_in: ProductMappingCreate) -> ProductMapping:
        await self.get_integration(integration_id)
        existing = await self.find_mapping_by_external_id(
            integration_id,
            mapping_in.external_product_id,
            mapping_in.external_variation_id
        )
        if existing:
            raise DuplicateRecordError(
                f"External product {mapping_in.external_product_id} is already mapped",
                {"mapping_id": existing.id}
            )
        try:
            return await product_mapping_crud.create(self.db, obj_in={
                **mapping_in.model_dump(),
                "integration_id": integration_id
            })
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateRecordError(
                f"External product {mapping_in.external_product_id} is already mapped"
            ) from e

    async def get_product_mappings(
        self,
        integration_id: str,
        *,
        inventory_only: bool = False,
        warehouse_product_ids: Optional[Iterable[str]] = None
    ) -> List[ProductMapping]:
        return await product_mapping_crud.get_for_integration(
            self.db,
            integration_id,
            inventory_only=inventory_only,
            warehouse_product_ids=warehouse_product_ids
        )

    async def find_mapping_by_sku(self, integration_id: str, sku: str) -> Optional[ProductMapping]:
        return await product_mapping_crud.find_by_sku(self.db, integration_id, sku)

    async def find_mapping_by_external_id(
        self,
        integration_id: str,
        external_product_id: str,
        external_variation_id: Optional[str] = None
    ) -> Optional[ProductMapping]:
        return await product_mapping_crud.find_by_external_id(
            self.db, integration_id, external_product_id, external_variation_id
        )

    async def find_mapping_by_id(self, mapping_id: str) -> Optional[ProductMapping]:
        return await product_mapping_crud.get(self.db, mapping_id)

    async def delete_product_mapping(self, mapping_id: str) -> None:
        mapping = await product_mapping_crud.remove(self.db, id=mapping_id)
        if not mapping:
            raise NotFoundError(f"Product mapping {mapping_id} not found")

    # API keys

    async def issue_api_key(
        self,
        name: str,
        permissions: List[str],
        created_by: Optional[str] = None,
        expires_at: Optional[datetime] = None
    ) -> IssuedApiKey:
        raw_key = f"{settings.API_KEY_PREFIX}{secrets.token_hex(32)}"
        api_key = await api_key_crud.create(self.db, obj_in={
            "name": name,
            "key_hash": hash_api_key(raw_key),
            "key_prefix": raw_key[:API_KEY_DISPLAY_PREFIX_LENGTH],
            "permissions": list(permissions),
            "expires_at": expires_at,
            "created_by": created_by,
        })
        logger.info(f"Issued API key {api_key.key_prefix}... ({name})")
        return IssuedApiKey(id=api_key.id, key=raw_key, key_prefix=api_key.key_prefix)

    async def verify_api_key(self, raw_key: Optional[str]) -> Optional[ApiKey]:
        """Unknown, revoked and expired keys all come back as None"""
        if not raw_key:
            return None
        key_hash = hash_api_key(raw_key)
        now = datetime.utcnow()
        api_key = await api_key_crud.get_usable_by_hash(self.db, key_hash, now)
        if api_key is None or not hmac.compare_digest(api_key.key_hash, key_hash):
            return None
        api_key.last_used_at = now
        await self.db.commit()
        return api_key

    async def get_api_keys(self) -> List[ApiKey]:
        return await api_key_crud.get_all(self.db)

    async def revoke_api_key(self, api_key_id: str) -> None:
        api_key = await api_key_crud.get(self.db, api_key_id)
        if not api_key:
            raise NotFoundError(f"API key {api_key_id} not found")
        api_key.is_active = False
        await self.db.commit()
        logger.info(f"Revoked API key {api_key.key_prefix}...")

    # Webhook queue

    async def enqueue_webhook(
        self,
        integration_id: str,
        event_type: str,
        payload: Dict[str, Any],
        signature: Optional[str] = None
    ) -> WebhookQueueEntry:
        return await webhook_queue_crud.create(self.db, obj_in={
            "integration_id": integration_id,
            "event_type": event_type,
            "payload": payload,
            "signature": signature,
            "status": WebhookStatus.PENDING,
        })

    async def get_pending_webhooks(self, limit: Optional[int] = None) -> List[WebhookQueueEntry]:
        return await webhook_queue_crud.get_pending(self.db, limit=limit or settings.WEBHOOK_BATCH_SIZE)

    async def get_webhook(self, entry_id: str) -> WebhookQueueEntry:
        entry = await webhook_queue_crud.get(self.db, entry_id)
        if not entry:
            raise NotFoundError(f"Webhook {entry_id} not found")
        return entry

    async def claim_webhook(self, entry_id: str, include_failed: bool = False) -> bool:
        statuses = [WebhookStatus.PENDING]
        if include_failed:
            statuses.append(WebhookStatus.FAILED)
        return await webhook_queue_crud.claim(self.db, entry_id, statuses)

    async def get_recent_webhooks(self, limit: int = 50) -> List[WebhookQueueEntry]:
        return await webhook_queue_crud.get_recent(self.db, limit=limit)

    async def mark_webhook(
        self,
        entry_id: str,
        status: WebhookStatus,
        error_message: Optional[str] = None
    ) -> None:
        # Failed entries stay in the queue for inspection and manual retry
        entry = await self.get_webhook(entry_id)
        entry.status = status
        entry.processed_at = datetime.utcnow()
        entry.error_message = error_message
        await self.db.commit()

    async def register_webhook(self, integration_id: str, topic: str, delivery_url: str) -> Dict[str, Any]:
        """Create a storefront webhook signed with this integration's secret"""
        if not self.clients:
            raise ConfigurationError("No platform client pool available")
        integration = await self.get_active_integration(integration_id, PlatformType.WOOCOMMERCE)
        client = self.clients.woocommerce(integration)
        secret = client.credentials.webhook_secret or secrets.token_hex(32)

        webhook = await client.create_webhook(topic, delivery_url, secret)

        if client.credentials.webhook_secret != secret:
            integration.config = {**integration.config, "webhook_secret": secret}
            await self.db.commit()
            self.clients.evict(integration.id)
        logger.info(f"Registered {topic} webhook for integration {integration.id}")
        return webhook
