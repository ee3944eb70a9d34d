"""
Application factory.

Builds the persistence area from settings, creates and registers the
entity stores, and attaches the webhook change feed when configured.
"""
import logging
from functools import lru_cache
from typing import Optional

from clientdesk.config import Settings, ensure_data_directory, get_settings
from clientdesk.constants import StoreName
from clientdesk.services.client_service import CLIENT_VALIDATOR
from clientdesk.services.project_service import PROJECT_VALIDATOR
from clientdesk.storage import (
    PersistenceArea,
    RecordStore,
    StoreOptions,
    StoreRegistry,
    build_area,
    get_codec,
)
from clientdesk.webhooks import WebhookNotifier

logger = logging.getLogger(__name__)

# Store name -> validator applied to its records
STORE_VALIDATORS = {
    StoreName.CLIENTS: CLIENT_VALIDATOR,
    StoreName.PROJECTS: PROJECT_VALIDATOR,
    StoreName.QUOTES: None,
    StoreName.CONTRACTS: None,
    StoreName.TRANSACTIONS: None,
}


def create_registry(
    settings: Optional[Settings] = None,
    area: Optional[PersistenceArea] = None
) -> StoreRegistry:
    """
    Create a registry with every entity store registered.

    Args:
        settings: Settings to build from (defaults to get_settings())
        area: Persistence area to use instead of the configured backend

    Returns:
        The populated StoreRegistry
    """
    settings = settings or get_settings()
    if area is None:
        if settings.storage_backend != "memory":
            ensure_data_directory(settings.data_dir)
        area = build_area(settings)

    options = StoreOptions(
        validation=settings.validation,
        auto_save=settings.auto_save,
        compression=settings.compression,
    )
    codec = get_codec(settings.codec)

    registry = StoreRegistry(version=settings.version)
    for name, validator in STORE_VALIDATORS.items():
        registry.register(name, RecordStore(
            name,
            area=area,
            validator=validator,
            options=options,
            codec=codec,
            prefix=settings.storage_prefix,
            version=settings.version,
        ))

    if settings.webhook_url:
        registry.subscribe(WebhookNotifier(
            settings.webhook_url,
            secret=settings.webhook_secret,
            timeout=settings.webhook_timeout,
            retry_count=settings.webhook_retries,
        ))
        logger.info(f"Webhook change feed enabled for {settings.webhook_url}")
        # Delivery runs inside each mutation; backoff sleeps are 1s, 2s, 4s... capped at 60s
        retries = max(settings.webhook_retries, 1)
        backoff = sum(min(2 ** n, 60) for n in range(retries - 1))
        logger.warning(
            f"Webhook delivery is synchronous; a failing endpoint can delay each store change "
            f"by up to {retries * settings.webhook_timeout + backoff:.0f}s"
        )

    logger.debug(f"Registered stores: {', '.join(registry.names())}")
    return registry


@lru_cache()
def get_registry() -> StoreRegistry:
    """Get cached registry instance for the process."""
    return create_registry()
