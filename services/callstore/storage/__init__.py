"""
Object storage layer for callstore.

Provides init_storage() / close_storage() for app lifespan and
get_gateway() for request handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from callstore.config import Settings, settings
from callstore.logging_config import configure_logging, get_logger
from callstore.storage.protocol import ConfigurationError

if TYPE_CHECKING:
    from callstore.gateway import StorageGateway

logger = get_logger(__name__)

# Module-level gateway instance
_gateway: StorageGateway | None = None


def build_gateway(cfg: Settings) -> StorageGateway:
    """Select the backend once, from configuration.

    Both credentials present: Azure Blob Storage. Otherwise the layer runs
    disabled on a backend that stores nothing.
    """
    from callstore.gateway import StorageGateway

    if cfg.storage_credentials_configured:
        from callstore.storage.azure import AzureBlobBackend

        backend = AzureBlobBackend(
            account_name=cfg.azure_storage_account_name,
            account_key=cfg.azure_storage_account_key,
            endpoint_suffix=cfg.storage.endpoint_suffix,
        )
        logger.info(
            "Storage initialized", backend="azure", account=cfg.azure_storage_account_name
        )
        return StorageGateway(backend, cfg.storage, enabled=True)

    from callstore.storage.disabled import DisabledBackend

    missing = [
        name
        for name, value in (
            ("AZURE_STORAGE_ACCOUNT_NAME", cfg.azure_storage_account_name),
            ("AZURE_STORAGE_ACCOUNT_KEY", cfg.azure_storage_account_key),
        )
        if not value
    ]
    logger.error(
        "Storage credentials not configured, storage layer disabled",
        backend="disabled",
        missing=missing,
    )
    return StorageGateway(DisabledBackend(missing), cfg.storage, enabled=False)


async def init_storage(cfg: Settings | None = None) -> StorageGateway:
    """Initialize the storage gateway based on configuration.

    Called during app startup (lifespan). Configures logging first.
    """
    global _gateway  # noqa: PLW0603
    cfg = cfg or settings
    configure_logging(json_logs=cfg.json_logs, log_level=cfg.log_level)
    _gateway = build_gateway(cfg)
    return _gateway


async def close_storage() -> None:
    """Close the storage backend and release resources.

    Called during app shutdown (lifespan).
    """
    global _gateway  # noqa: PLW0603
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
        logger.info("Storage closed")


def get_gateway() -> StorageGateway:
    """Return the storage gateway.

    Raises ConfigurationError if storage has not been initialized.
    """
    if _gateway is None:
        raise ConfigurationError("Storage not initialized; call init_storage() first")
    return _gateway


def get_gateway_or_none() -> StorageGateway | None:
    """Return the storage gateway if initialized, otherwise None."""
    return _gateway
