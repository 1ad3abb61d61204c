"""
FastAPI dependency injection.

Dependencies provide the storage client and configuration to route handlers.
Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be swapped for testing
- Configuration is centralized

The storage client is created once in the application lifespan and kept on
app.state; every request shares it.
"""

import logging
import ssl
from pathlib import Path
from typing import Annotated, Union

from fastapi import Depends, Request

from ..config.settings import Settings
from ..core.errors import ConfigurationError
from ..core.models import SSEConfig
from ..infrastructure.storage.client import (
    StorageClient,
    StorageConfig,
    create_storage_client,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup Wiring
# ---------------------------------------------------------------------------

def resolve_tls_verify(settings: Settings) -> Union[bool, str]:
    """
    Work out what boto3 should verify the endpoint certificate against.

    A configured CA bundle is read and parsed here so a bad path or a file
    without certificates stops startup instead of failing the first request.
    """
    if not settings.use_ssl:
        return True
    if settings.skip_ssl_verification:
        return False
    if not settings.ca_cert:
        return True

    try:
        content = Path(settings.ca_cert).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Failed to read CA certificate file: {e}")

    try:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.load_verify_locations(cadata=content)
    except (ssl.SSLError, ValueError) as e:
        raise ConfigurationError(f"Failed to parse CA certificate: {e}")

    return settings.ca_cert


def build_storage_config(settings: Settings) -> StorageConfig:
    """Translate settings into a storage client configuration."""
    try:
        signature_type = settings.signature
    except ValueError as e:
        raise ConfigurationError(str(e))

    return StorageConfig(
        endpoint_url=settings.endpoint_url,
        access_key_id=settings.access_key_id,
        secret_access_key=settings.secret_access_key,
        region=settings.region,
        use_iam=settings.use_iam,
        iam_endpoint=settings.iam_endpoint,
        signature_type=signature_type,
        verify=resolve_tls_verify(settings),
        timeout=settings.timeout,
    )


def build_sse_config(settings: Settings) -> SSEConfig:
    try:
        return settings.sse
    except ValueError as e:
        raise ConfigurationError(str(e))


def build_storage_client(settings: Settings) -> StorageClient:
    """
    Create the process-wide storage client.

    Raises ConfigurationError when the settings cannot produce a client.
    """
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        raise ConfigurationError(f"please provide {', '.join(missing_fields)}")

    if settings.storage_mock_mode:
        logger.info("Using in-memory mock storage")
        return create_storage_client(mock_mode=True)

    return create_storage_client(config=build_storage_config(settings))


# ---------------------------------------------------------------------------
# Request Dependencies
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_storage_client(request: Request) -> StorageClient:
    """Provide the shared storage client."""
    return request.app.state.storage


def get_sse_config(request: Request) -> SSEConfig:
    """Encryption applied to uploads (and SSE-C reads)."""
    return request.app.state.sse


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
SSEConfigDep = Annotated[SSEConfig, Depends(get_sse_config)]
