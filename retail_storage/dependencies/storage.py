"""
Storage dependency injection for FastAPI.

This module builds the configured storage backend, provisions it once at
application startup and injects it into endpoints.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request

from retail_storage.config import settings
from retail_storage.logging_config import setup_logging
from retail_storage.storage.base import StorageBackend
from retail_storage.storage.direct import DirectStorageBackend
from retail_storage.storage.functions import FunctionsApiBackend

logger = setup_logging()


def get_storage() -> StorageBackend:
    """
    Return storage backend based on configuration.

    This allows switching between the direct stores and the remote
    Functions API by changing the STORAGE_BACKEND environment variable.

    Returns:
        StorageBackend instance (direct or functions)

    Raises:
        ValueError: If STORAGE_BACKEND is not supported, or the functions
            backend is selected without FUNCTIONS_BASE_URL
    """
    if settings.STORAGE_BACKEND == "direct":
        return DirectStorageBackend(
            database_url=settings.DATABASE_URL,
            connection_string=settings.AZURE_STORAGE_CONNECTION_STRING,
            file_share_root=settings.FILE_SHARE_ROOT,
        )

    if settings.STORAGE_BACKEND == "functions":
        if not settings.FUNCTIONS_BASE_URL:
            raise ValueError("FUNCTIONS_BASE_URL must be set when STORAGE_BACKEND is 'functions'")
        return FunctionsApiBackend(
            base_url=settings.FUNCTIONS_BASE_URL,
            api_key=settings.FUNCTIONS_API_KEY,
            timeout=settings.FUNCTIONS_TIMEOUT_SECONDS,
        )

    raise ValueError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")


@asynccontextmanager
async def storage_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Provision the storage backend before the app serves requests.

    Usage:
        app = FastAPI(lifespan=storage_lifespan)
    """
    storage = get_storage()
    report = await storage.initialize()
    if not report.ok:
        logger.warning(f"Storage started with unavailable capabilities: {report.failures}")

    app.state.storage = storage
    try:
        yield
    finally:
        await storage.close()


def get_app_storage(request: Request) -> StorageBackend:
    """Return the backend provisioned by storage_lifespan."""
    return request.app.state.storage
