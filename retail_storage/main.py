from dataclasses import asdict

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from retail_storage.dependencies.storage import get_app_storage, storage_lifespan
from retail_storage.logging_config import setup_logging
from retail_storage.services.orders import EntityNotFoundError, InsufficientStockError
from retail_storage.storage.base import StorageBackend
from retail_storage.storage.exceptions import (
    BackendUnavailableError,
    CapabilityUnavailableError,
    ConcurrencyConflictError,
    DuplicateKeyError,
    FileNotFoundError,
    StorageError,
)

# lifespan: storage is provisioned once before the first request
app = FastAPI(title="Retail Storage API", lifespan=storage_lifespan)

logger = setup_logging()

# Storage error type -> (HTTP status, error label); first match wins
ERROR_STATUS: list[tuple[type[Exception], int, str]] = [
    (ConcurrencyConflictError, 412, "Precondition Failed"),
    (DuplicateKeyError, 409, "Conflict"),
    (FileNotFoundError, 404, "Not Found"),
    (EntityNotFoundError, 404, "Not Found"),
    (InsufficientStockError, 409, "Conflict"),
    (CapabilityUnavailableError, 501, "Not Implemented"),
    (BackendUnavailableError, 503, "Service Unavailable"),
    (StorageError, 500, "Storage Error"),
]


def _error_response(exc: Exception) -> JSONResponse:
    for error_type, status_code, label in ERROR_STATUS:
        if isinstance(exc, error_type):
            return JSONResponse(
                status_code=status_code,
                content={"success": False, "error": label, "message": str(exc)},
            )
    raise exc


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    """Map storage failures onto HTTP statuses."""
    if isinstance(exc, BackendUnavailableError):
        logger.error(
            f"Storage backend failure: {exc}",
            extra={"path": request.url.path, "method": request.method},
        )
    return _error_response(exc)


@app.exception_handler(EntityNotFoundError)
@app.exception_handler(InsufficientStockError)
async def order_exception_handler(request: Request, exc: Exception):
    return _error_response(exc)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # Log detailed error for debugging (includes stack trace)
    logger.error(
        f"Unhandled exception: {exc.__class__.__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    # Return safe, static message to client (no internal details exposed)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
        },
    )


@app.get("/health/storage")
async def storage_health(storage: StorageBackend = Depends(get_app_storage)):
    """Report which storage capabilities were provisioned."""
    report = await storage.initialize()
    return {
        "ok": report.ok,
        "file_share_available": storage.is_file_share_available(),
        **asdict(report),
    }
