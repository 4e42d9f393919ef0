from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from ..core.logging import setup_logging
from ..core.config import settings
from ..core.errors import ReceiptServiceError
from .routers import health, receipts

logger = setup_logging()
app = FastAPI(title="Receipt Scan API")


@app.exception_handler(ReceiptServiceError)
async def receipt_error_handler(request: Request, exc: ReceiptServiceError):
    # Internal detail stays in the logs; the caller only sees the public message
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            stage=exc.stage,
            detail=exc.detail,
        )
    else:
        logger.info("Request rejected", path=request.url.path, status=exc.status_code, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Errors raised by the framework itself get the same {error} body
    logger.info("HTTP error", path=request.url.path, status=exc.status_code, detail=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Add custom exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error("Validation error", path=request.url.path, errors=str(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request"},
    )


# Configure CORS to allow frontend access
# CORS_ORIGINS can be set in .env as comma-separated list
# Example: CORS_ORIGINS=http://localhost:3000,https://your-frontend.com
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Images stored by the local fallback gateway
if not settings.az_storage_connection_string:
    Path(settings.local_media_dir).mkdir(parents=True, exist_ok=True)
    app.mount("/media", StaticFiles(directory=settings.local_media_dir), name="media")

app.include_router(health.router)
app.include_router(receipts.router)
