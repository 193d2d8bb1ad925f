# src/kraken_chat/main.py
"""Main entry point for the Kraken Chat API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from kraken_chat.api.v1 import (
    attachments_router,
    conversations_router,
    messages_router,
    profiles_router,
)
from kraken_chat.core.settings import settings
from kraken_chat.errors import (
    AuthorizationDenied,
    ConversationConflict,
    IdentityResolutionAmbiguous,
    ResourceNotFound,
)

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Kraken Chat API",
    description="Wallet-addressed direct messaging with conversation rollups",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(profiles_router, prefix="/api/v1")
app.include_router(conversations_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(attachments_router, prefix="/api/v1")


@app.exception_handler(AuthorizationDenied)
async def authorization_denied_handler(request: Request, exc: AuthorizationDenied) -> JSONResponse:
    logger.warning("Denied %s on %s for %s", exc.action, exc.resource, request.url.path)
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


@app.exception_handler(IdentityResolutionAmbiguous)
async def identity_ambiguous_handler(
    request: Request,
    exc: IdentityResolutionAmbiguous,
) -> JSONResponse:
    logger.error("Identity resolution failed for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": "Could not resolve caller identity"},
    )


@app.exception_handler(ConversationConflict)
async def conversation_conflict_handler(
    request: Request,
    exc: ConversationConflict,
) -> JSONResponse:
    logger.error("Conversation invariant violated: %s", exc)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(ResourceNotFound)
async def not_found_handler(request: Request, exc: ResourceNotFound) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("kraken_chat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
