"""
Live Preview FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.config import settings
from backend.middleware.rate_limit import rate_limiter
from backend.routes import pages as pages_routes
from backend.routes import preview as preview_routes
from backend.routes import ws as ws_routes
from backend.services.preview_store import preview_store


# Background task for cleanup
async def cleanup_task():
    """
    Background task to drop idle preview sessions and old rate limit entries.

    Runs every 60 seconds.
    """
    while True:
        try:
            removed = preview_store.cleanup_expired(max_age_minutes=settings.PREVIEW_SESSION_TTL_MINUTES)
            if removed > 0:
                print(f"Cleaned up {removed} expired preview sessions")

            # Clean up old rate limit entries
            rate_limiter.cleanup_old_entries(max_age_minutes=10)

        except Exception as e:
            print(f"Error in cleanup task: {e}")

        # Wait 60 seconds before next cleanup
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Starts the background cleanup task and stops it on shutdown.
    """
    cleanup_task_handle = asyncio.create_task(cleanup_task())
    print("Background cleanup task started")

    yield

    cleanup_task_handle.cancel()
    try:
        await cleanup_task_handle
    except asyncio.CancelledError:
        print("Background cleanup task stopped")


app = FastAPI(
    title="Live Preview",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(preview_routes.router)
app.include_router(pages_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
