"""OPTLINE — FastAPI Application Entry Point.

Subscription groups, hash-authenticated subscription links, and segment
membership for a messaging platform.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from optline.database import init_db, test_connection
from optline.api.subscription_group_routes import router as subscription_group_router
from optline.api.subscription_management_routes import (
    router as subscription_management_router,
)
from optline.core.logging import get_logger

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 OPTLINE starting up...")
    db_ok = await test_connection()
    if db_ok:
        try:
            await init_db()
        except Exception as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected — endpoints will fail")
    yield
    logger.info("OPTLINE shut down")


app = FastAPI(
    title="OPTLINE",
    description="Subscription groups, unsubscribe links and segment membership for messaging workspaces.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(subscription_group_router)
app.include_router(subscription_management_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "optline",
        "version": "1.0.0",
    }
