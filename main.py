# ============================================================================
# SYNC PRIMITIVES CONTROLLER - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - FastAPI application entry point
# PURPOSE: Main application with the reconciliation controller
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Sync Primitives Controller Main Application

FastAPI application that:
1. Provides an HTTP API for creating primitives and client operations
2. Runs the reconciliation controller in the background
3. Manages the object store connection

Environment:
    STORE_BACKEND   memory (default) | postgres
    RUN_CONTROLLER  true (default) | false for an API-only replica
    LOG_LEVEL, LOG_FORMAT=json

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from __version__ import __version__, BUILD_DATE, EPOCH
from core.config import get_defaults
from controller import Controller, build_registry
from repositories import create_store
from services import SyncClient
from api.routes import router, set_services

# Health check system
from health import health_router, get_registry
from health.checks import set_controller, set_store

# Configure logging using our structured logging system
from core.logging import configure_logging, get_logger

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the store, the reconciler registry and the controller on
    startup; stops them on shutdown.
    """
    logger.info(f"Starting Sync Controller v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    defaults = get_defaults()

    store = await create_store()
    logger.info(f"Object store ready ({type(store).__name__})")

    # Reconcilers are built once here and injected; nothing registers at import
    registry = build_registry(store, defaults=defaults.reconcile)
    controller = Controller(store, registry, defaults=defaults.controller)

    client = SyncClient(store, retry_defaults=defaults.retry, wait_defaults=defaults.wait)
    set_services(client=client, controller=controller)

    run_controller = os.environ.get("RUN_CONTROLLER", "true").lower() != "false"
    if run_controller:
        await controller.start()
    else:
        logger.info("RUN_CONTROLLER=false, serving API only")

    set_store(store)
    set_controller(controller)
    get_registry().mark_initialized()
    logger.info(f"Health checks initialized ({len(get_registry())} checks registered)")

    yield

    logger.info("Shutting down Sync Controller...")
    await controller.stop()
    await store.close()
    logger.info("Sync Controller stopped")


app = FastAPI(
    title="Sync Primitives Controller",
    description=f"Epoch {EPOCH} declarative distributed synchronization primitives",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check routes (no prefix - /livez, /readyz, /health)
app.include_router(health_router)

# API routes
app.include_router(router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Sync Primitives Controller",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
