"""
TradeDesk - Export Order Fulfillment Engine
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from tradedesk import __version__
from tradedesk.api.errors import register_exception_handlers
from tradedesk.api.router import api_router
from tradedesk.core import Base, engine, settings
from tradedesk.core.logging_config import setup_logging
from tradedesk.jobs import start_scheduler, stop_scheduler

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create tables if not exist
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")

    if settings.SCHEDULER_ENABLED:
        try:
            start_scheduler()
        except Exception as e:
            logger.warning(f"Could not start scheduler: {e}")

    yield

    # Shutdown
    if settings.SCHEDULER_ENABLED:
        stop_scheduler()
    logger.info(f"{settings.APP_NAME} shutting down")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Export order, inventory reservation, shipment and payment consistency engine",
    version=__version__,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include routers
app.include_router(api_router, prefix="/api")


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME, "version": __version__}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
