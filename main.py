"""
StockDesk - Orders, Deliveries & Stock Ledger
FastAPI Application Entry Point
"""
import logging
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager

from stockdesk.core import settings, engine, Base
from stockdesk.core.errors import register_exception_handlers
from stockdesk.core.logging import setup_logging
from stockdesk.api import api_router
from stockdesk.jobs import start_scheduler, stop_scheduler

logger = logging.getLogger("stockdesk")

# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create tables if not exist
    setup_logging()
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
    description="Customers, Orders, Deliveries & Stock Ledger",
    version="1.0.0",
    lifespan=lifespan
)

register_exception_handlers(app)

# Include routers
app.include_router(api_router, prefix="/api")

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
