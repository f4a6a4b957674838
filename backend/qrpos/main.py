"""
QR POS - Backend API
Restaurant point-of-sale: orders, shifts and the end-of-day close
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from qrpos.api import daily_close, orders, shifts
from qrpos.core.config import settings
from qrpos.core.database import Base, check_database_connection, engine

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(daily_close.router)
app.include_router(orders.router)
app.include_router(shifts.router)


@app.on_event("startup")
def create_tables():
    """Create missing tables (local SQLite and first deploys)"""
    import qrpos.models  # noqa: F401  registers the tables on Base.metadata
    check_database_connection(max_retries=settings.DB_CONNECT_RETRIES)
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.API_TITLE} {settings.API_VERSION} started")


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": "QR POS API",
        "status": "online",
        "version": settings.API_VERSION,
    }


@app.get("/health")
async def health():
    """Health check endpoint for monitoring - tests database connectivity"""
    start_time = time.time()

    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        db_latency_ms = check_database_connection(max_retries=1, retry_delay=0.5)
        db_status = "connected"
    except Exception as e:
        db_status = "disconnected"
        db_error = str(e)

    total_latency_ms = round((time.time() - start_time) * 1000, 2)

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "qrpos-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error,
        },
        "total_latency_ms": total_latency_ms
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "qrpos.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_DEBUG,
    )
