"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, jobs, templates, etl
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.logging import setup_logging
from ingestion.scheduler import ETLScheduler
import logging

# Configure logging
setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Trending Template ETL API",
    description="Operator API for the trending template ETL jobs",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = ETLScheduler()


# Include routers
app.include_router(health.router)
app.include_router(jobs.router)
app.include_router(templates.router)
app.include_router(etl.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Trending Template ETL API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Trending Template ETL API")
    if scheduler.scheduler.running:
        scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Trending Template ETL API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "jobs": "/jobs",
            "templates": "/templates",
            "etl": "/etl/{job_type}"
        }
    }
