"""
Main FastAPI application for the Check-in Guard fraud service
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from checkin_guard.config import settings
from checkin_guard.api import fraud, system
from checkin_guard.db.database import init_db

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Check-in Guard fraud service...")
    init_db()
    logger.info(f"Behavior store backend: {settings.BEHAVIOR_STORE_BACKEND}")

    yield

    # Shutdown
    logger.info("Shutting down Check-in Guard fraud service...")


app = FastAPI(
    title="Check-in Guard",
    description="Fraud-risk scoring for attendance check-ins",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system.router, tags=["System"])
app.include_router(fraud.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Check-in Guard",
        "version": "1.0.0",
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "checkin_guard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
