"""
System Router - Health checks
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkin_guard.config import settings
from checkin_guard.db.database import get_db
from checkin_guard.dependencies import get_fraud_service
from checkin_guard.services.fraud_detection_service import FraudDetectionService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/ai/health")
async def health_check(
    db: Session = Depends(get_db),
    service: FraudDetectionService = Depends(get_fraud_service)
):
    """Status of the database and the behavior store."""
    database_status = "unhealthy"
    try:
        db.execute(text("SELECT 1"))
        database_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")

    store_status = "healthy" if service.store.health_check() else "unhealthy"

    return {
        "database": database_status,
        "behavior_store": store_status,
        "behavior_store_backend": settings.BEHAVIOR_STORE_BACKEND,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
