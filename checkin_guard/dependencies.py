"""
FastAPI dependencies for the Check-in Guard fraud service
"""
from typing import Optional
from fastapi import Header, HTTPException, status
from checkin_guard.config import settings
from checkin_guard.services.fraud_detection_service import (
    FraudDetectionService,
    fraud_detection_service,
)


def get_fraud_service() -> FraudDetectionService:
    """Process-wide fraud detection service"""
    return fraud_detection_service


async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """Verify API key for internal endpoints"""
    if not x_api_key or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return x_api_key
