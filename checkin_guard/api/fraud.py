"""
Fraud API - Check-in risk scoring endpoints

Provides:
- POST /fraud/score: Score a check-in attempt and raise alerts
- POST /fraud/behavior/{student_id}: Record an attempt outcome in the baseline
- GET /fraud/behavior/{student_id}: Current baseline for a student
- GET /fraud/alerts: Persisted alerts, filterable

Request bodies are validated here (coordinate ranges, non-negative accuracy
and timestamps); the scoring core assumes validated input.
"""
import logging
from typing import List, Optional

import redis
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkin_guard.db.database import get_db
from checkin_guard.db.models import FraudAlertRecord, FraudEvaluation
from checkin_guard.dependencies import get_fraud_service, verify_api_key
from checkin_guard.schemas.fraud import (
    AlertType, BehaviorPattern, DeviceFingerprint, FraudAlert, FraudScore,
    LocationData, SecurityContext, Severity
)
from checkin_guard.services.fraud_detection_service import FraudDetectionService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/fraud",
    tags=["Fraud"],
    dependencies=[Depends(verify_api_key)]
)

BEHAVIOR_STORE_UNAVAILABLE = "Behavior store unavailable"


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================

class ScoreRequest(BaseModel):
    """Check-in attempt to score"""
    context: SecurityContext
    location: Optional[LocationData] = Field(
        None, description="GPS reading; defaults to context.location"
    )
    device: Optional[DeviceFingerprint] = Field(
        None, description="Device fingerprint; defaults to context.device"
    )
    photo: Optional[str] = Field(None, description="Photo as data URL or base64")

    class Config:
        json_schema_extra = {
            "example": {
                "context": {
                    "student_id": 42,
                    "qr_code_id": 7,
                    "session_id": "lecture-2024-01-15",
                    "timestamp": 1705312800000
                },
                "location": {
                    "latitude": 40.7128,
                    "longitude": -74.0060,
                    "accuracy": 10,
                    "timestamp": 1705312800000
                }
            }
        }


class ScoreResponse(BaseModel):
    score: FraudScore
    alerts: List[FraudAlert]
    evaluation_id: Optional[int] = None


class BehaviorUpdateRequest(BaseModel):
    """Outcome of an attempt, recorded after verification"""
    context: SecurityContext
    location: Optional[LocationData] = Field(
        None, description="GPS reading; defaults to context.location"
    )
    device: Optional[DeviceFingerprint] = Field(
        None, description="Device fingerprint; defaults to context.device"
    )
    success: bool = True


class AlertRecordResponse(BaseModel):
    id: int
    alert_id: str
    alert_type: str
    severity: str
    description: str
    metadata: Optional[dict] = None
    student_id: int
    qr_code_id: int
    session_id: Optional[str] = None
    raised_at_ms: int
    status: Optional[str] = None


# ============================================================
# ENDPOINTS
# ============================================================

@router.post("/score", response_model=ScoreResponse)
async def score_check_in(
    request: ScoreRequest,
    db: Session = Depends(get_db),
    service: FraudDetectionService = Depends(get_fraud_service)
):
    """
    POST /fraud/score

    Scores the attempt against the student's current baseline. The baseline
    is NOT updated here; call POST /fraud/behavior/{student_id} once the
    outcome of the attempt is known.
    """
    context = request.context
    location = request.location or context.location
    device = request.device or context.device

    try:
        score, alerts = service.evaluate(
            context, location=location, device=device, photo=request.photo
        )
    except redis.RedisError as e:
        logger.warning(f"Behavior store unavailable while scoring: {e}")
        raise HTTPException(status_code=503, detail=BEHAVIOR_STORE_UNAVAILABLE)

    try:
        evaluation = FraudEvaluation(
            student_id=context.student_id,
            qr_code_id=context.qr_code_id,
            session_id=context.session_id,
            client_timestamp_ms=context.timestamp,
            overall=score.overall,
            location_score=score.location,
            device_score=score.device,
            time_score=score.time,
            behavior_score=score.behavior,
            photo_score=score.photo,
            confidence=score.confidence,
            risk_level=score.risk_level.value,
            factors=score.factors,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            accuracy=location.accuracy if location else None,
            device_hash=device.id if device else None,
            ip_address=context.ip_address
        )
        db.add(evaluation)

        for alert in alerts:
            db.add(FraudAlertRecord(
                alert_id=alert.id,
                alert_type=alert.type.value,
                severity=alert.severity.value,
                description=alert.description,
                alert_metadata=alert.metadata,
                student_id=alert.student_id,
                qr_code_id=alert.qr_code_id,
                session_id=context.session_id,
                raised_at_ms=alert.timestamp
            ))

        db.commit()
        db.refresh(evaluation)

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error persisting fraud evaluation: {e}")
        raise HTTPException(status_code=500, detail="Failed to persist fraud evaluation")

    return ScoreResponse(score=score, alerts=alerts, evaluation_id=evaluation.id)


@router.post("/behavior/{student_id}", response_model=BehaviorPattern)
async def update_behavior(
    student_id: int,
    request: BehaviorUpdateRequest,
    service: FraudDetectionService = Depends(get_fraud_service)
):
    """
    POST /fraud/behavior/{student_id}

    Appends the attempt to the student's baseline. Top-level location and
    device take the same fallback as /fraud/score, so the inputs that were
    scored are the ones recorded. Callers must serialize updates for one
    student.
    """
    if request.context.student_id != student_id:
        raise HTTPException(
            status_code=400,
            detail="context.student_id does not match path student_id"
        )
    context = request.context.model_copy(update={
        "location": request.location or request.context.location,
        "device": request.device or request.context.device
    })
    try:
        return service.update_behavior_pattern(student_id, context, request.success)
    except redis.RedisError as e:
        logger.warning(f"Behavior store unavailable while recording attempt: {e}")
        raise HTTPException(status_code=503, detail=BEHAVIOR_STORE_UNAVAILABLE)


@router.get("/behavior/{student_id}", response_model=BehaviorPattern)
async def get_behavior(
    student_id: int,
    service: FraudDetectionService = Depends(get_fraud_service)
):
    """GET /fraud/behavior/{student_id}"""
    try:
        pattern = service.get_behavior_pattern(student_id)
    except redis.RedisError as e:
        logger.warning(f"Behavior store unavailable while reading baseline: {e}")
        raise HTTPException(status_code=503, detail=BEHAVIOR_STORE_UNAVAILABLE)
    if pattern is None:
        raise HTTPException(status_code=404, detail="No behavior baseline for student")
    return pattern


@router.get("/alerts", response_model=List[AlertRecordResponse])
async def list_alerts(
    student_id: Optional[int] = Query(None),
    severity: Optional[Severity] = Query(None),
    alert_type: Optional[AlertType] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
):
    """GET /fraud/alerts - newest first"""
    query = db.query(FraudAlertRecord)

    if student_id is not None:
        query = query.filter(FraudAlertRecord.student_id == student_id)
    if severity:
        query = query.filter(FraudAlertRecord.severity == severity.value)
    if alert_type:
        query = query.filter(FraudAlertRecord.alert_type == alert_type.value)

    records = query.order_by(
        FraudAlertRecord.raised_at_ms.desc(),
        FraudAlertRecord.id.desc()
    ).limit(limit).all()

    return [
        AlertRecordResponse(
            id=r.id,
            alert_id=r.alert_id,
            alert_type=r.alert_type,
            severity=r.severity,
            description=r.description,
            metadata=r.alert_metadata,
            student_id=r.student_id,
            qr_code_id=r.qr_code_id,
            session_id=r.session_id,
            raised_at_ms=r.raised_at_ms,
            status=r.status
        )
        for r in records
    ]
