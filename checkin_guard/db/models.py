"""
SQLAlchemy ORM Models for the Check-in Guard fraud service
"""
from sqlalchemy import Column, Integer, String, Text, Float, DateTime, BigInteger, JSON, Index
from sqlalchemy.sql import func
from checkin_guard.db.database import Base


class FraudAlertRecord(Base):
    """Fraud alerts raised for check-in attempts"""
    __tablename__ = "fraud_alerts"

    id = Column(Integer, primary_key=True, index=True)
    alert_id = Column(String(64), unique=True, nullable=False)
    alert_type = Column(String(30), nullable=False)
    severity = Column(String(10), nullable=False)
    description = Column(Text, nullable=False)
    alert_metadata = Column(JSON)
    student_id = Column(Integer, nullable=False)
    qr_code_id = Column(Integer, nullable=False)
    session_id = Column(String(255))
    raised_at_ms = Column(BigInteger, nullable=False)
    # Resolution is handled by the attendance system
    status = Column(String(20), default="PENDING")
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_fraud_alert_student', 'student_id'),
        Index('idx_fraud_alert_severity', 'severity'),
        Index('idx_fraud_alert_type', 'alert_type'),
    )


class FraudEvaluation(Base):
    """Audit log of scored check-in attempts"""
    __tablename__ = "fraud_evaluations"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False)
    qr_code_id = Column(Integer, nullable=False)
    session_id = Column(String(255))
    client_timestamp_ms = Column(BigInteger, nullable=False)
    # Score snapshot
    overall = Column(Float, nullable=False)
    location_score = Column(Float, default=0.0)
    device_score = Column(Float, default=0.0)
    time_score = Column(Float, default=0.0)
    behavior_score = Column(Float, default=0.0)
    photo_score = Column(Float, default=0.0)
    confidence = Column(Float, default=0.0)
    risk_level = Column(String(10), nullable=False)
    factors = Column(JSON)
    # Input snapshot
    latitude = Column(Float)
    longitude = Column(Float)
    accuracy = Column(Float)
    device_hash = Column(String(255))
    ip_address = Column(String(64))
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_fraud_eval_student', 'student_id'),
        Index('idx_fraud_eval_risk', 'risk_level'),
    )
