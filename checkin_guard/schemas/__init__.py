"""
Schemas package - domain and API models
"""
from checkin_guard.schemas.fraud import (
    RiskLevel,
    Severity,
    AlertType,
    LocationData,
    DeviceFingerprint,
    SecurityContext,
    AttemptRecord,
    BehaviorPattern,
    FraudScore,
    FraudAlert,
    RiskThresholds,
    FraudDetectionConfig,
)

__all__ = [
    "RiskLevel",
    "Severity",
    "AlertType",
    "LocationData",
    "DeviceFingerprint",
    "SecurityContext",
    "AttemptRecord",
    "BehaviorPattern",
    "FraudScore",
    "FraudAlert",
    "RiskThresholds",
    "FraudDetectionConfig",
]
