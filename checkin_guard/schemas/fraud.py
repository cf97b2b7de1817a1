"""
Pydantic models for check-in fraud scoring.

Timestamps are integer milliseconds since the epoch throughout, matching
what browsers and mobile clients report.
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Dict, Any
from enum import Enum


# ============================================
# ENUMS
# ============================================
class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AlertType(str, Enum):
    SUSPICIOUS_PATTERN = "SUSPICIOUS_PATTERN"
    LOCATION_SPOOFING = "LOCATION_SPOOFING"
    DEVICE_SHARING = "DEVICE_SHARING"
    TIME_MANIPULATION = "TIME_MANIPULATION"
    # Raised by callers (manual reports), never by the alert generator
    MULTIPLE_DEVICES = "MULTIPLE_DEVICES"
    QR_SHARING = "QR_SHARING"


# ============================================
# CHECK-IN INPUTS
# ============================================
class LocationData(BaseModel):
    """A single GPS reading."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float = Field(..., ge=0, description="Reported accuracy in meters")
    timestamp: int = Field(..., ge=0, description="When the reading was taken (ms)")
    altitude: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None


class DeviceFingerprint(BaseModel):
    """Stable identifier of the device/browser a check-in came from."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable device hash")
    user_agent: str = ""
    timestamp: int = Field(..., ge=0, description="Last time this device was seen (ms)")
    platform: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None


class SecurityContext(BaseModel):
    """One check-in attempt under evaluation."""
    model_config = ConfigDict(frozen=True)

    student_id: int
    qr_code_id: int
    session_id: str
    timestamp: int = Field(..., ge=0, description="Client-reported attempt time (ms)")
    location: Optional[LocationData] = None
    device: Optional[DeviceFingerprint] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


# ============================================
# BEHAVIOR BASELINE
# ============================================
class AttemptRecord(BaseModel):
    """A past check-in attempt kept in a student's history."""
    timestamp: int
    location: Optional[LocationData] = None
    device: Optional[DeviceFingerprint] = None
    success: bool = True


class BehaviorPattern(BaseModel):
    """Rolling per-student baseline built from past attempts."""
    student_id: int
    attempts: List[AttemptRecord] = Field(default_factory=list)
    days_active: int = 0
    attempt_hours: List[int] = Field(default_factory=list)
    last_updated: int = 0


# ============================================
# SCORING OUTPUT
# ============================================
class FraudScore(BaseModel):
    """Result of scoring one check-in attempt."""
    overall: float
    location: float = 0.0
    device: float = 0.0
    time: float = 0.0
    behavior: float = 0.0
    photo: float = 0.0
    factors: List[str] = Field(default_factory=list)
    confidence: float = 0.0
    risk_level: RiskLevel = RiskLevel.LOW


class FraudAlert(BaseModel):
    """A typed finding raised from a fraud score."""
    id: str
    type: AlertType
    severity: Severity
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: int
    student_id: int
    qr_code_id: int


# ============================================
# CONFIGURATION
# ============================================
class RiskThresholds(BaseModel):
    low: float = Field(0.3, ge=0, le=1)
    medium: float = Field(0.5, ge=0, le=1)
    high: float = Field(0.7, ge=0, le=1)
    critical: float = Field(0.9, ge=0, le=1)

    @model_validator(mode="after")
    def _check_ascending(self) -> "RiskThresholds":
        if not (self.low <= self.medium <= self.high <= self.critical):
            raise ValueError("thresholds must be ascending: low <= medium <= high <= critical")
        return self


class FraudDetectionConfig(BaseModel):
    """Signal weights and risk thresholds; weights need not sum to 1."""
    model_config = ConfigDict(frozen=True)

    location_weight: float = Field(0.3, ge=0)
    device_weight: float = Field(0.25, ge=0)
    time_weight: float = Field(0.2, ge=0)
    behavior_weight: float = Field(0.15, ge=0)
    photo_weight: float = Field(0.1, ge=0)
    thresholds: RiskThresholds = Field(default_factory=RiskThresholds)

    @model_validator(mode="after")
    def _check_weights(self) -> "FraudDetectionConfig":
        if self.total_weight <= 0:
            raise ValueError("at least one signal weight must be positive")
        return self

    @property
    def total_weight(self) -> float:
        return (
            self.location_weight
            + self.device_weight
            + self.time_weight
            + self.behavior_weight
            + self.photo_weight
        )
