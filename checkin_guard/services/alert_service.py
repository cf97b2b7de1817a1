"""
Alert Generator - turns threshold breaches in a FraudScore into FraudAlerts

Behavior and photo scores only feed the overall score; they have no alert
type of their own.
"""
import logging
import secrets
import string
from typing import List, Optional

from checkin_guard.schemas.fraud import (
    AlertType, FraudAlert, FraudDetectionConfig, FraudScore, SecurityContext, Severity
)
from checkin_guard.services.behavior_service import Clock, now_ms

logger = logging.getLogger(__name__)

SIGNAL_ALERT_THRESHOLD = 0.7
SIGNAL_HIGH_SEVERITY = 0.9

# (score attribute, alert type, description)
SIGNAL_ALERTS = [
    ("location", AlertType.LOCATION_SPOOFING, "Suspicious location pattern detected"),
    ("device", AlertType.DEVICE_SHARING, "Device sharing or spoofing detected"),
    ("time", AlertType.TIME_MANIPULATION, "Time manipulation detected"),
]

_ID_ALPHABET = string.ascii_lowercase + string.digits


class AlertGenerator:
    """Independent, non-exclusive alert rules over one FraudScore."""

    def __init__(self, config: FraudDetectionConfig, clock: Optional[Clock] = None):
        self.config = config
        self.clock = clock or now_ms

    def generate_fraud_alerts(
        self,
        score: FraudScore,
        context: SecurityContext
    ) -> List[FraudAlert]:
        alerts = []

        if score.overall >= self.config.thresholds.critical:
            alerts.append(self._build_alert(
                context,
                AlertType.SUSPICIOUS_PATTERN,
                Severity.CRITICAL,
                "Critical fraud risk detected",
                {"score": score.overall, "factors": list(score.factors)}
            ))

        for signal, alert_type, description in SIGNAL_ALERTS:
            value = getattr(score, signal)
            if value < SIGNAL_ALERT_THRESHOLD:
                continue
            severity = Severity.HIGH if value >= SIGNAL_HIGH_SEVERITY else Severity.MEDIUM
            alerts.append(self._build_alert(
                context,
                alert_type,
                severity,
                description,
                {f"{signal}_score": value}
            ))

        return alerts

    def _build_alert(
        self,
        context: SecurityContext,
        alert_type: AlertType,
        severity: Severity,
        description: str,
        metadata: dict
    ) -> FraudAlert:
        timestamp = self.clock()
        return FraudAlert(
            id=self.generate_alert_id(timestamp),
            type=alert_type,
            severity=severity,
            description=description,
            metadata=metadata,
            timestamp=timestamp,
            student_id=context.student_id,
            qr_code_id=context.qr_code_id
        )

    @staticmethod
    def generate_alert_id(timestamp: int) -> str:
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
        return f"alert_{timestamp}_{suffix}"
