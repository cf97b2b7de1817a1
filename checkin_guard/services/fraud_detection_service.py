"""
Fraud Detection Service - check-in risk scoring

Wires configuration, the behavior store, the signal analyzers, the scorer
and the alert generator behind one in-process API:

- calculate_fraud_score / generate_fraud_alerts: pure evaluation
- evaluate: both of the above, plus a log line sized to the risk level
- update_behavior_pattern: called by the caller once the outcome is known
- get_behavior_pattern / prune_behavior: diagnostics and retention
"""
import logging
from typing import List, Optional, Tuple

from checkin_guard.config import Settings, settings
from checkin_guard.schemas.fraud import (
    BehaviorPattern, DeviceFingerprint, FraudAlert, FraudDetectionConfig,
    FraudScore, LocationData, RiskLevel, SecurityContext
)
from checkin_guard.services.alert_service import AlertGenerator
from checkin_guard.services.behavior_service import (
    BehaviorStore, Clock, InMemoryBehaviorStore, create_behavior_store, now_ms
)
from checkin_guard.services.fraud_scoring_service import FraudScorer
from checkin_guard.services.signal_service import (
    BehaviorAnalyzer, DeviceAnalyzer, HeuristicDeviceAnalyzer, HeuristicPhotoAnalyzer,
    LocationAnalyzer, PhotoAnalyzer, PhotoPayload, TimeAnalyzer
)

logger = logging.getLogger(__name__)


class FraudDetectionService:
    """Entry point for scoring check-in attempts."""

    def __init__(
        self,
        config: Optional[FraudDetectionConfig] = None,
        store: Optional[BehaviorStore] = None,
        device_analyzer: Optional[DeviceAnalyzer] = None,
        photo_analyzer: Optional[PhotoAnalyzer] = None,
        timezone: str = "UTC",
        clock: Optional[Clock] = None
    ):
        self.config = config or FraudDetectionConfig()
        self.clock = clock or now_ms
        self.store = store or InMemoryBehaviorStore(timezone=timezone, clock=self.clock)
        self.scorer = FraudScorer(
            config=self.config,
            location_analyzer=LocationAnalyzer(),
            device_analyzer=device_analyzer or HeuristicDeviceAnalyzer(),
            time_analyzer=TimeAnalyzer(timezone=timezone, clock=self.clock),
            behavior_analyzer=BehaviorAnalyzer(timezone=timezone),
            photo_analyzer=photo_analyzer or HeuristicPhotoAnalyzer()
        )
        self.alert_generator = AlertGenerator(self.config, clock=self.clock)

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "FraudDetectionService":
        store = create_behavior_store(
            app_settings.BEHAVIOR_STORE_BACKEND,
            timezone=app_settings.FRAUD_TIMEZONE,
            retention_days=app_settings.BEHAVIOR_RETENTION_DAYS,
            max_attempts=app_settings.BEHAVIOR_MAX_ATTEMPTS,
            redis_url=app_settings.REDIS_URL
        )
        return cls(
            config=app_settings.fraud_config(),
            store=store,
            device_analyzer=HeuristicDeviceAnalyzer(
                max_devices=app_settings.MAX_DEVICES_PER_STUDENT
            ),
            photo_analyzer=HeuristicPhotoAnalyzer(max_bytes=app_settings.PHOTO_MAX_BYTES),
            timezone=app_settings.FRAUD_TIMEZONE
        )

    def calculate_fraud_score(
        self,
        context: SecurityContext,
        location: Optional[LocationData] = None,
        device: Optional[DeviceFingerprint] = None,
        photo: Optional[PhotoPayload] = None
    ) -> FraudScore:
        """Score one attempt against the student's current baseline."""
        pattern = self.store.get_pattern(context.student_id)
        return self.scorer.calculate_fraud_score(
            context, pattern, location=location, device=device, photo=photo
        )

    def generate_fraud_alerts(
        self,
        score: FraudScore,
        context: SecurityContext
    ) -> List[FraudAlert]:
        return self.alert_generator.generate_fraud_alerts(score, context)

    def evaluate(
        self,
        context: SecurityContext,
        location: Optional[LocationData] = None,
        device: Optional[DeviceFingerprint] = None,
        photo: Optional[PhotoPayload] = None
    ) -> Tuple[FraudScore, List[FraudAlert]]:
        """Score an attempt, raise alerts and log the outcome."""
        score = self.calculate_fraud_score(context, location=location, device=device, photo=photo)
        alerts = self.generate_fraud_alerts(score, context)
        self._log_detection(context, score, alerts)
        return score, alerts

    def update_behavior_pattern(
        self,
        student_id: int,
        context: SecurityContext,
        success: bool = True
    ) -> BehaviorPattern:
        """Record an attempt in the baseline once its outcome is known."""
        return self.store.update(student_id, context, success)

    def get_behavior_pattern(self, student_id: int) -> Optional[BehaviorPattern]:
        return self.store.get_pattern(student_id)

    def prune_behavior(self, now: Optional[int] = None) -> int:
        removed = self.store.prune(now=now)
        if removed:
            logger.info(f"Pruned {removed} behavior attempts past retention")
        return removed

    def _log_detection(
        self,
        context: SecurityContext,
        score: FraudScore,
        alerts: List[FraudAlert]
    ) -> None:
        message = (
            f"student={context.student_id} qr_code={context.qr_code_id} "
            f"overall={score.overall:.3f} risk={score.risk_level.value} "
            f"factors={score.factors} alerts={[a.type.value for a in alerts]}"
        )
        if score.risk_level in (RiskLevel.CRITICAL, RiskLevel.HIGH):
            logger.error(f"High fraud risk detected: {message}")
        elif score.risk_level == RiskLevel.MEDIUM:
            logger.warning(f"Medium fraud risk detected: {message}")
        else:
            logger.info(f"Fraud detection completed: {message}")


# Singleton instance
fraud_detection_service = FraudDetectionService.from_settings(settings)
