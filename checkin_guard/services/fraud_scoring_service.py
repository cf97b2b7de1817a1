"""
Fraud Scorer - combines the five signal scores into one FraudScore
"""
import logging
from typing import Optional

from checkin_guard.schemas.fraud import (
    BehaviorPattern, DeviceFingerprint, FraudDetectionConfig, FraudScore,
    LocationData, RiskLevel, SecurityContext
)
from checkin_guard.services.signal_service import (
    BehaviorAnalyzer, DeviceAnalyzer, LocationAnalyzer, PhotoAnalyzer,
    PhotoPayload, TimeAnalyzer
)

logger = logging.getLogger(__name__)

# Signals scoring above this are named in FraudScore.factors
FACTOR_CUTOFF = 0.3

FACTOR_LABELS = {
    "location": "Suspicious location pattern",
    "device": "Device sharing or spoofing",
    "time": "Time manipulation detected",
    "behavior": "Unusual behavior pattern",
    "photo": "Photo verification issues",
}

OPTIONAL_INPUTS = 3


class FraudScorer:
    """
    Weighted combination of location, device, time, behavior and photo.

    Signals whose input is missing score 0 but keep their weight in the
    denominator, so less evidence pulls the overall score down.
    """

    def __init__(
        self,
        config: FraudDetectionConfig,
        location_analyzer: LocationAnalyzer,
        device_analyzer: DeviceAnalyzer,
        time_analyzer: TimeAnalyzer,
        behavior_analyzer: BehaviorAnalyzer,
        photo_analyzer: PhotoAnalyzer
    ):
        self.config = config
        self.location_analyzer = location_analyzer
        self.device_analyzer = device_analyzer
        self.time_analyzer = time_analyzer
        self.behavior_analyzer = behavior_analyzer
        self.photo_analyzer = photo_analyzer

    def calculate_fraud_score(
        self,
        context: SecurityContext,
        pattern: Optional[BehaviorPattern],
        location: Optional[LocationData] = None,
        device: Optional[DeviceFingerprint] = None,
        photo: Optional[PhotoPayload] = None
    ) -> FraudScore:
        scores = {name: 0.0 for name in FACTOR_LABELS}

        if location is not None:
            scores["location"] = self.location_analyzer.analyze(context, location, pattern).score
        if device is not None:
            scores["device"] = self.device_analyzer.analyze(context, device, pattern).score
        scores["time"] = self.time_analyzer.analyze(context, pattern).score
        scores["behavior"] = self.behavior_analyzer.analyze(context, pattern).score
        if photo:
            scores["photo"] = self.photo_analyzer.analyze(photo).score

        overall = self.weighted_overall(scores)
        present = sum(1 for value in (location, device, photo) if value)

        return FraudScore(
            overall=overall,
            location=scores["location"],
            device=scores["device"],
            time=scores["time"],
            behavior=scores["behavior"],
            photo=scores["photo"],
            factors=[
                FACTOR_LABELS[name] for name, score in scores.items()
                if score > FACTOR_CUTOFF
            ],
            confidence=min(1.0, present / OPTIONAL_INPUTS),
            risk_level=self.classify(overall)
        )

    def weighted_overall(self, scores: dict) -> float:
        cfg = self.config
        weighted = (
            scores["location"] * cfg.location_weight +
            scores["device"] * cfg.device_weight +
            scores["time"] * cfg.time_weight +
            scores["behavior"] * cfg.behavior_weight +
            scores["photo"] * cfg.photo_weight
        )
        return weighted / cfg.total_weight

    def classify(self, overall: float) -> RiskLevel:
        thresholds = self.config.thresholds
        if overall >= thresholds.critical:
            return RiskLevel.CRITICAL
        if overall >= thresholds.high:
            return RiskLevel.HIGH
        if overall >= thresholds.medium:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW
