"""
Tests for alert generation from fraud scores
"""
import re

from checkin_guard.schemas.fraud import AlertType, FraudDetectionConfig, FraudScore, Severity
from checkin_guard.services.alert_service import AlertGenerator
from conftest import make_context


def by_type(alerts):
    return {a.type: a for a in alerts}


class TestAlertGenerator:

    def setup_method(self):
        self.generator = AlertGenerator(FraudDetectionConfig(), clock=lambda: 1705312800000)
        self.context = make_context(student_id=42, qr_code_id=9)

    def test_quiet_score_raises_nothing(self):
        score = FraudScore(overall=0.5, location=0.69, device=0.5, time=0.2)
        assert self.generator.generate_fraud_alerts(score, self.context) == []

    def test_critical_overall(self):
        score = FraudScore(overall=0.9, factors=["Suspicious location pattern"])
        alerts = self.generator.generate_fraud_alerts(score, self.context)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type == AlertType.SUSPICIOUS_PATTERN
        assert alert.severity == Severity.CRITICAL
        assert alert.metadata == {"score": 0.9, "factors": ["Suspicious location pattern"]}

    def test_signal_alerts_are_independent(self):
        score = FraudScore(overall=0.95, location=0.95, device=0.75, time=0.7)
        alerts = by_type(self.generator.generate_fraud_alerts(score, self.context))

        assert set(alerts) == {
            AlertType.SUSPICIOUS_PATTERN,
            AlertType.LOCATION_SPOOFING,
            AlertType.DEVICE_SHARING,
            AlertType.TIME_MANIPULATION,
        }
        assert alerts[AlertType.LOCATION_SPOOFING].severity == Severity.HIGH
        assert alerts[AlertType.DEVICE_SHARING].severity == Severity.MEDIUM
        assert alerts[AlertType.TIME_MANIPULATION].severity == Severity.MEDIUM
        assert alerts[AlertType.LOCATION_SPOOFING].metadata == {"location_score": 0.95}

    def test_high_severity_boundary_is_inclusive(self):
        score = FraudScore(overall=0.1, time=0.9)
        alerts = self.generator.generate_fraud_alerts(score, self.context)
        assert [(a.type, a.severity) for a in alerts] == [
            (AlertType.TIME_MANIPULATION, Severity.HIGH)
        ]

    def test_behavior_and_photo_have_no_alert_type(self):
        score = FraudScore(overall=0.3, behavior=1.0, photo=1.0)
        assert self.generator.generate_fraud_alerts(score, self.context) == []

    def test_alert_identity_fields(self):
        score = FraudScore(overall=0.1, location=0.8)
        alert = self.generator.generate_fraud_alerts(score, self.context)[0]

        assert re.fullmatch(r"alert_1705312800000_[a-z0-9]{9}", alert.id)
        assert alert.timestamp == 1705312800000
        assert alert.student_id == 42
        assert alert.qr_code_id == 9
        assert alert.description == "Suspicious location pattern detected"

    def test_ids_are_unique(self):
        score = FraudScore(overall=0.95, location=0.95, device=0.95, time=0.95)
        alerts = self.generator.generate_fraud_alerts(score, self.context)
        assert len({a.id for a in alerts}) == len(alerts) == 4

    def test_custom_critical_threshold(self):
        cfg = FraudDetectionConfig(thresholds={"low": 0.1, "medium": 0.2, "high": 0.3, "critical": 0.4})
        generator = AlertGenerator(cfg)
        alerts = generator.generate_fraud_alerts(FraudScore(overall=0.4), self.context)
        assert [a.type for a in alerts] == [AlertType.SUSPICIOUS_PATTERN]
