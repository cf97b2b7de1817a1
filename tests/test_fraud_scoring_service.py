"""
Tests for fraud score aggregation and the end-to-end detection scenarios
"""
import logging

import pytest

from checkin_guard.schemas.fraud import AlertType, FraudDetectionConfig, RiskLevel, Severity
from checkin_guard.services.fraud_detection_service import FraudDetectionService
from checkin_guard.services.signal_service import AnalyzerResult, PhotoAnalyzer
from conftest import (
    BASE_MS, HOUR_MS, MINUTE_MS, make_context, make_device, make_location
)

LOCATION_ONLY = FraudDetectionConfig(
    location_weight=1, device_weight=0, time_weight=0, behavior_weight=0, photo_weight=0
)


class TestFraudScorer:

    def test_clean_first_attempt(self, service):
        ctx = make_context(timestamp=BASE_MS - 5000)
        score = service.calculate_fraud_score(
            ctx,
            location=make_location(accuracy=10),
            device=make_device("laptop")
        )

        assert score.location == 0
        assert score.device == 0
        assert score.time == 0
        assert score.behavior == 0
        assert score.photo == 0
        assert score.overall == 0
        assert score.risk_level == RiskLevel.LOW
        assert score.factors == []
        assert service.generate_fraud_alerts(score, ctx) == []

    def test_scores_stay_in_unit_interval(self, service):
        ctx = make_context(timestamp=BASE_MS + 10 * HOUR_MS)
        score = service.calculate_fraud_score(
            ctx,
            location=make_location(accuracy=0),
            device=make_device(user_agent="bot in a vmware container"),
            photo="data:image/png;screenshot-edited;base64,%%%"
        )

        for value in (score.location, score.device, score.time, score.behavior,
                      score.photo, score.overall, score.confidence):
            assert 0 <= value <= 1

    @pytest.mark.parametrize("inputs,confidence", [
        ({}, 0.0),
        ({"location": make_location()}, 1 / 3),
        ({"location": make_location(), "device": make_device()}, 2 / 3),
        ({"location": make_location(), "device": make_device(), "photo": "https://x/y.jpg"}, 1.0),
    ])
    def test_confidence_tracks_optional_inputs(self, service, inputs, confidence):
        score = service.calculate_fraud_score(make_context(), **inputs)
        assert score.confidence == pytest.approx(confidence)

    def test_absent_signals_keep_their_weight(self, service):
        ctx = make_context(timestamp=BASE_MS - 10 * MINUTE_MS)
        score = service.calculate_fraud_score(ctx)

        # time 0.4 * weight 0.2, divided by the full weight sum of 1.0
        assert score.time == pytest.approx(0.4)
        assert score.overall == pytest.approx(0.08)

    def test_unnormalized_weights(self, clock):
        cfg = FraudDetectionConfig(
            location_weight=3, device_weight=2, time_weight=2,
            behavior_weight=1, photo_weight=2
        )
        service = FraudDetectionService(config=cfg, clock=clock)
        score = service.calculate_fraud_score(make_context(timestamp=BASE_MS - 10 * MINUTE_MS))

        assert score.overall == pytest.approx(0.4 * 2 / 10)

    def test_idempotent(self, service):
        service.update_behavior_pattern(1, make_context(timestamp=BASE_MS - HOUR_MS))
        args = dict(location=make_location(), device=make_device(), photo="https://x/y.jpg")

        first = service.calculate_fraud_score(make_context(), **args)
        second = service.calculate_fraud_score(make_context(), **args)

        assert first == second

    @pytest.mark.parametrize("photo", ["", b""])
    def test_empty_photo_counts_as_absent(self, service, photo):
        score = service.calculate_fraud_score(
            make_context(), location=make_location(), photo=photo
        )

        assert score.photo == 0
        assert score.confidence == pytest.approx(1 / 3)
        assert score.overall == 0

    def test_scoring_does_not_touch_the_baseline(self, service):
        service.calculate_fraud_score(make_context(), location=make_location())
        assert service.get_behavior_pattern(1) is None

    def test_factors_name_signals_above_cutoff(self, service):
        ctx = make_context(timestamp=BASE_MS - 10 * MINUTE_MS)
        score = service.calculate_fraud_score(
            ctx,
            device=make_device(user_agent="crawler"),
            photo="data:image/png;name=screen.png;base64,iVBORw0KGgo="
        )

        assert score.factors == [
            "Device sharing or spoofing",
            "Time manipulation detected",
            "Photo verification issues",
        ]

    def test_factor_cutoff_is_exclusive(self, service):
        # Exactly 0.3 from rapid switching alone is not worth mentioning
        for i, device_id in enumerate("abc"):
            service.update_behavior_pattern(1, make_context(
                timestamp=BASE_MS - (3 - i) * HOUR_MS, device=make_device(device_id)
            ))
        score = service.calculate_fraud_score(make_context(), device=make_device("c"))

        assert score.device == pytest.approx(0.3)
        assert "Device sharing or spoofing" not in score.factors

    @pytest.mark.parametrize("overall,level", [
        (0.0, RiskLevel.LOW),
        (0.49, RiskLevel.LOW),
        (0.5, RiskLevel.MEDIUM),
        (0.7, RiskLevel.HIGH),
        (0.89, RiskLevel.HIGH),
        (0.9, RiskLevel.CRITICAL),
        (1.0, RiskLevel.CRITICAL),
    ])
    def test_risk_level_boundaries_are_inclusive(self, service, overall, level):
        assert service.scorer.classify(overall) == level

    def test_pluggable_photo_analyzer(self, clock):
        class RejectEverything(PhotoAnalyzer):
            def analyze(self, photo):
                return AnalyzerResult(score=1.0, reasons=["face_mismatch"])

        service = FraudDetectionService(photo_analyzer=RejectEverything(), clock=clock)
        score = service.calculate_fraud_score(make_context(), photo="anything")

        assert score.photo == 1.0
        assert score.overall == pytest.approx(0.1)


class TestScenarios:

    def test_impossible_travel(self, clock):
        service = FraudDetectionService(config=LOCATION_ONLY, clock=clock)
        service.update_behavior_pattern(1, make_context(
            timestamp=BASE_MS, location=make_location(40.0, -74.0, timestamp=BASE_MS)
        ))
        clock.now = BASE_MS + 10_000

        ctx = make_context(timestamp=BASE_MS + 10_000)
        score = service.calculate_fraud_score(
            ctx, location=make_location(40.1, -74.0, accuracy=10, timestamp=BASE_MS + 10_000)
        )
        clean = service.calculate_fraud_score(
            ctx, location=make_location(40.0, -74.0, accuracy=10, timestamp=BASE_MS + 10_000)
        )

        assert score.location >= 0.5
        assert score.overall > clean.overall
        assert score.risk_level in (RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL)
        assert "Suspicious location pattern" in score.factors

    def test_impossible_travel_with_default_weights(self, service, clock):
        service.update_behavior_pattern(1, make_context(
            timestamp=BASE_MS, location=make_location(40.0, -74.0, timestamp=BASE_MS)
        ))
        clock.now = BASE_MS + 10_000

        score = service.calculate_fraud_score(
            make_context(timestamp=BASE_MS + 10_000),
            location=make_location(40.1, -74.0, accuracy=10, timestamp=BASE_MS + 10_000)
        )

        assert score.location == pytest.approx(0.5)
        assert score.overall == pytest.approx(0.5 * 0.3)

    def test_device_sharing(self, service):
        for i, device_id in enumerate(["phone", "tablet", "laptop", "lab-pc"]):
            service.update_behavior_pattern(1, make_context(
                timestamp=BASE_MS - (4 - i) * HOUR_MS, device=make_device(device_id)
            ))

        ctx = make_context()
        score = service.calculate_fraud_score(ctx, device=make_device("lab-pc"))
        alerts = service.generate_fraud_alerts(score, ctx)

        assert score.device >= 0.7
        sharing = [a for a in alerts if a.type == AlertType.DEVICE_SHARING]
        assert len(sharing) == 1
        assert sharing[0].severity == Severity.MEDIUM

    def test_device_sharing_by_bot_is_high_severity(self, service):
        for i, device_id in enumerate(["phone", "tablet", "laptop", "lab-pc"]):
            service.update_behavior_pattern(1, make_context(
                timestamp=BASE_MS - (4 - i) * HOUR_MS, device=make_device(device_id)
            ))

        ctx = make_context()
        score = service.calculate_fraud_score(ctx, device=make_device("x", user_agent="Bot/1.0"))
        alerts = service.generate_fraud_alerts(score, ctx)

        assert score.device == 1.0
        assert [a.severity for a in alerts if a.type == AlertType.DEVICE_SHARING] == [Severity.HIGH]

    def test_clock_skew(self, service):
        score = service.calculate_fraud_score(make_context(timestamp=BASE_MS - 10 * MINUTE_MS))
        assert score.time >= 0.4

    def test_evaluate_logs_by_risk_level(self, clock, caplog):
        cfg = FraudDetectionConfig(
            location_weight=0, device_weight=1, time_weight=0, behavior_weight=0, photo_weight=0
        )
        service = FraudDetectionService(config=cfg, clock=clock)

        with caplog.at_level(logging.INFO, logger="checkin_guard.services.fraud_detection_service"):
            score, alerts = service.evaluate(
                make_context(), device=make_device(user_agent="spider in docker")
            )

        assert score.risk_level == RiskLevel.CRITICAL
        assert {a.type for a in alerts} == {AlertType.SUSPICIOUS_PATTERN, AlertType.DEVICE_SHARING}
        assert any(
            r.levelno == logging.ERROR and "High fraud risk detected" in r.getMessage()
            for r in caplog.records
        )

    def test_evaluate_clean_logs_info(self, service, caplog):
        with caplog.at_level(logging.INFO, logger="checkin_guard.services.fraud_detection_service"):
            score, alerts = service.evaluate(make_context())

        assert alerts == []
        assert all(r.levelno == logging.INFO for r in caplog.records)

    def test_prune_behavior(self, service):
        service.update_behavior_pattern(1, make_context(timestamp=BASE_MS - 400 * 24 * HOUR_MS))
        assert service.prune_behavior(now=BASE_MS) == 1
        assert service.get_behavior_pattern(1) is None
