# tests/conftest.py

import os

# Settings are read at import time; point them at throwaway backends first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_KEY"] = "test-api-key"
os.environ["BEHAVIOR_STORE_BACKEND"] = "memory"

import pytest

from checkin_guard.schemas.fraud import DeviceFingerprint, LocationData, SecurityContext
from checkin_guard.services.behavior_service import InMemoryBehaviorStore
from checkin_guard.services.fraud_detection_service import FraudDetectionService

# 2024-01-15 10:00:00 UTC
BASE_MS = 1705312800000
MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

BENIGN_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class FixedClock:
    """Server clock that only moves when told to."""

    def __init__(self, now: int = BASE_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_location(lat=40.7128, lon=-74.0060, accuracy=10.0, timestamp=BASE_MS):
    return LocationData(latitude=lat, longitude=lon, accuracy=accuracy, timestamp=timestamp)


def make_device(device_id="device-1", user_agent=BENIGN_UA, timestamp=BASE_MS):
    return DeviceFingerprint(id=device_id, user_agent=user_agent, timestamp=timestamp)


def make_context(student_id=1, timestamp=BASE_MS, location=None, device=None, qr_code_id=7):
    return SecurityContext(
        student_id=student_id,
        qr_code_id=qr_code_id,
        session_id="session-456",
        timestamp=timestamp,
        location=location,
        device=device
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(clock):
    return InMemoryBehaviorStore(clock=clock)


@pytest.fixture
def service(clock, store):
    return FraudDetectionService(store=store, clock=clock)
