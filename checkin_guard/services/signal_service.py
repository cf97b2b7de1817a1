"""
Signal Analyzers - independent suspicion scorers for one check-in

Each analyzer maps its input plus the student's behavior baseline to a score
in [0, 1] and the short codes of the checks that fired. Analyzers never
touch the store; they are handed the pattern as it stood before the attempt.

Device and photo analysis are heuristic stand-ins behind the DeviceAnalyzer
and PhotoAnalyzer interfaces so a forensic implementation can replace them
without changing the scorer.
"""
import base64
import binascii
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Union
from zoneinfo import ZoneInfo

from checkin_guard.schemas.fraud import (
    AttemptRecord, BehaviorPattern, DeviceFingerprint, LocationData, SecurityContext
)
from checkin_guard.services.behavior_service import Clock, DAY_MS, hour_of_day, now_ms
from checkin_guard.services.geo_service import distance_meters

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000

PhotoPayload = Union[str, bytes]

THRESHOLDS = {
    # Location
    "max_travel_speed_mps": 100.0,   # ~360 km/h
    "min_accuracy_m": 1.0,
    "max_accuracy_m": 100.0,
    "identical_location_deg": 1e-6,
    "max_identical_locations": 2,

    # Device
    "max_recent_devices": 2,

    # Time
    "max_clock_skew_ms": 5 * 60 * 1000,
    "max_attempts_per_hour": 5,
    "day_start_hour": 6,
    "day_end_hour": 22,

    # Photo
    "min_photo_quality": 0.3,
}

RULE_WEIGHTS = {
    "impossible_travel": 0.5,
    "accuracy_too_precise": 0.3,
    "accuracy_too_coarse": 0.2,
    "repeated_location": 0.4,
    "too_many_devices": 0.4,
    "rapid_device_switching": 0.3,
    "automation_user_agent": 0.6,
    "virtual_machine": 0.4,
    "clock_skew": 0.4,
    "attempt_flooding": 0.3,
    "off_hours": 0.2,
    "frequency_anomaly": 0.3,
    "unusual_hour": 0.2,
    "pattern_deviation": 0.4,
    "poor_photo_quality": 0.4,
    "photo_edited": 0.3,
    "photo_screenshot": 0.5,
}

AUTOMATION_MARKERS = ("bot", "crawler", "spider")
VM_MARKERS = (
    "virtualbox", "vmware", "qemu", "xen", "hyper-v",
    "parallels", "docker", "container"
)
EDIT_MARKERS = ("edited", "modified", "photoshop", "gimp")
SCREENSHOT_MARKERS = ("screenshot", "screen")
# Leading bytes of a raw image that hold its metadata segments
METADATA_SCAN_BYTES = 64 * 1024
BARE_BASE64 = re.compile(r"[A-Za-z0-9+/=\s]{64,}")


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass
class AnalyzerResult:
    """Score in [0, 1] plus the codes of the checks that contributed to it."""
    score: float = 0.0
    reasons: List[str] = field(default_factory=list)

    def add(self, reason: str, weight: Optional[float] = None) -> None:
        self.reasons.append(reason)
        self.score += RULE_WEIGHTS[reason] if weight is None else weight

    def clamped(self) -> "AnalyzerResult":
        self.score = clamp(self.score)
        return self


def _attempts(pattern: Optional[BehaviorPattern]) -> List[AttemptRecord]:
    return pattern.attempts if pattern else []


def _recent(attempts: List[AttemptRecord], now: int, window_ms: int) -> List[AttemptRecord]:
    return [a for a in attempts if now - a.timestamp < window_ms]


# ============================================================
# LOCATION
# ============================================================

class LocationAnalyzer:
    """Impossible travel, implausible accuracy and replayed coordinates."""

    def analyze(
        self,
        context: SecurityContext,
        location: LocationData,
        pattern: Optional[BehaviorPattern]
    ) -> AnalyzerResult:
        result = AnalyzerResult()
        history = [a.location for a in _attempts(pattern) if a.location is not None]

        if history and self._is_impossible_travel(history[-1], location):
            result.add("impossible_travel")

        if location.accuracy < THRESHOLDS["min_accuracy_m"]:
            result.add("accuracy_too_precise")
        elif location.accuracy > THRESHOLDS["max_accuracy_m"]:
            result.add("accuracy_too_coarse")

        tolerance = THRESHOLDS["identical_location_deg"]
        identical = [
            loc for loc in history
            if abs(loc.latitude - location.latitude) < tolerance
            and abs(loc.longitude - location.longitude) < tolerance
        ]
        if len(identical) > THRESHOLDS["max_identical_locations"]:
            result.add("repeated_location")

        return result.clamped()

    @staticmethod
    def _is_impossible_travel(previous: LocationData, current: LocationData) -> bool:
        distance = distance_meters(
            previous.latitude, previous.longitude,
            current.latitude, current.longitude
        )
        if distance == 0:
            return False

        elapsed_sec = (current.timestamp - previous.timestamp) / 1000
        # Moving at all with no elapsed time cannot be explained by travel
        if elapsed_sec <= 0:
            return True
        return distance / elapsed_sec > THRESHOLDS["max_travel_speed_mps"]


# ============================================================
# DEVICE
# ============================================================

class DeviceAnalyzer(ABC):
    """Capability interface for device-based scoring."""

    @abstractmethod
    def analyze(
        self,
        context: SecurityContext,
        device: DeviceFingerprint,
        pattern: Optional[BehaviorPattern]
    ) -> AnalyzerResult:
        ...


class HeuristicDeviceAnalyzer(DeviceAnalyzer):
    """
    Device-count, switching and user-agent keyword heuristics.

    The virtualization check only looks for hypervisor names in the
    user agent; it is not real emulator detection.
    """

    def __init__(self, max_devices: int = 3):
        self.max_devices = max_devices

    def analyze(
        self,
        context: SecurityContext,
        device: DeviceFingerprint,
        pattern: Optional[BehaviorPattern]
    ) -> AnalyzerResult:
        result = AnalyzerResult()
        seen = [a for a in _attempts(pattern) if a.device is not None]

        if len({a.device.id for a in seen}) > self.max_devices:
            result.add("too_many_devices")

        recent = _recent(seen, context.timestamp, DAY_MS)
        if len({a.device.id for a in recent}) > THRESHOLDS["max_recent_devices"]:
            result.add("rapid_device_switching")

        user_agent = device.user_agent.lower()
        if any(marker in user_agent for marker in AUTOMATION_MARKERS):
            result.add("automation_user_agent")
        if any(marker in user_agent for marker in VM_MARKERS):
            result.add("virtual_machine")

        return result.clamped()


# ============================================================
# TIME
# ============================================================

class TimeAnalyzer:
    """Client clock skew, attempt flooding and off-hours attempts."""

    def __init__(self, timezone: str = "UTC", clock: Optional[Clock] = None):
        self.tz = ZoneInfo(timezone)
        self.clock = clock or now_ms

    def analyze(
        self,
        context: SecurityContext,
        pattern: Optional[BehaviorPattern]
    ) -> AnalyzerResult:
        result = AnalyzerResult()

        if abs(self.clock() - context.timestamp) > THRESHOLDS["max_clock_skew_ms"]:
            result.add("clock_skew")

        recent = _recent(_attempts(pattern), context.timestamp, HOUR_MS)
        if len(recent) > THRESHOLDS["max_attempts_per_hour"]:
            result.add("attempt_flooding")

        hour = hour_of_day(context.timestamp, self.tz)
        if hour < THRESHOLDS["day_start_hour"] or hour > THRESHOLDS["day_end_hour"]:
            result.add("off_hours")

        return result.clamped()


# ============================================================
# BEHAVIOR
# ============================================================

class BehaviorAnalyzer:
    """Deviation of this attempt from the student's own baseline."""

    def __init__(self, timezone: str = "UTC"):
        self.tz = ZoneInfo(timezone)

    def analyze(
        self,
        context: SecurityContext,
        pattern: Optional[BehaviorPattern]
    ) -> AnalyzerResult:
        result = AnalyzerResult()
        # Cold start: no history means no opinion
        if pattern is None or not pattern.attempts:
            return result

        recent_count = len(_recent(pattern.attempts, context.timestamp, DAY_MS))
        avg_per_day = len(pattern.attempts) / max(1, pattern.days_active)
        if recent_count > avg_per_day * 2:
            result.add("frequency_anomaly")

        hour = hour_of_day(context.timestamp, self.tz)
        if hour not in pattern.attempt_hours:
            result.add("unusual_hour")

        deviation = self.pattern_deviation(hour, recent_count, avg_per_day, pattern)
        if deviation > 0:
            result.add("pattern_deviation", deviation * RULE_WEIGHTS["pattern_deviation"])

        return result.clamped()

    @staticmethod
    def pattern_deviation(
        hour: int,
        recent_count: int,
        avg_per_day: float,
        pattern: BehaviorPattern
    ) -> float:
        """Blend of hour-of-day and daily-frequency deviation, in [0, 1]."""
        deviation = 0.0

        if pattern.attempt_hours:
            avg_hour = sum(pattern.attempt_hours) / len(pattern.attempt_hours)
            deviation += abs(hour - avg_hour) / 24 * 0.5

        if avg_per_day > 0:
            frequency_deviation = abs(recent_count - avg_per_day) / avg_per_day
            deviation += min(frequency_deviation, 1.0) * 0.5

        return min(deviation, 1.0)


# ============================================================
# PHOTO
# ============================================================

class PhotoAnalyzer(ABC):
    """Capability interface for photo-based scoring."""

    @abstractmethod
    def analyze(self, photo: PhotoPayload) -> AnalyzerResult:
        ...


class HeuristicPhotoAnalyzer(PhotoAnalyzer):
    """
    Format/size quality proxy and marker scan for edited or captured images.

    Stand-in for an image-forensics and face-match pipeline: it never
    decodes pixels.
    """

    FORMAT_QUALITY = {
        "jpeg": 0.8,
        "png": 0.9,
        "webp": 0.7,
    }

    def __init__(self, max_bytes: int = 5 * 1024 * 1024):
        self.max_bytes = max_bytes

    def analyze(self, photo: PhotoPayload) -> AnalyzerResult:
        if not isinstance(photo, (str, bytes)):
            raise TypeError(f"Unsupported photo payload type: {type(photo).__name__}")

        result = AnalyzerResult()

        if self.assess_quality(photo) < THRESHOLDS["min_photo_quality"]:
            result.add("poor_photo_quality")

        text = self._marker_text(photo)
        if any(marker in text for marker in EDIT_MARKERS):
            result.add("photo_edited")
        if any(marker in text for marker in SCREENSHOT_MARKERS):
            result.add("photo_screenshot")

        return result.clamped()

    @staticmethod
    def _marker_text(photo: PhotoPayload) -> str:
        """Text searched for edit and capture markers, never encoded pixel data."""
        if isinstance(photo, bytes):
            return photo[:METADATA_SCAN_BYTES].decode("latin-1").lower()
        if photo.startswith("data:"):
            return photo.partition(",")[0].lower()
        if BARE_BASE64.fullmatch(photo):
            return ""
        return photo.lower()

    def assess_quality(self, photo: PhotoPayload) -> float:
        """Quality proxy in [0, 1] from the declared or sniffed image format."""
        if not photo:
            return 0.0

        if isinstance(photo, str) and photo.startswith("data:"):
            header, _, body = photo.partition(",")
            try:
                data = base64.b64decode(body, validate=True) if ";base64" in header else body.encode()
            except (binascii.Error, ValueError):
                return 0.1
            image_format = self._format_from_mime(header)
        elif isinstance(photo, bytes):
            data = photo
            image_format = self._format_from_magic(photo)
        else:
            # Bare URLs or file references: nothing to inspect
            data = photo.encode()
            image_format = None

        if len(data) > self.max_bytes:
            return 0.2

        return self.FORMAT_QUALITY.get(image_format, 0.5)

    @staticmethod
    def _format_from_mime(header: str) -> Optional[str]:
        mime = header[len("data:"):].split(";")[0].strip().lower()
        if mime in ("image/jpeg", "image/jpg"):
            return "jpeg"
        if mime == "image/png":
            return "png"
        if mime == "image/webp":
            return "webp"
        return None

    @staticmethod
    def _format_from_magic(data: bytes) -> Optional[str]:
        if data.startswith(b"\xff\xd8\xff"):
            return "jpeg"
        if data.startswith(b"\x89PNG\r\n\x1a\n"):
            return "png"
        if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
            return "webp"
        return None
