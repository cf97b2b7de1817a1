"""
Behavior Store - per-student check-in baselines

Holds one BehaviorPattern per student and answers "what is normal for this
student". The scorer only ever reads from a store; callers record an attempt
with update() once its outcome is known, so the attempt being judged never
contributes to its own score.

Backends:
- InMemoryBehaviorStore: process-local dict, default
- RedisBehaviorStore: one JSON document per student, shared across workers
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, date
from typing import Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

import redis

from checkin_guard.schemas.fraud import AttemptRecord, BehaviorPattern, SecurityContext

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

Clock = Callable[[], int]


def now_ms() -> int:
    """Server time in milliseconds since the epoch"""
    return int(time.time() * 1000)


def local_datetime(timestamp_ms: int, tz: ZoneInfo) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)


def hour_of_day(timestamp_ms: int, tz: ZoneInfo) -> int:
    return local_datetime(timestamp_ms, tz).hour


def calendar_day(timestamp_ms: int, tz: ZoneInfo) -> date:
    return local_datetime(timestamp_ms, tz).date()


class BehaviorStore(ABC):
    """
    Store interface for behavior baselines.

    Implementations share the attempt bookkeeping and retention rules
    defined here and only differ in where patterns live.
    """

    def __init__(
        self,
        timezone: str = "UTC",
        retention_days: int = 90,
        max_attempts: int = 500,
        clock: Optional[Clock] = None
    ):
        self.tz = ZoneInfo(timezone)
        self.retention_days = retention_days
        self.max_attempts = max_attempts
        self.clock = clock or now_ms

    @abstractmethod
    def get_pattern(self, student_id: int) -> Optional[BehaviorPattern]:
        """Return a copy of the student's pattern, or None before any attempt."""

    @abstractmethod
    def update(
        self,
        student_id: int,
        context: SecurityContext,
        success: bool = True
    ) -> BehaviorPattern:
        """Record an attempt whose outcome is known."""

    @abstractmethod
    def prune(self, student_id: Optional[int] = None, now: Optional[int] = None) -> int:
        """Apply the retention policy; returns the number of attempts dropped."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every stored pattern."""

    def health_check(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Shared bookkeeping
    # ------------------------------------------------------------------
    def _record_attempt(
        self,
        pattern: Optional[BehaviorPattern],
        student_id: int,
        context: SecurityContext,
        success: bool
    ) -> BehaviorPattern:
        if pattern is None:
            pattern = BehaviorPattern(student_id=student_id)

        day = calendar_day(context.timestamp, self.tz)
        seen_days = {calendar_day(a.timestamp, self.tz) for a in pattern.attempts}
        if day not in seen_days:
            pattern.days_active += 1

        hour = hour_of_day(context.timestamp, self.tz)
        if hour not in pattern.attempt_hours:
            pattern.attempt_hours = sorted(pattern.attempt_hours + [hour])

        pattern.attempts.append(AttemptRecord(
            timestamp=context.timestamp,
            location=context.location,
            device=context.device,
            success=success
        ))
        now = self.clock()
        # History length is bounded on every write; age-based retention is prune()
        if len(pattern.attempts) > self.max_attempts:
            self._keep(pattern, pattern.attempts[-self.max_attempts:], now)
        pattern.last_updated = now
        return pattern

    def _prune_pattern(self, pattern: BehaviorPattern, now: int) -> int:
        """Trim a pattern in place and rebuild its derived fields."""
        cutoff = now - self.retention_days * DAY_MS
        kept = [a for a in pattern.attempts if a.timestamp >= cutoff]
        if len(kept) > self.max_attempts:
            kept = kept[-self.max_attempts:]

        removed = len(pattern.attempts) - len(kept)
        if removed:
            self._keep(pattern, kept, now)
        return removed

    def _keep(self, pattern: BehaviorPattern, kept: List[AttemptRecord], now: int) -> None:
        pattern.attempts = kept
        pattern.days_active = len({calendar_day(a.timestamp, self.tz) for a in kept})
        pattern.attempt_hours = sorted({hour_of_day(a.timestamp, self.tz) for a in kept})
        pattern.last_updated = now


class InMemoryBehaviorStore(BehaviorStore):
    """Process-local store; not shared between workers."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._patterns: Dict[int, BehaviorPattern] = {}
        self._lock = threading.Lock()

    def get_pattern(self, student_id: int) -> Optional[BehaviorPattern]:
        with self._lock:
            pattern = self._patterns.get(student_id)
            return pattern.model_copy(deep=True) if pattern else None

    def update(
        self,
        student_id: int,
        context: SecurityContext,
        success: bool = True
    ) -> BehaviorPattern:
        with self._lock:
            pattern = self._record_attempt(
                self._patterns.get(student_id), student_id, context, success
            )
            self._patterns[student_id] = pattern
            return pattern.model_copy(deep=True)

    def prune(self, student_id: Optional[int] = None, now: Optional[int] = None) -> int:
        now = self.clock() if now is None else now
        removed = 0
        with self._lock:
            ids = [student_id] if student_id is not None else list(self._patterns)
            for sid in ids:
                pattern = self._patterns.get(sid)
                if pattern is None:
                    continue
                removed += self._prune_pattern(pattern, now)
                if not pattern.attempts:
                    del self._patterns[sid]
        return removed

    def clear(self) -> None:
        with self._lock:
            self._patterns.clear()


class RedisBehaviorStore(BehaviorStore):
    """
    Redis-backed store, one JSON document per student.

    Keys expire after the retention window so idle students age out even
    when the prune task is not running. Writes for a single student must be
    serialized by the caller.
    """

    KEY_PREFIX = "behavior:"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        client: Optional[redis.Redis] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self._redis_url = redis_url
        self._client = client

    def _get_redis(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _key(self, student_id: int) -> str:
        return f"{self.KEY_PREFIX}{student_id}"

    def _load(self, student_id: int) -> Optional[BehaviorPattern]:
        raw = self._get_redis().get(self._key(student_id))
        if not raw:
            return None
        return BehaviorPattern.model_validate_json(raw)

    def _save(self, pattern: BehaviorPattern) -> None:
        ttl = self.retention_days * 24 * 60 * 60
        self._get_redis().set(self._key(pattern.student_id), pattern.model_dump_json(), ex=ttl)

    def _student_ids(self) -> Iterable[int]:
        for key in self._get_redis().scan_iter(match=f"{self.KEY_PREFIX}*"):
            yield int(key[len(self.KEY_PREFIX):])

    def get_pattern(self, student_id: int) -> Optional[BehaviorPattern]:
        return self._load(student_id)

    def update(
        self,
        student_id: int,
        context: SecurityContext,
        success: bool = True
    ) -> BehaviorPattern:
        pattern = self._record_attempt(self._load(student_id), student_id, context, success)
        self._save(pattern)
        return pattern

    def prune(self, student_id: Optional[int] = None, now: Optional[int] = None) -> int:
        now = self.clock() if now is None else now
        ids: List[int] = [student_id] if student_id is not None else list(self._student_ids())
        removed = 0
        for sid in ids:
            pattern = self._load(sid)
            if pattern is None:
                continue
            dropped = self._prune_pattern(pattern, now)
            if not pattern.attempts:
                self._get_redis().delete(self._key(sid))
            elif dropped:
                self._save(pattern)
            removed += dropped
        return removed

    def clear(self) -> None:
        r = self._get_redis()
        for key in list(r.scan_iter(match=f"{self.KEY_PREFIX}*")):
            r.delete(key)

    def health_check(self) -> bool:
        try:
            return bool(self._get_redis().ping())
        except redis.RedisError as e:
            logger.warning(f"Redis behavior store unavailable: {e}")
            return False


def create_behavior_store(
    backend: str,
    timezone: str = "UTC",
    retention_days: int = 90,
    max_attempts: int = 500,
    redis_url: Optional[str] = None,
    clock: Optional[Clock] = None
) -> BehaviorStore:
    """Build the store selected by BEHAVIOR_STORE_BACKEND"""
    options = dict(
        timezone=timezone,
        retention_days=retention_days,
        max_attempts=max_attempts,
        clock=clock
    )
    if backend == "memory":
        return InMemoryBehaviorStore(**options)
    if backend == "redis":
        return RedisBehaviorStore(redis_url=redis_url or "redis://localhost:6379/0", **options)
    raise ValueError(f"Unknown behavior store backend: {backend}")
