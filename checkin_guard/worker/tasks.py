"""
Celery Tasks for background maintenance
"""
import logging
from typing import Optional
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def prune_behavior_history(self, now_ms: Optional[int] = None):
    """
    Apply the behavior retention policy.

    Drops attempts older than BEHAVIOR_RETENTION_DAYS, caps each student's
    history at BEHAVIOR_MAX_ATTEMPTS and removes emptied baselines.
    Age-based retention only reaches a shared store (redis); a memory store
    in the worker process holds no API traffic and caps its history length
    on every write instead.
    """
    from checkin_guard.services.fraud_detection_service import fraud_detection_service

    try:
        removed = fraud_detection_service.prune_behavior(now=now_ms)
        logger.info(f"Behavior prune completed: {removed} attempts removed")
        return {"removed": removed}

    except Exception as e:
        logger.error(f"Behavior prune failed: {e}")
        raise self.retry(exc=e)
