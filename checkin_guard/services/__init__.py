"""
Services package - Business logic layer
"""
from checkin_guard.services.geo_service import distance_meters
from checkin_guard.services.behavior_service import (
    BehaviorStore,
    InMemoryBehaviorStore,
    RedisBehaviorStore,
    create_behavior_store,
)
from checkin_guard.services.fraud_detection_service import (
    FraudDetectionService,
    fraud_detection_service,
)

__all__ = [
    "distance_meters",
    "BehaviorStore",
    "InMemoryBehaviorStore",
    "RedisBehaviorStore",
    "create_behavior_store",
    "FraudDetectionService",
    "fraud_detection_service",
]
