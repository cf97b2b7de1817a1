"""
API routers package
"""
from checkin_guard.api import (
    system,
    fraud
)

__all__ = [
    "system",
    "fraud"
]
