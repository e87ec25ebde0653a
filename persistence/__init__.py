"""
Adaptive Auth Persistence Layer

Public exports for Redis connection, stores and the audit logger.
"""

from .connection import get_redis_client
from .profile_store import (
    AttemptLog,
    AttemptRecord,
    InMemoryProfileStore,
    KnownLocation,
    ProfileStore,
    RedisProfileStore,
    RiskProfile,
)
from .stepup_store import (
    InMemoryStepUpStore,
    RedisStepUpStore,
    StepUpSession,
    StepUpStore,
)
from .audit_logger import AuditLogger

__all__ = [
    "get_redis_client",
    "RiskProfile",
    "KnownLocation",
    "AttemptRecord",
    "AttemptLog",
    "ProfileStore",
    "InMemoryProfileStore",
    "RedisProfileStore",
    "StepUpSession",
    "StepUpStore",
    "InMemoryStepUpStore",
    "RedisStepUpStore",
    "AuditLogger",
]
