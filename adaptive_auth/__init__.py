"""
Adaptive Auth

Adaptive authentication risk-decision engine.

The engine itself lives in adaptive_auth.engine (it depends on the
persistence package, which in turn imports schemas from here).
"""

from adaptive_auth.config import EngineConfig
from adaptive_auth.exceptions import (
    ConfigurationError,
    ProfileLockTimeout,
    ProfilePersistenceError,
    RetryableUpdateError,
    RiskEngineError,
    StepUpStateError,
)

__all__ = [
    "EngineConfig",
    "RiskEngineError",
    "ConfigurationError",
    "StepUpStateError",
    "RetryableUpdateError",
    "ProfileLockTimeout",
    "ProfilePersistenceError",
]
