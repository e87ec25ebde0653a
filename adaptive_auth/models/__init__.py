"""
Adaptive Auth Models

Risk factor scorers, policy engine, step-up state machine and profile updater.
"""

from adaptive_auth.models.policy import RiskPolicyEngine
from adaptive_auth.models.scorers import (
    SCORERS,
    score_behavioral,
    score_device,
    score_historical,
    score_location,
    score_time,
)
from adaptive_auth.models.stepup import StepUpManager
from adaptive_auth.models.updater import ProfileUpdater

__all__ = [
    "SCORERS",
    "score_device",
    "score_location",
    "score_time",
    "score_behavioral",
    "score_historical",
    "RiskPolicyEngine",
    "StepUpManager",
    "ProfileUpdater",
]
