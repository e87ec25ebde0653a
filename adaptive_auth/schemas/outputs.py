"""
Adaptive Auth Output Schemas

This module defines Pydantic V2 models that strictly enforce
the RiskAssessment contract returned to callers.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class RiskLevel(str, Enum):
    """Discrete risk bucket derived from the composite score."""
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskDecision(str, Enum):
    """Policy decision enforced by the caller."""
    ALLOW = "ALLOW"
    CHALLENGE = "CHALLENGE"
    BLOCK = "BLOCK"


class MfaStrength(str, Enum):
    """Which class of second factor the caller should present."""
    WEAK = "weak"  # email / SMS
    STRONG = "strong"  # hardware key / biometric


class MonitoringMode(str, Enum):
    STANDARD = "standard"
    ENHANCED = "enhanced"
    STRICT = "strict"


class StepUpState(str, Enum):
    """Step-up session lifecycle."""
    NONE = "NONE"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"


# =============================================================================
# Factor Breakdown
# =============================================================================

class RiskSignal(BaseModel):
    """One sub-signal and the points it contributed."""
    model_config = ConfigDict(frozen=True)

    name: str
    points: int


class FactorScore(BaseModel):
    """Bounded sub-score of one factor with its contributing signals."""
    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100)
    signals: List[RiskSignal] = Field(default_factory=list)

    def signal_names(self) -> List[str]:
        return [s.name for s in self.signals]


class FactorBreakdown(BaseModel):
    """Exactly five named factor scores."""
    model_config = ConfigDict(frozen=True)

    device: FactorScore
    location: FactorScore
    time: FactorScore
    behavioral: FactorScore
    historical: FactorScore


class TopFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: str
    score: int = Field(..., ge=0, le=100)


# =============================================================================
# Recommendation
# =============================================================================

class Recommendation(BaseModel):
    """What the caller should do with the attempt."""
    model_config = ConfigDict(frozen=True)

    action: RiskDecision
    message: str
    mfa_strength: Optional[MfaStrength] = None
    monitoring: Optional[MonitoringMode] = None
    additional_verification: bool = False
    manual_review: bool = False
    notify_security_team: bool = False
    step_up_satisfied: bool = Field(
        False,
        description="True when a CHALLENGE was waived by an elevated session"
    )

    @property
    def require_mfa(self) -> bool:
        return self.mfa_strength is not None


# =============================================================================
# Risk Assessment (Root Model)
# =============================================================================

class RiskAssessment(BaseModel):
    """Result of one assessment. Serialises as a flat record."""
    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100, description="Composite risk score")
    level: RiskLevel
    breakdown: FactorBreakdown
    factors: List[TopFactor] = Field(..., max_length=3)
    recommendation: Recommendation
    timestamp: datetime


# =============================================================================
# HTTP Responses
# =============================================================================

class StepUpStatusResponse(BaseModel):
    session_id: str
    state: StepUpState
    elevated: bool
    expires_at: Optional[datetime] = None
    resume_destination: Optional[str] = None


class RiskSummaryResponse(BaseModel):
    """Profile snapshot and most recent attempts for one identity."""
    identity: str
    profile: Optional[Dict[str, Any]] = None
    recent_attempts: List[Dict[str, Any]] = Field(default_factory=list)
