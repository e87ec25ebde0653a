"""
Adaptive Auth Schemas

Public exports for input and output Pydantic models.
"""

# Input schemas - Authentication context
from adaptive_auth.schemas.inputs import (
    ActionKind,
    AuthenticationContext,
    DeviceDescriptor,
    DeviceType,
    ResolvedLocation,
)

# Input schemas - HTTP payloads
from adaptive_auth.schemas.inputs import (
    AssessPayload,
    IncidentPayload,
    OutcomePayload,
    StepUpCompletePayload,
    StepUpRequestPayload,
)

# Output schemas
from adaptive_auth.schemas.outputs import (
    FactorBreakdown,
    FactorScore,
    MfaStrength,
    MonitoringMode,
    Recommendation,
    RiskAssessment,
    RiskDecision,
    RiskLevel,
    RiskSignal,
    RiskSummaryResponse,
    StepUpState,
    StepUpStatusResponse,
    TopFactor,
)

__all__ = [
    # Input - Context
    "ActionKind",
    "DeviceType",
    "ResolvedLocation",
    "DeviceDescriptor",
    "AuthenticationContext",
    # Input - Payloads
    "AssessPayload",
    "OutcomePayload",
    "IncidentPayload",
    "StepUpRequestPayload",
    "StepUpCompletePayload",
    # Output
    "RiskLevel",
    "RiskDecision",
    "MfaStrength",
    "MonitoringMode",
    "StepUpState",
    "RiskSignal",
    "FactorScore",
    "FactorBreakdown",
    "TopFactor",
    "Recommendation",
    "RiskAssessment",
    "StepUpStatusResponse",
    "RiskSummaryResponse",
]
