"""
Adaptive Auth Policy Engine

Pure business logic for risk assessment decisions.
This module is STATELESS and DETERMINISTIC.

No ML. No external calls. Just rules.
"""

import math
from datetime import datetime
from fractions import Fraction
from typing import Dict, List, Tuple

from adaptive_auth.config import FACTOR_ORDER, EngineConfig
from adaptive_auth.schemas.outputs import (
    FactorBreakdown,
    MfaStrength,
    MonitoringMode,
    Recommendation,
    RiskAssessment,
    RiskDecision,
    RiskLevel,
    TopFactor,
)


# =============================================================================
# Aggregation
# =============================================================================

def aggregate(breakdown: FactorBreakdown, weights: Dict[str, float]) -> int:
    """
    Weighted sum of the five sub-scores, rounded half-up.

    Weights are converted from their decimal text so 23.5 is exactly
    23.5 and rounds to 24.
    """
    total = sum(
        getattr(breakdown, factor).score * Fraction(str(weights[factor]))
        for factor in FACTOR_ORDER
    )
    score = math.floor(total + Fraction(1, 2))
    return min(max(score, 0), 100)


def top_factors(breakdown: FactorBreakdown, count: int = 3) -> List[TopFactor]:
    """Highest sub-scores, ties broken by the fixed factor order."""
    ranked = sorted(
        enumerate(FACTOR_ORDER),
        key=lambda item: (-getattr(breakdown, item[1]).score, item[0]),
    )
    return [
        TopFactor(factor=factor, score=getattr(breakdown, factor).score)
        for _, factor in ranked[:count]
    ]


# =============================================================================
# Level & Recommendation
# =============================================================================

def risk_level(score: int, thresholds: Tuple[int, int, int, int]) -> RiskLevel:
    """
    Map composite score to a level.

    Default thresholds: [0,20) VERY_LOW, [20,40) LOW, [40,60) MEDIUM,
    [60,80) HIGH, [80,100] CRITICAL.
    """
    low, medium, high, critical = thresholds
    if score < low:
        return RiskLevel.VERY_LOW
    if score < medium:
        return RiskLevel.LOW
    if score < high:
        return RiskLevel.MEDIUM
    if score < critical:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def recommend(level: RiskLevel) -> Recommendation:
    """Action, MFA strength and monitoring mode for a level."""
    if level == RiskLevel.VERY_LOW:
        return Recommendation(
            action=RiskDecision.ALLOW,
            message="Low risk detected. Access granted.",
            monitoring=MonitoringMode.STANDARD,
        )
    if level == RiskLevel.LOW:
        return Recommendation(
            action=RiskDecision.ALLOW,
            message="Low-medium risk detected. Access granted with enhanced monitoring.",
            monitoring=MonitoringMode.ENHANCED,
        )
    if level == RiskLevel.MEDIUM:
        return Recommendation(
            action=RiskDecision.CHALLENGE,
            message="Medium risk detected. Please verify your identity.",
            mfa_strength=MfaStrength.WEAK,
            monitoring=MonitoringMode.ENHANCED,
        )
    if level == RiskLevel.HIGH:
        return Recommendation(
            action=RiskDecision.CHALLENGE,
            message="High risk detected. Additional verification required.",
            mfa_strength=MfaStrength.STRONG,
            monitoring=MonitoringMode.STRICT,
            additional_verification=True,
        )
    return Recommendation(
        action=RiskDecision.BLOCK,
        message="Critical risk detected. Access denied for security reasons.",
        manual_review=True,
        notify_security_team=True,
    )


def waive_challenge(recommendation: Recommendation) -> Recommendation:
    """
    ALLOW in place of a CHALLENGE already satisfied by a step-up.

    Monitoring mode is kept; no further MFA is requested.
    """
    if recommendation.action != RiskDecision.CHALLENGE:
        return recommendation
    return recommendation.model_copy(update={
        "action": RiskDecision.ALLOW,
        "message": "Recent step-up verification accepted. Access granted.",
        "mfa_strength": None,
        "step_up_satisfied": True,
    })


# =============================================================================
# Engine
# =============================================================================

class RiskPolicyEngine:
    """
    Stateless, deterministic policy engine.

    Decision Logic (default thresholds):
        BLOCK: score >= 80
        CHALLENGE (strong MFA): score >= 60
        CHALLENGE (weak MFA): score >= 40
        ALLOW: otherwise
    """

    def __init__(self, config: EngineConfig) -> None:
        self.config = config

    def evaluate(self, breakdown: FactorBreakdown, timestamp: datetime) -> RiskAssessment:
        """
        Aggregate a factor breakdown and produce the assessment.

        Args:
            breakdown: The five factor scores.
            timestamp: Time of the assessed attempt.

        Returns:
            RiskAssessment with score, level, top factors and recommendation.
        """
        score = aggregate(breakdown, self.config.weights)
        level = risk_level(score, self.config.level_thresholds)

        return RiskAssessment(
            score=score,
            level=level,
            breakdown=breakdown,
            factors=top_factors(breakdown),
            recommendation=recommend(level),
            timestamp=timestamp,
        )
