"""
Adaptive Auth Risk Engine

Explicit, injectable engine: construct one per configuration.

Pipeline:
    Context → Scorers (×5) → Aggregator → Policy → [Step-Up] → Caller
    Caller enforces → record_outcome → Profile & History Updater

Scoring never writes. Only record_outcome / record_security_incident
mutate per-identity state, through the ProfileUpdater.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from adaptive_auth.config import EngineConfig
from adaptive_auth.models.policy import RiskPolicyEngine, waive_challenge
from adaptive_auth.models.scorers import SCORERS
from adaptive_auth.models.stepup import StepUpManager
from adaptive_auth.models.updater import ProfileUpdater
from adaptive_auth.schemas.inputs import AuthenticationContext
from adaptive_auth.schemas.outputs import (
    FactorBreakdown,
    RiskAssessment,
    RiskDecision,
    RiskSummaryResponse,
)
from persistence.audit_logger import AuditLogger
from persistence.profile_store import ProfileStore, RiskProfile
from persistence.stepup_store import InMemoryStepUpStore


logger = logging.getLogger(__name__)

_ENGINE_VERSION = "1.0.0"

RECENT_ATTEMPTS_SHOWN = 10


class RiskEngine:
    """
    Adaptive authentication risk-decision engine.

    Several engines with different EngineConfigs (e.g. EngineConfig.strict()
    for administrative accounts) can share the same stores.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        config: Optional[EngineConfig] = None,
        stepup: Optional[StepUpManager] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        """Initialize engine."""
        self.config = config or EngineConfig()
        self.profile_store = profile_store
        self.stepup = stepup or StepUpManager(
            InMemoryStepUpStore(),
            expiry_seconds=self.config.stepup_expiry_seconds,
        )
        self.audit_logger = audit_logger

        self.policy_engine = RiskPolicyEngine(self.config)
        self.updater = ProfileUpdater(profile_store, self.config)

        logger.info(f"RiskEngine v{_ENGINE_VERSION} initialized")

    # -------------------------------------------------------------------------
    # Assessment
    # -------------------------------------------------------------------------

    def score_factors(self, context: AuthenticationContext) -> FactorBreakdown:
        """Run the five scorers against one read-only snapshot."""
        profile, attempt_log = self.profile_store.snapshot(context.identity)
        scores = {
            name: scorer(context, profile, attempt_log, self.config)
            for name, scorer in SCORERS.items()
        }
        return FactorBreakdown(**scores)

    def assess(self, context: AuthenticationContext) -> RiskAssessment:
        """
        Compute the risk assessment of one attempt.

        Deterministic: the same context and profile snapshot always give
        the same score and recommendation.
        """
        assessment = self._decide(context)
        if self.audit_logger is not None:
            self.audit_logger.log(context, assessment)
        return assessment

    def _decide(self, context: AuthenticationContext) -> RiskAssessment:
        breakdown = self.score_factors(context)
        assessment = self.policy_engine.evaluate(breakdown, context.timestamp)

        logger.debug(
            f"Assessed {context.identity} {context.action.value}: "
            f"score={assessment.score} level={assessment.level.value} "
            f"top={[f.factor for f in assessment.factors]}"
        )
        if assessment.recommendation.action != RiskDecision.ALLOW:
            logger.info(
                f"{assessment.recommendation.action.value} for {context.identity} "
                f"({context.action.value}, score {assessment.score})"
            )
        return assessment

    def evaluate_action(
        self,
        context: AuthenticationContext,
        session_id: str,
        resume_destination: str = "/dashboard",
    ) -> RiskAssessment:
        """
        Assess an attempt within an authenticated session.

        - CHALLENGE while the session is elevated → ALLOW (step_up_satisfied)
        - CHALLENGE otherwise → session enters PENDING
        - BLOCK is never waived
        """
        assessment = self._decide(context)
        recommendation = assessment.recommendation

        if recommendation.action == RiskDecision.CHALLENGE:
            if self.stepup.is_elevated(session_id, now=context.timestamp):
                logger.info(f"Challenge for session {session_id} waived by recent step-up")
                assessment = assessment.model_copy(
                    update={"recommendation": waive_challenge(recommendation)}
                )
            else:
                self.stepup.request_step_up(
                    session_id, resume_destination, now=context.timestamp
                )

        if self.audit_logger is not None:
            self.audit_logger.log(context, assessment, session_id=session_id)
        return assessment

    # -------------------------------------------------------------------------
    # Outcome Recording
    # -------------------------------------------------------------------------

    def record_outcome(
        self,
        identity: str,
        context: AuthenticationContext,
        success: bool,
    ) -> RiskProfile:
        """
        Fold a credential-verification outcome into the identity's history.

        Raises:
            RetryableUpdateError: the outcome was not recorded; retry it.
        """
        return self.updater.record_outcome(identity, context, success)

    def record_security_incident(self, identity: str) -> RiskProfile:
        """Count a security incident against identity."""
        return self.updater.record_security_incident(identity)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def get_risk_summary(self, identity: str) -> RiskSummaryResponse:
        """Profile and most recent attempts, for risk-analysis views."""
        profile, attempt_log = self.profile_store.snapshot(identity)
        profile_data: Optional[Dict[str, Any]] = profile.to_dict() if profile else None
        return RiskSummaryResponse(
            identity=identity,
            profile=profile_data,
            recent_attempts=[
                a.to_dict() for a in attempt_log.recent(RECENT_ATTEMPTS_SHOWN)
            ],
        )
