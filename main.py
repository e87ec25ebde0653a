"""
Adaptive Auth Risk Engine API

FastAPI application exposing:
- POST /assess → RiskAssessment JSON
- POST /evaluate → session-aware RiskAssessment JSON (step-up aware)
- POST /outcome → 204 (no body)
- POST /incidents → 204 (no body)
- POST /stepup/request, POST /stepup/complete → step-up status
- GET/DELETE /stepup/{session_id}
- GET /profiles/{identity}/risk → profile summary

Backend is selected with RISK_STORE_BACKEND (memory | redis).
"""

from contextlib import asynccontextmanager
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from adaptive_auth.config import EngineConfig
from adaptive_auth.engine import RiskEngine
from adaptive_auth.exceptions import RetryableUpdateError, StepUpStateError
from adaptive_auth.models.stepup import StepUpManager
from adaptive_auth.processors.context import ContextBuilder
from adaptive_auth.schemas.inputs import (
    AssessPayload,
    AuthenticationContext,
    IncidentPayload,
    OutcomePayload,
    StepUpCompletePayload,
    StepUpRequestPayload,
)
from adaptive_auth.schemas.outputs import (
    RiskAssessment,
    RiskSummaryResponse,
    StepUpStatusResponse,
)
from persistence.audit_logger import AuditLogger
from persistence.profile_store import InMemoryProfileStore, RedisProfileStore
from persistence.stepup_store import (
    InMemoryStepUpStore,
    RedisStepUpStore,
    StepUpSession,
)


load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "1"


# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Application state container."""
    engine: Optional[RiskEngine] = None
    builder: Optional[ContextBuilder] = None


state = AppState()


def build_engine() -> RiskEngine:
    """Wire stores and engine according to the environment."""
    config = EngineConfig.from_env()
    backend = os.getenv("RISK_STORE_BACKEND", "memory").lower()

    if backend == "redis":
        profile_store = RedisProfileStore()
        stepup_store = RedisStepUpStore()
    else:
        profile_store = InMemoryProfileStore()
        stepup_store = InMemoryStepUpStore()
    logger.info(f"Using {backend} risk store backend")

    return RiskEngine(
        profile_store=profile_store,
        config=config,
        stepup=StepUpManager(stepup_store, expiry_seconds=config.stepup_expiry_seconds),
        audit_logger=AuditLogger(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Adaptive Auth Risk Engine API...")
    state.engine = build_engine()
    state.builder = ContextBuilder()
    logger.info("Adaptive Auth Risk Engine ready")

    yield

    # Shutdown
    logger.info("Shutting down Adaptive Auth Risk Engine API...")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Adaptive Auth Risk Engine",
    description="Adaptive authentication risk scoring and step-up decisions",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _context(payload: AssessPayload) -> AuthenticationContext:
    return state.builder.build(
        identity=payload.identity,
        ip_address=payload.ip_address,
        user_agent=payload.user_agent,
        action=payload.action,
        timestamp=payload.timestamp,
        accept_language=payload.accept_language,
        accept_encoding=payload.accept_encoding,
        fingerprint=payload.device_fingerprint,
    )


def _stepup_status(session: StepUpSession, elevated: bool) -> StepUpStatusResponse:
    expires_at = None
    if session.expires_at is not None:
        expires_at = datetime.fromtimestamp(session.expires_at, tz=timezone.utc)
    return StepUpStatusResponse(
        session_id=session.session_id,
        state=session.state,
        elevated=elevated,
        expires_at=expires_at,
        resume_destination=session.resume_destination,
    )


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# =============================================================================
# Assessment Endpoints (JSON Response)
# =============================================================================

@app.post("/assess", response_model=RiskAssessment)
async def assess(payload: AssessPayload):
    """
    Assess an authentication attempt.

    - Never mutates the identity's profile
    - Returns score, level, breakdown and recommendation
    """
    return state.engine.assess(_context(payload))


@app.post("/evaluate", response_model=RiskAssessment)
async def evaluate(payload: AssessPayload):
    """
    Assess an in-session action.

    - CHALLENGE is waived while the session holds a recent step-up
    - CHALLENGE otherwise opens a pending step-up for the session
    """
    if not payload.session_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="session_id is required for /evaluate"
        )
    return state.engine.evaluate_action(
        _context(payload),
        payload.session_id,
        payload.resume_destination,
    )


# =============================================================================
# Outcome Endpoints (HTTP 204)
# =============================================================================

@app.post("/outcome", status_code=status.HTTP_204_NO_CONTENT)
def record_outcome(payload: OutcomePayload):
    """
    Record the credential-verification outcome of an attempt.

    Returns 503 with Retry-After when the identity's profile could not be
    updated; the caller must retry.

    Declared sync: the profile lock blocks, so it runs in the threadpool.
    """
    try:
        state.engine.record_outcome(payload.identity, _context(payload), payload.success)
    except RetryableUpdateError as e:
        logger.error(f"Outcome not recorded for {e.identity}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/incidents", status_code=status.HTTP_204_NO_CONTENT)
def record_incident(payload: IncidentPayload):
    """Count a security incident against an identity. Sync, like /outcome."""
    try:
        state.engine.record_security_incident(payload.identity)
    except RetryableUpdateError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Step-Up Endpoints
# =============================================================================

@app.post("/stepup/request", response_model=StepUpStatusResponse)
async def request_step_up(payload: StepUpRequestPayload):
    """Open a step-up challenge for a session."""
    session = state.engine.stepup.request_step_up(
        payload.session_id, payload.resume_destination
    )
    return _stepup_status(session, elevated=False)


@app.post("/stepup/complete", response_model=StepUpStatusResponse)
async def complete_step_up(payload: StepUpCompletePayload):
    """Mark a pending challenge as verified (after the out-of-band check)."""
    try:
        session = state.engine.stepup.complete_step_up(payload.session_id)
    except StepUpStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _stepup_status(session, elevated=True)


@app.get("/stepup/{session_id}", response_model=StepUpStatusResponse)
async def get_step_up(session_id: str):
    """Current step-up state of a session."""
    stepup = state.engine.stepup
    session = stepup.get_session(session_id)
    return _stepup_status(session, elevated=stepup.is_elevated(session_id))


@app.delete("/stepup/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_step_up(session_id: str):
    """Discard a session's step-up state (logout)."""
    state.engine.stepup.end_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Reporting
# =============================================================================

@app.get("/profiles/{identity}/risk", response_model=RiskSummaryResponse)
async def risk_summary(identity: str):
    """Profile snapshot and most recent attempts of an identity."""
    return state.engine.get_risk_summary(identity)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
