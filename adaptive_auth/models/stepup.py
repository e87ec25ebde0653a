"""
Adaptive Auth Step-Up Session Manager

State machine per authenticated session:

    NONE ──request──▶ PENDING ──complete──▶ VERIFIED ──expiry / end──▶ NONE
                          ▲                     │
                          └──────request────────┘

Elevated trust expires lazily: is_elevated() compares the stored expiry
with the clock at read time. There is no timer to cancel.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from adaptive_auth.exceptions import StepUpStateError
from adaptive_auth.schemas.outputs import StepUpState
from persistence.stepup_store import StepUpSession, StepUpStore


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StepUpManager:
    """
    Tracks whether a session has satisfied a step-up challenge.

    Args:
        store: Step-up session persistence.
        expiry_seconds: Lifetime of elevated trust after verification.
        clock: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        store: StepUpStore,
        expiry_seconds: float = 300.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.expiry = timedelta(seconds=expiry_seconds)
        self.clock = clock

    def _now(self, now: Optional[datetime]) -> float:
        return (now or self.clock()).timestamp()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def request_step_up(
        self,
        session_id: str,
        resume_destination: str = "/dashboard",
        now: Optional[datetime] = None,
    ) -> StepUpSession:
        """Enter PENDING. Any earlier VERIFIED expiry is discarded."""
        session = StepUpSession(
            session_id=session_id,
            state=StepUpState.PENDING,
            requested_at=self._now(now),
            resume_destination=resume_destination,
        )
        self.store.put(session)
        logger.info(f"Step-up requested for session {session_id} (resume {resume_destination})")
        return session

    def complete_step_up(self, session_id: str, now: Optional[datetime] = None) -> StepUpSession:
        """
        Enter VERIFIED after a successful out-of-band verification.

        Returns:
            The verified session; resume_destination tells the caller where to go.

        Raises:
            StepUpStateError: if no challenge is pending for the session.
        """
        session = self.store.get(session_id)
        if session is None or session.state != StepUpState.PENDING:
            state = session.state.value if session else StepUpState.NONE.value
            raise StepUpStateError(
                f"No pending step-up for session {session_id} (state {state})"
            )

        verified_at = self._now(now)
        session.state = StepUpState.VERIFIED
        session.verified_at = verified_at
        session.expires_at = verified_at + self.expiry.total_seconds()
        self.store.put(session)
        logger.info(f"Step-up verified for session {session_id}")
        return session

    def end_session(self, session_id: str) -> None:
        """Discard the session (logout / session end)."""
        self.store.delete(session_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_session(self, session_id: str, now: Optional[datetime] = None) -> StepUpSession:
        """Current session, after applying lazy expiry. NONE when absent."""
        session = self.store.get(session_id)
        if session is None:
            return StepUpSession(session_id=session_id)

        if (
            session.state == StepUpState.VERIFIED
            and session.expires_at is not None
            and self._now(now) >= session.expires_at
        ):
            # Left for the store TTL; deleting here could erase a newer request
            logger.debug(f"Step-up for session {session_id} expired")
            return StepUpSession(session_id=session_id)

        return session

    def is_elevated(self, session_id: str, now: Optional[datetime] = None) -> bool:
        """True while VERIFIED and not yet expired."""
        return self.get_session(session_id, now).state == StepUpState.VERIFIED
