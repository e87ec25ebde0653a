"""
Adaptive Auth Step-Up Session Store

Keeps the per-session step-up state. Expiry of elevated trust is
decided by the StepUpManager when it reads a session; the Redis TTL
below only garbage-collects abandoned sessions.

Key Schemas (Redis backend):
    STEPUP:{session_id}   → StepUpSession JSON (sliding TTL)
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from adaptive_auth.schemas.outputs import StepUpState


logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================

@dataclass
class StepUpSession:
    """Step-up state of one authenticated session (epoch seconds)."""
    session_id: str
    state: StepUpState = StepUpState.NONE
    requested_at: Optional[float] = None
    verified_at: Optional[float] = None
    expires_at: Optional[float] = None
    resume_destination: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StepUpSession:
        data = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        data["state"] = StepUpState(data.get("state", StepUpState.NONE.value))
        return cls(**data)


# =============================================================================
# Store Interface
# =============================================================================

class StepUpStore(ABC):
    """Get/put/delete of StepUpSession by session id."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[StepUpSession]:
        """Session or None when never challenged / ended."""

    @abstractmethod
    def put(self, session: StepUpSession) -> None:
        """Create or replace a session."""

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Discard a session."""


class InMemoryStepUpStore(StepUpStore):
    """Thread-safe process-local store."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[StepUpSession]:
        with self._lock:
            data = self._sessions.get(session_id)
            return StepUpSession.from_dict(dict(data)) if data is not None else None

    def put(self, session: StepUpSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session.to_dict()

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)


class RedisStepUpStore(StepUpStore):
    """
    Redis-backed store.

    Reads fail closed: an unreadable session is treated as absent, so a
    Redis outage can only cause an extra challenge, never a skipped one.
    """

    SESSION_TTL: int = 1800  # 30 minutes, matches the auth session cookie

    def __init__(self, client=None) -> None:
        if client is None:
            from .connection import get_redis_client
            client = get_redis_client()
        self.client = client

    def _key(self, session_id: str) -> str:
        return f"STEPUP:{session_id}"

    def get(self, session_id: str) -> Optional[StepUpSession]:
        try:
            raw = self.client.get(self._key(session_id))
            if raw is None:
                return None
            return StepUpSession.from_dict(json.loads(raw))
        except (RedisError, json.JSONDecodeError, ValueError, TypeError) as e:
            logger.error(f"Failed to get step-up session {session_id}: {e}")
            return None

    def put(self, session: StepUpSession) -> None:
        try:
            self.client.setex(
                self._key(session.session_id),
                self.SESSION_TTL,
                json.dumps(session.to_dict())
            )
        except RedisError as e:
            logger.error(f"Failed to save step-up session {session.session_id}: {e}")
            raise

    def delete(self, session_id: str) -> None:
        try:
            self.client.delete(self._key(session_id))
        except RedisError as e:
            logger.warning(f"Failed to delete step-up session {session_id}: {e}")
