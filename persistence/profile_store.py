"""
Adaptive Auth Profile Store

Durable per-identity state read by the scorers and written only by the
profile updater. The store is an injectable abstraction so the backend
and its locking discipline can be swapped and tested in isolation.

Key Schemas (Redis backend):
    PROFILE:{identity}        → RiskProfile JSON
    ATTEMPTS:{identity}       → AttemptLog JSON
    PROFILE_LOCK:{identity}   → redis-py Lock token
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterator, List, Optional, Tuple

from redis.exceptions import LockError, RedisError, WatchError

from adaptive_auth.exceptions import ProfileLockTimeout, ProfilePersistenceError


logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================

@dataclass
class KnownLocation:
    """A location seen during a successful authentication."""
    latitude: float
    longitude: float
    country: Optional[str] = None
    city: Optional[str] = None
    first_seen: float = 0.0
    last_seen: float = 0.0

    def same_place(self, other: KnownLocation) -> bool:
        return (self.latitude, self.longitude) == (other.latitude, other.longitude)

    @property
    def coords(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> KnownLocation:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class RiskProfile:
    """Rolling device, location and timing history of one identity."""
    identity: str
    created_at: float
    known_devices: List[str] = field(default_factory=list)
    known_locations: List[KnownLocation] = field(default_factory=list)
    typical_hours: List[int] = field(default_factory=list)
    successful_login_count: int = 0
    security_incident_count: int = 0
    last_location: Optional[KnownLocation] = None
    last_location_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RiskProfile:
        data = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        data["known_locations"] = [
            KnownLocation.from_dict(loc) for loc in data.get("known_locations") or []
        ]
        if data.get("last_location"):
            data["last_location"] = KnownLocation.from_dict(data["last_location"])
        return cls(**data)


@dataclass
class AttemptRecord:
    """One authentication attempt, successful or not."""
    timestamp: float
    success: bool
    device_fingerprint: str
    ip_address: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AttemptRecord:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class AttemptLog:
    """Append-only bounded attempt history, oldest first."""
    entries: List[AttemptRecord] = field(default_factory=list)

    def within(self, now: float, window_seconds: float) -> List[AttemptRecord]:
        """Entries in the half-open window (now - window, now]."""
        start = now - window_seconds
        return [e for e in self.entries if start < e.timestamp <= now]

    def recent(self, limit: int = 10) -> List[AttemptRecord]:
        return self.entries[-limit:]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AttemptLog:
        return cls(entries=[AttemptRecord.from_dict(e) for e in data.get("entries") or []])


# =============================================================================
# Store Interface
# =============================================================================

class ProfileStore(ABC):
    """
    Get/put access to RiskProfile and AttemptLog plus a per-identity
    mutual-exclusion scope for read-modify-write updates.

    Reads always return independent copies: scorers work on a snapshot.
    """

    @abstractmethod
    def get_profile(self, identity: str) -> Optional[RiskProfile]:
        """Profile for identity, or None for a never-seen identity."""

    @abstractmethod
    def get_attempt_log(self, identity: str) -> AttemptLog:
        """Attempt log for identity (empty when none exists)."""

    @abstractmethod
    def save(self, identity: str, profile: Optional[RiskProfile], attempt_log: AttemptLog) -> None:
        """Persist both entities. Raises ProfilePersistenceError on failure."""

    @abstractmethod
    @contextmanager
    def lock(self, identity: str, timeout: float) -> Iterator[None]:
        """Hold the identity's update lock. Raises ProfileLockTimeout."""

    def snapshot(self, identity: str) -> Tuple[Optional[RiskProfile], AttemptLog]:
        """Profile and attempt log read together."""
        return self.get_profile(identity), self.get_attempt_log(identity)

    def load_for_update(self, identity: str) -> Tuple[Optional[RiskProfile], AttemptLog]:
        """
        Snapshot for the updater, taken while holding the lock.

        Backends whose reads fail open must raise ProfilePersistenceError
        here instead: an unreadable profile is not a never-seen identity.
        """
        return self.snapshot(identity)


# =============================================================================
# In-Memory Store
# =============================================================================

class InMemoryProfileStore(ProfileStore):
    """
    Thread-safe process-local store.

    Entities are held as plain dicts and rebuilt on every read so callers
    never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._profiles: Dict[str, Dict[str, Any]] = {}
        self._attempts: Dict[str, Dict[str, Any]] = {}
        self._data_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def get_profile(self, identity: str) -> Optional[RiskProfile]:
        with self._data_lock:
            data = self._profiles.get(identity)
            return RiskProfile.from_dict(json.loads(json.dumps(data))) if data else None

    def get_attempt_log(self, identity: str) -> AttemptLog:
        with self._data_lock:
            data = self._attempts.get(identity)
            return AttemptLog.from_dict(json.loads(json.dumps(data))) if data else AttemptLog()

    def save(self, identity: str, profile: Optional[RiskProfile], attempt_log: AttemptLog) -> None:
        with self._data_lock:
            if profile is not None:
                self._profiles[identity] = profile.to_dict()
            self._attempts[identity] = attempt_log.to_dict()

    def _identity_lock(self, identity: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(identity)
            if lock is None:
                lock = threading.Lock()
                self._locks[identity] = lock
            return lock

    @contextmanager
    def lock(self, identity: str, timeout: float) -> Iterator[None]:
        lock = self._identity_lock(identity)
        if not lock.acquire(timeout=timeout):
            raise ProfileLockTimeout(
                identity, f"Profile lock for {identity} not acquired within {timeout}s"
            )
        try:
            yield
        finally:
            lock.release()

    def reset(self) -> None:
        """Drop all state. Primarily useful for testing."""
        with self._data_lock:
            self._profiles.clear()
            self._attempts.clear()


# =============================================================================
# Redis Store
# =============================================================================

class RedisProfileStore(ProfileStore):
    """
    Redis-backed store.

    - Profile and attempt log written together via MULTI/EXEC
    - Per-identity redis-py Lock with bounded blocking wait
    - Reads fail open (no history) so scoring never crashes;
      load_for_update fails closed so the updater never overwrites
    - Writes re-check lock ownership under WATCH
    """

    LOCK_TTL: float = 10.0  # seconds a crashed holder can block others

    def __init__(self, client=None) -> None:
        if client is None:
            from .connection import get_redis_client
            client = get_redis_client()
        self.client = client
        self._local = threading.local()

    # -------------------------------------------------------------------------
    # Key Builders
    # -------------------------------------------------------------------------

    def _profile_key(self, identity: str) -> str:
        return f"PROFILE:{identity}"

    def _attempts_key(self, identity: str) -> str:
        return f"ATTEMPTS:{identity}"

    def _lock_key(self, identity: str) -> str:
        return f"PROFILE_LOCK:{identity}"

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_profile(self, identity: str) -> Optional[RiskProfile]:
        try:
            raw = self.client.get(self._profile_key(identity))
            if raw is None:
                return None
            return RiskProfile.from_dict(json.loads(raw))
        except (RedisError, json.JSONDecodeError, TypeError) as e:
            logger.error(f"Failed to read profile {identity}: {e}")
            return None

    def get_attempt_log(self, identity: str) -> AttemptLog:
        try:
            raw = self.client.get(self._attempts_key(identity))
            if raw is None:
                return AttemptLog()
            return AttemptLog.from_dict(json.loads(raw))
        except (RedisError, json.JSONDecodeError, TypeError) as e:
            logger.error(f"Failed to read attempt log {identity}: {e}")
            return AttemptLog()

    def _read(self, identity: str) -> Tuple[Optional[RiskProfile], AttemptLog]:
        """Both entities in a single round-trip. Raises on Redis or JSON errors."""
        pipe = self.client.pipeline()
        pipe.get(self._profile_key(identity))
        pipe.get(self._attempts_key(identity))
        raw_profile, raw_attempts = pipe.execute()

        profile = RiskProfile.from_dict(json.loads(raw_profile)) if raw_profile else None
        attempts = AttemptLog.from_dict(json.loads(raw_attempts)) if raw_attempts else AttemptLog()
        return profile, attempts

    def snapshot(self, identity: str) -> Tuple[Optional[RiskProfile], AttemptLog]:
        try:
            return self._read(identity)
        except RedisError as e:
            logger.error(f"Redis snapshot failed for {identity}: {e}")
        except (ValueError, TypeError) as e:
            # Corrupted JSON → fail open with defaults
            logger.warning(f"Profile JSON corrupted for {identity}: {e}")
        return None, AttemptLog()

    def load_for_update(self, identity: str) -> Tuple[Optional[RiskProfile], AttemptLog]:
        try:
            return self._read(identity)
        except RedisError as e:
            logger.error(f"Redis read before update failed for {identity}: {e}")
            raise ProfilePersistenceError(identity, f"Profile read failed for {identity}: {e}") from e
        except (ValueError, TypeError) as e:
            logger.error(f"Profile JSON corrupted for {identity}, refusing update: {e}")
            raise ProfilePersistenceError(identity, f"Profile for {identity} is unreadable: {e}") from e

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _held_locks(self) -> Dict[str, Any]:
        if not hasattr(self._local, "locks"):
            self._local.locks = {}
        return self._local.locks

    def save(self, identity: str, profile: Optional[RiskProfile], attempt_log: AttemptLog) -> None:
        """
        Write both entities in one MULTI/EXEC.

        When the calling thread holds the identity's lock, the lock key is
        WATCHed and ownership re-checked, so a holder whose lock expired
        cannot overwrite a newer update.
        """
        held = self._held_locks().get(identity)
        try:
            pipe = self.client.pipeline(True)
            if held is not None:
                pipe.watch(self._lock_key(identity))
                if not held.owned():
                    pipe.reset()
                    logger.warning(f"Profile lock for {identity} lost before write")
                    raise ProfileLockTimeout(
                        identity, f"Profile lock for {identity} expired before write"
                    )
                pipe.multi()
            if profile is not None:
                pipe.set(self._profile_key(identity), json.dumps(profile.to_dict()))
            pipe.set(self._attempts_key(identity), json.dumps(attempt_log.to_dict()))
            pipe.execute()
        except WatchError as e:
            logger.warning(f"Profile lock for {identity} changed during write")
            raise ProfileLockTimeout(
                identity, f"Profile lock for {identity} changed during write"
            ) from e
        except RedisError as e:
            logger.error(f"Redis write failed for profile {identity}: {e}")
            raise ProfilePersistenceError(identity, f"Profile write failed for {identity}: {e}") from e

    @contextmanager
    def lock(self, identity: str, timeout: float) -> Iterator[None]:
        lock = self.client.lock(
            self._lock_key(identity),
            timeout=self.LOCK_TTL,
            blocking_timeout=timeout,
        )
        try:
            acquired = lock.acquire()
        except RedisError as e:
            logger.error(f"Redis lock failed for {identity}: {e}")
            raise ProfilePersistenceError(identity, f"Profile lock failed for {identity}: {e}") from e

        if not acquired:
            raise ProfileLockTimeout(
                identity, f"Profile lock for {identity} not acquired within {timeout}s"
            )
        held = self._held_locks()
        held[identity] = lock
        try:
            yield
        finally:
            held.pop(identity, None)
            try:
                lock.release()
            except LockError as e:
                logger.warning(f"Profile lock for {identity} expired before release: {e}")
