"""
Adaptive Auth Profile & History Updater

The only writer of RiskProfile and AttemptLog. Every update is a
read-modify-write inside the store's per-identity lock, so two
concurrent outcomes for one identity can neither drop an insertion
nor double-count an attempt.

Invoked after the credential outcome is known, never before.
"""

import logging
import time
from typing import List, Optional, TypeVar

from adaptive_auth.config import EngineConfig
from adaptive_auth.schemas.inputs import AuthenticationContext
from persistence.profile_store import (
    AttemptLog,
    AttemptRecord,
    KnownLocation,
    ProfileStore,
    RiskProfile,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Bounded Collections
# =============================================================================

def insert_bounded(items: List[T], item: T, cap: int) -> List[T]:
    """
    Append item unless already present, evicting the oldest past cap.

    Returns a new list; the input is left untouched.
    """
    if item in items:
        return list(items)
    return (list(items) + [item])[-cap:]


def insert_location(
    locations: List[KnownLocation],
    location: KnownLocation,
    cap: int,
) -> List[KnownLocation]:
    """
    Bounded FIFO insert for locations.

    A location already present keeps its slot and first_seen; only
    last_seen is refreshed.
    """
    updated = []
    found = False
    for known in locations:
        if known.same_place(location):
            known = KnownLocation(
                latitude=known.latitude,
                longitude=known.longitude,
                country=known.country,
                city=known.city,
                first_seen=known.first_seen,
                last_seen=location.last_seen,
            )
            found = True
        updated.append(known)
    if not found:
        updated.append(location)
    return updated[-cap:]


# =============================================================================
# Updater
# =============================================================================

class ProfileUpdater:
    """
    Folds attempt outcomes into the durable per-identity history.

    Raises:
        ProfileLockTimeout: lock not acquired within config.lock_timeout_seconds.
        ProfilePersistenceError: the store could not be read or rejected the write.
        Both are RetryableUpdateError; the caller must retry.
    """

    def __init__(self, store: ProfileStore, config: EngineConfig) -> None:
        self.store = store
        self.config = config

    def record_outcome(
        self,
        identity: str,
        context: AuthenticationContext,
        success: bool,
    ) -> RiskProfile:
        """
        Record one attempt outcome.

        On success: device, location, hour, login count and last location.
        On success and failure: one AttemptLog entry.

        Returns:
            The profile as persisted.
        """
        now = context.epoch

        with self.store.lock(identity, timeout=self.config.lock_timeout_seconds):
            profile, attempt_log = self.store.load_for_update(identity)

            if profile is None:
                profile = RiskProfile(identity=identity, created_at=now)
                logger.info(f"Created risk profile for {identity}")

            if success:
                self._apply_success(profile, context)

            entries = attempt_log.entries + [
                AttemptRecord(
                    timestamp=now,
                    success=success,
                    device_fingerprint=context.device_fingerprint,
                    ip_address=context.ip_address,
                )
            ]
            attempt_log = AttemptLog(entries=entries[-self.config.max_attempts:])

            self.store.save(identity, profile, attempt_log)

        logger.debug(
            f"Recorded {'successful' if success else 'failed'} attempt for {identity} "
            f"({len(attempt_log.entries)} in log)"
        )
        return profile

    def _apply_success(self, profile: RiskProfile, context: AuthenticationContext) -> None:
        now = context.epoch

        profile.known_devices = insert_bounded(
            profile.known_devices,
            context.device_fingerprint,
            self.config.max_known_devices,
        )

        if context.location is not None:
            seen = KnownLocation(
                latitude=context.location.latitude,
                longitude=context.location.longitude,
                country=context.location.country,
                city=context.location.city,
                first_seen=now,
                last_seen=now,
            )
            profile.known_locations = insert_location(
                profile.known_locations,
                seen,
                self.config.max_known_locations,
            )
            # Always refreshed so impossible-travel compares against the latest sighting
            profile.last_location = seen
            profile.last_location_at = now

        hour = context.local_timestamp.hour
        if hour not in profile.typical_hours:
            profile.typical_hours = sorted(profile.typical_hours + [hour])

        profile.successful_login_count += 1

    def record_security_incident(self, identity: str, at: Optional[float] = None) -> RiskProfile:
        """
        Count a security incident against identity.

        Args:
            identity: Identity the incident is attributed to.
            at: Epoch seconds used as created_at if the profile does not exist yet.
        """
        with self.store.lock(identity, timeout=self.config.lock_timeout_seconds):
            profile, attempt_log = self.store.load_for_update(identity)
            if profile is None:
                if at is None:
                    at = time.time()
                profile = RiskProfile(identity=identity, created_at=at)
            profile.security_incident_count += 1
            self.store.save(identity, profile, attempt_log)

        logger.warning(
            f"Security incident recorded for {identity} "
            f"(total {profile.security_incident_count})"
        )
        return profile
