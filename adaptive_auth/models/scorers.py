"""
Adaptive Auth Risk Factor Scorers

Five independent scorers, each a pure function of
(context, profile snapshot, attempt log snapshot, config).
They never read the clock, never touch a store and never raise on
missing data: an absent profile is the cold-start case.

Each returns a FactorScore clamped to [0, 100] together with the
signals that produced it.
"""

import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

from adaptive_auth.config import EngineConfig
from adaptive_auth.models.geo import haversine_km, implied_speed_kmh
from adaptive_auth.schemas.inputs import AuthenticationContext, DeviceType
from adaptive_auth.schemas.outputs import FactorScore, RiskSignal
from persistence.profile_store import AttemptLog, RiskProfile


logger = logging.getLogger(__name__)

Scorer = Callable[
    [AuthenticationContext, Optional[RiskProfile], AttemptLog, EngineConfig],
    FactorScore,
]

_VERSION_RE = re.compile(r"^\d+(?:[._]\d+)*")


# =============================================================================
# Helpers
# =============================================================================

def _finish(signals: List[RiskSignal]) -> FactorScore:
    """Sum signal points and clamp to [0, 100]."""
    total = sum(s.points for s in signals)
    return FactorScore(score=min(max(total, 0), 100), signals=signals)


def parse_version(version: Optional[str]) -> Optional[Tuple[int, ...]]:
    """'10.15.7' → (10, 15, 7). Non-numeric versions ('XP', 'Vista') → None."""
    if not version:
        return None
    match = _VERSION_RE.match(version.strip())
    if match is None:
        return None
    return tuple(int(part) for part in re.split(r"[._]", match.group(0)))


def is_os_outdated(
    os_family: Optional[str],
    os_version: Optional[str],
    min_versions: Dict[str, Tuple[int, ...]],
) -> bool:
    """True only when the OS is in the table and its version is known and lower."""
    if not os_family or os_family not in min_versions:
        return False
    version = parse_version(os_version)
    if version is None:
        return False
    return version < min_versions[os_family]


# =============================================================================
# Device
# =============================================================================

def score_device(
    context: AuthenticationContext,
    profile: Optional[RiskProfile],
    attempt_log: AttemptLog,
    config: EngineConfig,
) -> FactorScore:
    """Unknown fingerprint, missing browser identity, outdated OS, mobile discount."""
    signals: List[RiskSignal] = []
    known_devices = profile.known_devices if profile is not None else []

    if context.device_fingerprint not in known_devices:
        signals.append(RiskSignal(name="unknown_device", points=config.unknown_device_points))

    # No recognisable browser: likely a script or automation client
    if context.device.browser_family is None:
        signals.append(RiskSignal(name="unknown_browser", points=config.unknown_browser_points))

    if is_os_outdated(context.device.os_family, context.device.os_version, config.min_os_versions):
        signals.append(RiskSignal(name="outdated_os", points=config.outdated_os_points))

    if context.device.device_type == DeviceType.MOBILE:
        signals.append(RiskSignal(name="mobile_device", points=config.mobile_adjustment))

    return _finish(signals)


# =============================================================================
# Location
# =============================================================================

def score_location(
    context: AuthenticationContext,
    profile: Optional[RiskProfile],
    attempt_log: AttemptLog,
    config: EngineConfig,
) -> FactorScore:
    """Unresolved location, unfamiliar location, high-risk country, impossible travel."""
    location = context.location
    if location is None:
        return _finish([
            RiskSignal(name="location_unresolved", points=config.unresolved_location_points)
        ])

    signals: List[RiskSignal] = []
    current = (location.latitude, location.longitude)

    known_locations = profile.known_locations if profile is not None else []
    is_known = any(
        haversine_km(known.coords, current) <= config.known_location_radius_km
        for known in known_locations
    )
    if not is_known:
        signals.append(RiskSignal(name="new_location", points=config.new_location_points))

    if location.country and location.country.upper() in config.high_risk_countries:
        signals.append(RiskSignal(name="high_risk_country", points=config.high_risk_country_points))

    # Impossible travel against the last successful sighting
    if (
        profile is not None
        and profile.last_location is not None
        and profile.last_location_at is not None
    ):
        elapsed = context.epoch - profile.last_location_at
        if elapsed >= 0:
            distance = haversine_km(profile.last_location.coords, current)
            speed = implied_speed_kmh(distance, elapsed)
            if speed > config.max_travel_speed_kmh:
                logger.debug(
                    f"Impossible travel for {context.identity}: "
                    f"{distance:.0f} km in {elapsed:.0f}s ({speed:.0f} km/h)"
                )
                signals.append(
                    RiskSignal(name="impossible_travel", points=config.impossible_travel_points)
                )

    return _finish(signals)


# =============================================================================
# Time
# =============================================================================

def score_time(
    context: AuthenticationContext,
    profile: Optional[RiskProfile],
    attempt_log: AttemptLog,
    config: EngineConfig,
) -> FactorScore:
    """Off-hours, late night, weekend and atypical-hour penalties (additive)."""
    signals: List[RiskSignal] = []
    local = context.local_timestamp
    hour = local.hour
    weekday = local.weekday()  # Monday == 0

    start_hour, end_hour = config.business_hours
    is_business_hours = weekday in config.business_days and start_hour <= hour <= end_hour
    if not is_business_hours:
        signals.append(RiskSignal(name="outside_business_hours", points=config.off_hours_points))

    night_start, night_end = config.late_night_hours
    if night_start <= hour <= night_end:
        signals.append(RiskSignal(name="late_night", points=config.late_night_points))

    if weekday >= 5:
        signals.append(RiskSignal(name="weekend", points=config.weekend_points))

    if profile is not None and profile.typical_hours and hour not in profile.typical_hours:
        signals.append(RiskSignal(name="atypical_hour", points=config.atypical_hour_points))

    return _finish(signals)


# =============================================================================
# Behavioral
# =============================================================================

def score_behavioral(
    context: AuthenticationContext,
    profile: Optional[RiskProfile],
    attempt_log: AttemptLog,
    config: EngineConfig,
) -> FactorScore:
    """Recent failures, request bursts and sensitive actions."""
    signals: List[RiskSignal] = []
    now = context.epoch

    failures = [
        a for a in attempt_log.within(now, config.failure_window_seconds) if not a.success
    ]
    if failures:
        points = min(config.max_failure_points, len(failures) * config.points_per_failure)
        signals.append(RiskSignal(name="recent_failures", points=points))

    # Burst of attempts: possible automation
    if len(attempt_log.within(now, config.burst_window_seconds)) > config.burst_threshold:
        signals.append(RiskSignal(name="request_burst", points=config.burst_points))

    if context.action.value in config.sensitive_actions:
        signals.append(RiskSignal(name="sensitive_action", points=config.sensitive_action_points))

    return _finish(signals)


# =============================================================================
# Historical
# =============================================================================

def score_historical(
    context: AuthenticationContext,
    profile: Optional[RiskProfile],
    attempt_log: AttemptLog,
    config: EngineConfig,
) -> FactorScore:
    """Account age, security incidents and login frequency."""
    if profile is None:
        return _finish([RiskSignal(name="new_identity", points=config.new_identity_points)])

    signals: List[RiskSignal] = []
    age_days = (context.epoch - profile.created_at) / 86400.0

    if age_days < config.very_new_account_days:
        signals.append(RiskSignal(name="very_new_account", points=config.very_new_account_points))
    elif age_days < config.new_account_days:
        signals.append(RiskSignal(name="new_account", points=config.new_account_points))

    if profile.security_incident_count > 0:
        points = min(
            config.max_incident_points,
            profile.security_incident_count * config.points_per_incident,
        )
        signals.append(RiskSignal(name="security_incidents", points=points))

    if profile.successful_login_count < config.low_login_count:
        signals.append(RiskSignal(name="infrequent_user", points=config.low_login_points))

    return _finish(signals)


# Fixed factor order: also the tie-break order for top factors
SCORERS: Dict[str, Scorer] = {
    "device": score_device,
    "location": score_location,
    "time": score_time,
    "behavioral": score_behavioral,
    "historical": score_historical,
}
