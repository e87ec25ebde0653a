"""
Adaptive Auth Engine Configuration

Every weight, threshold and cap used by the scorers, the policy engine,
the step-up manager and the profile updater lives here, so several
engine configurations can coexist (e.g. a stricter one for admins).

Environment overrides (all optional):
    RISK_HIGH_RISK_COUNTRIES     Comma separated ISO codes
    RISK_SENSITIVE_ACTIONS       Comma separated action kinds
    RISK_MAX_TRAVEL_SPEED_KMH    Impossible-travel ceiling
    RISK_BURST_THRESHOLD         Requests per burst window
    RISK_STEPUP_EXPIRY_SECONDS   Elevated-trust lifetime
    RISK_LOCK_TIMEOUT_SECONDS    Bounded wait for the profile lock
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from fractions import Fraction
from typing import Dict, FrozenSet, Optional, Tuple

from adaptive_auth.exceptions import ConfigurationError


# =============================================================================
# Defaults
# =============================================================================

FACTOR_ORDER: Tuple[str, ...] = ("device", "location", "time", "behavioral", "historical")

DEFAULT_WEIGHTS: Dict[str, float] = {
    "device": 0.25,
    "location": 0.30,
    "time": 0.15,
    "behavioral": 0.20,
    "historical": 0.10,
}

# Lower bounds of LOW, MEDIUM, HIGH, CRITICAL
DEFAULT_LEVEL_THRESHOLDS: Tuple[int, int, int, int] = (20, 40, 60, 80)

DEFAULT_MIN_OS_VERSIONS: Dict[str, Tuple[int, ...]] = {
    "Windows": (10,),
    "Mac OS X": (10, 15),
    "iOS": (14,),
    "Android": (10,),
}

DEFAULT_SENSITIVE_ACTIONS: FrozenSet[str] = frozenset({
    "transfer",
    "change_email",
    "change_password",
})


def _env_set(name: str) -> Optional[FrozenSet[str]]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


# =============================================================================
# Config
# =============================================================================

@dataclass(frozen=True)
class EngineConfig:
    """Immutable engine configuration."""

    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    level_thresholds: Tuple[int, int, int, int] = DEFAULT_LEVEL_THRESHOLDS

    # Device
    unknown_device_points: int = 40
    unknown_browser_points: int = 20
    outdated_os_points: int = 15
    mobile_adjustment: int = -5
    min_os_versions: Dict[str, Tuple[int, ...]] = field(
        default_factory=lambda: dict(DEFAULT_MIN_OS_VERSIONS)
    )

    # Location
    unresolved_location_points: int = 30
    new_location_points: int = 35
    high_risk_country_points: int = 25
    impossible_travel_points: int = 60
    known_location_radius_km: float = 100.0
    max_travel_speed_kmh: float = 900.0
    high_risk_countries: FrozenSet[str] = frozenset()

    # Time
    business_days: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})  # Mon-Fri
    business_hours: Tuple[int, int] = (9, 17)  # inclusive
    late_night_hours: Tuple[int, int] = (1, 5)  # inclusive
    off_hours_points: int = 20
    late_night_points: int = 15
    weekend_points: int = 10
    atypical_hour_points: int = 15

    # Behavioral
    failure_window_seconds: float = 15 * 60
    points_per_failure: int = 10
    max_failure_points: int = 40
    burst_window_seconds: float = 60.0
    burst_threshold: int = 5
    burst_points: int = 20
    sensitive_action_points: int = 15
    sensitive_actions: FrozenSet[str] = DEFAULT_SENSITIVE_ACTIONS

    # Historical
    new_identity_points: int = 30
    very_new_account_days: float = 7.0
    very_new_account_points: int = 25
    new_account_days: float = 30.0
    new_account_points: int = 15
    points_per_incident: int = 10
    max_incident_points: int = 30
    low_login_count: int = 5
    low_login_points: int = 20

    # Profile caps
    max_known_devices: int = 5
    max_known_locations: int = 5
    max_attempts: int = 100

    # Step-up / persistence
    stepup_expiry_seconds: float = 300.0
    lock_timeout_seconds: float = 2.0

    def __post_init__(self) -> None:
        if set(self.weights) != set(FACTOR_ORDER):
            raise ConfigurationError(
                f"Weights must cover exactly {FACTOR_ORDER}, got {sorted(self.weights)}"
            )
        total = sum(Fraction(str(w)) for w in self.weights.values())
        if total != 1:
            raise ConfigurationError(f"Weights must sum to 1.0, got {float(total)}")
        if any(w < 0 for w in self.weights.values()):
            raise ConfigurationError("Weights must be non-negative")
        if list(self.level_thresholds) != sorted(self.level_thresholds):
            raise ConfigurationError("Level thresholds must be ascending")
        if self.stepup_expiry_seconds <= 0 or self.lock_timeout_seconds <= 0:
            raise ConfigurationError("Expiry and lock timeout must be positive")
        for cap in (self.max_known_devices, self.max_known_locations, self.max_attempts):
            if cap < 1:
                raise ConfigurationError("Profile caps must be at least 1")

    # -------------------------------------------------------------------------
    # Variants
    # -------------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build the default config with environment overrides applied."""
        overrides: Dict[str, object] = {}

        countries = _env_set("RISK_HIGH_RISK_COUNTRIES")
        if countries is not None:
            overrides["high_risk_countries"] = frozenset(c.upper() for c in countries)

        actions = _env_set("RISK_SENSITIVE_ACTIONS")
        if actions is not None:
            overrides["sensitive_actions"] = actions

        speed = os.getenv("RISK_MAX_TRAVEL_SPEED_KMH")
        if speed:
            overrides["max_travel_speed_kmh"] = float(speed)

        burst = os.getenv("RISK_BURST_THRESHOLD")
        if burst:
            overrides["burst_threshold"] = int(burst)

        expiry = os.getenv("RISK_STEPUP_EXPIRY_SECONDS")
        if expiry:
            overrides["stepup_expiry_seconds"] = float(expiry)

        lock_timeout = os.getenv("RISK_LOCK_TIMEOUT_SECONDS")
        if lock_timeout:
            overrides["lock_timeout_seconds"] = float(lock_timeout)

        return cls(**overrides)

    @classmethod
    def strict(cls) -> EngineConfig:
        """Tighter policy for administrative accounts."""
        return cls(
            level_thresholds=(10, 25, 45, 65),
            burst_threshold=3,
            stepup_expiry_seconds=120.0,
            sensitive_actions=DEFAULT_SENSITIVE_ACTIONS | {"view_settings", "view_sensitive_page"},
        )

    def with_overrides(self, **changes: object) -> EngineConfig:
        """Return a copy with some fields replaced (re-validated)."""
        return replace(self, **changes)
