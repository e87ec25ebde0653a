"""
Adaptive Auth Exceptions

Scoring and policy decisions never raise. Only configuration,
step-up transitions and profile persistence do.
"""


class RiskEngineError(Exception):
    """Base class for all engine errors."""
    pass


class ConfigurationError(RiskEngineError):
    """Raised when an EngineConfig is internally inconsistent."""
    pass


class StepUpStateError(RiskEngineError):
    """Raised on an invalid step-up state transition."""
    pass


class RetryableUpdateError(RiskEngineError):
    """
    Raised when an outcome could not be recorded.

    The caller must retry: dropping an outcome corrupts the rolling
    profile used by future assessments.
    """

    def __init__(self, identity: str, message: str) -> None:
        super().__init__(message)
        self.identity = identity


class ProfileLockTimeout(RetryableUpdateError):
    """Raised when the per-identity update lock was not acquired in time."""
    pass


class ProfilePersistenceError(RetryableUpdateError):
    """Raised when the profile store rejected a write."""
    pass
