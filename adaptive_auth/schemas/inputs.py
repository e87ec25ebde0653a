"""
Adaptive Auth Input Schemas

This module defines Pydantic V2 models for:
- The immutable AuthenticationContext consumed by the scorers
- Its resolved location and device descriptor parts
- Request payloads accepted by the HTTP surface
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================

class ActionKind(str, Enum):
    """Kind of authentication attempt or in-session action being assessed."""
    LOGIN = "login"
    MFA_VERIFY = "mfa_verify"
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_PROFILE = "view_profile"
    VIEW_SETTINGS = "view_settings"
    VIEW_TRANSFER = "view_transfer"
    VIEW_RISK_ANALYSIS = "view_risk_analysis"
    VIEW_SENSITIVE_PAGE = "view_sensitive_page"
    TRANSFER = "transfer"
    CHANGE_EMAIL = "change_email"
    CHANGE_PASSWORD = "change_password"
    API_CHECK = "api_check"


class DeviceType(str, Enum):
    """Coarse device class from the user-agent parser."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    BOT = "bot"
    UNKNOWN = "unknown"


# =============================================================================
# Context Parts
# =============================================================================

class ResolvedLocation(BaseModel):
    """Geolocation resolved from the client IP address."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    country: Optional[str] = Field(None, description="ISO 3166-1 alpha-2 code")
    city: Optional[str] = None
    time_zone: Optional[str] = Field(None, description="IANA time zone name")


class DeviceDescriptor(BaseModel):
    """
    Structured declared software/hardware identity.

    Every field may be unknown. Blank or unparseable values become None
    so the device scorer can penalise them instead of rejecting the attempt.
    """
    model_config = ConfigDict(frozen=True)

    browser_family: Optional[str] = None
    browser_version: Optional[str] = None
    os_family: Optional[str] = None
    os_version: Optional[str] = None
    device_type: DeviceType = DeviceType.UNKNOWN

    @field_validator("browser_family", "browser_version", "os_family", "os_version", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        if not value or value == "Other":
            return None
        return value

    @field_validator("device_type", mode="before")
    @classmethod
    def _unknown_device_type(cls, value):
        if value is None:
            return DeviceType.UNKNOWN
        if isinstance(value, DeviceType):
            return value
        try:
            return DeviceType(str(value).lower())
        except ValueError:
            return DeviceType.UNKNOWN


# =============================================================================
# Authentication Context (Root Model)
# =============================================================================

class AuthenticationContext(BaseModel):
    """
    Everything known about one attempt, assembled once and never mutated.

    location is None when geolocation failed.
    """
    model_config = ConfigDict(frozen=True)

    identity: str = Field(..., min_length=1, description="Identity reference")
    device_fingerprint: str = Field(..., description="Opaque stable device hash")
    ip_address: str = Field(..., description="Client network address")
    location: Optional[ResolvedLocation] = None
    device: DeviceDescriptor = Field(default_factory=DeviceDescriptor)
    action: ActionKind = ActionKind.LOGIN
    timestamp: datetime = Field(..., description="Wall-clock time of the attempt")

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def epoch(self) -> float:
        """Timestamp as epoch seconds."""
        return self.timestamp.timestamp()

    @property
    def local_timestamp(self) -> datetime:
        """Timestamp in the client's local zone when known."""
        if self.location is not None and self.location.time_zone:
            try:
                return self.timestamp.astimezone(ZoneInfo(self.location.time_zone))
            except (ZoneInfoNotFoundError, ValueError) as e:
                logger.debug(f"Unknown time zone {self.location.time_zone!r}: {e}")
        return self.timestamp


# =============================================================================
# HTTP Payloads
# =============================================================================

class AssessPayload(BaseModel):
    """Raw request data for /assess and /evaluate."""
    identity: str = Field(..., min_length=1)
    ip_address: str
    user_agent: str = ""
    action: ActionKind = ActionKind.LOGIN
    timestamp: Optional[datetime] = None
    accept_language: str = ""
    accept_encoding: str = ""
    device_fingerprint: Optional[str] = Field(
        None,
        description="Precomputed fingerprint; derived from headers when absent"
    )
    session_id: Optional[str] = Field(None, description="Required by /evaluate")
    resume_destination: str = "/dashboard"


class OutcomePayload(AssessPayload):
    """Credential-verification outcome to fold into the profile."""
    success: bool


class IncidentPayload(BaseModel):
    """Security incident attributed to an identity."""
    identity: str = Field(..., min_length=1)


class StepUpRequestPayload(BaseModel):
    """Start a step-up challenge for a session."""
    session_id: str = Field(..., min_length=1)
    resume_destination: str = "/dashboard"


class StepUpCompletePayload(BaseModel):
    """Mark the out-of-band verification as satisfied."""
    session_id: str = Field(..., min_length=1)
