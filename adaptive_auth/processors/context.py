"""
Adaptive Auth Context Builder

Turns one raw authentication/action request into an immutable
AuthenticationContext. No scoring. No decisions.

Uses GeoIP2 for location lookup and user-agents for device parsing.
Lookup failures are not errors: they leave the location unresolved or
the descriptor fields unknown, which the scorers penalise.
"""

import hashlib
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

import geoip2.database
import geoip2.errors
from user_agents import parse as parse_user_agent

from adaptive_auth.schemas.inputs import (
    ActionKind,
    AuthenticationContext,
    DeviceDescriptor,
    DeviceType,
    ResolvedLocation,
)


logger = logging.getLogger(__name__)

DEFAULT_GEOIP_PATH = "assets/GeoLite2-City.mmdb"

_PRIVATE_PREFIXES = (
    "10.",
    "172.16.", "172.17.", "172.18.", "172.19.",
    "172.20.", "172.21.", "172.22.", "172.23.",
    "172.24.", "172.25.", "172.26.", "172.27.",
    "172.28.", "172.29.", "172.30.", "172.31.",
    "192.168.",
    "127.",
    "0.",
    "::1",
    "fe80:",
)


# =============================================================================
# Signal Adapters
# =============================================================================

def device_fingerprint(user_agent: str, accept_language: str = "", accept_encoding: str = "") -> str:
    """Stable SHA-256 fingerprint of the declared client headers."""
    data = f"{user_agent}{accept_language}{accept_encoding}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def describe_device(user_agent: str) -> DeviceDescriptor:
    """
    Parse a user-agent string into a DeviceDescriptor.

    The parser reports unidentifiable browsers and systems as 'Other',
    which the descriptor normalises to unknown.
    """
    if not user_agent:
        return DeviceDescriptor()

    ua = parse_user_agent(user_agent)

    if ua.is_bot:
        device_type = DeviceType.BOT
    elif ua.is_tablet:
        device_type = DeviceType.TABLET
    elif ua.is_mobile:
        device_type = DeviceType.MOBILE
    elif ua.is_pc:
        device_type = DeviceType.DESKTOP
    else:
        device_type = DeviceType.UNKNOWN

    return DeviceDescriptor(
        browser_family=None if ua.is_bot else ua.browser.family,
        browser_version=ua.browser.version_string,
        os_family=ua.os.family,
        os_version=ua.os.version_string,
        device_type=device_type,
    )


def is_private_ip(ip_address: str) -> bool:
    """Check if IP is a private/reserved address."""
    return ip_address.startswith(_PRIVATE_PREFIXES)


# =============================================================================
# Context Builder
# =============================================================================

class ContextBuilder:
    """
    Assembles AuthenticationContext objects.

    Responsible for:
    1. GeoIP lookup (optional database, fail open to "unresolved")
    2. User-agent parsing into a DeviceDescriptor
    3. Device fingerprinting from request headers
    """

    def __init__(self, geoip_path: Optional[str] = None, geoip_reader: Any = None) -> None:
        """Initialize with an explicit reader or the GeoLite2 database on disk."""
        if geoip_reader is not None:
            self.geoip = geoip_reader
            return

        path = geoip_path or os.getenv("GEOIP_DATABASE_PATH", DEFAULT_GEOIP_PATH)
        # GeoIP - Fail open if database is unavailable
        try:
            self.geoip = geoip2.database.Reader(path)
        except Exception as e:
            logger.warning(f"GeoIP database unavailable, locations will be unresolved: {e}")
            self.geoip = None

    def resolve_location(self, ip_address: str) -> Optional[ResolvedLocation]:
        """
        Resolve IP address to location data.

        Returns:
            ResolvedLocation, or None for private IPs, a missing database
            or a failed lookup
        """
        if is_private_ip(ip_address) or self.geoip is None:
            return None

        try:
            response = self.geoip.city(ip_address)
        except (geoip2.errors.AddressNotFoundError, ValueError) as e:
            logger.debug(f"GeoIP lookup failed for {ip_address}: {e}")
            return None

        latitude = response.location.latitude
        longitude = response.location.longitude
        if latitude is None or longitude is None:
            return None

        return ResolvedLocation(
            latitude=latitude,
            longitude=longitude,
            country=response.country.iso_code,
            city=response.city.name,
            time_zone=response.location.time_zone,
        )

    def build(
        self,
        identity: str,
        ip_address: str,
        user_agent: str,
        action: ActionKind = ActionKind.LOGIN,
        timestamp: Optional[datetime] = None,
        accept_language: str = "",
        accept_encoding: str = "",
        fingerprint: Optional[str] = None,
    ) -> AuthenticationContext:
        """
        Build a context from raw request data.

        Args:
            identity: Identity being authenticated or acting.
            ip_address: Client network address.
            user_agent: Raw user-agent header.
            action: What the client is attempting.
            timestamp: Attempt time (defaults to now, UTC).
            accept_language, accept_encoding: Headers folded into the fingerprint.
            fingerprint: Precomputed device fingerprint, if the client sent one.
        """
        return self.from_parts(
            identity=identity,
            ip_address=ip_address,
            device_fingerprint=fingerprint or device_fingerprint(
                user_agent, accept_language, accept_encoding
            ),
            location=self.resolve_location(ip_address),
            device=describe_device(user_agent),
            action=action,
            timestamp=timestamp,
        )

    @staticmethod
    def from_parts(
        identity: str,
        ip_address: str,
        device_fingerprint: str,
        location: Optional[ResolvedLocation] = None,
        device: Optional[DeviceDescriptor] = None,
        action: ActionKind = ActionKind.LOGIN,
        timestamp: Optional[datetime] = None,
    ) -> AuthenticationContext:
        """Assemble a context from signals that were resolved elsewhere."""
        return AuthenticationContext(
            identity=identity,
            device_fingerprint=device_fingerprint,
            ip_address=ip_address,
            location=location,
            device=device or DeviceDescriptor(),
            action=action,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
