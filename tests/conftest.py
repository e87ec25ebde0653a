"""
Adaptive Auth Test Suite - Shared Pytest Fixtures

This conftest.py provides fixtures for all test categories including:
- Redis connection and cleanup for store integration tests
- GeoIP mocking utilities
- Config, store, step-up and engine instances
- A context factory with fixed, deterministic timestamps

Usage:
    pytest tests/ -v -s
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from unittest.mock import MagicMock

import pytest

from adaptive_auth.config import EngineConfig
from adaptive_auth.schemas.inputs import (
    ActionKind,
    AuthenticationContext,
    DeviceDescriptor,
    DeviceType,
    ResolvedLocation,
)


# Wednesday 2024-05-15 10:00 UTC: inside business hours
BUSINESS_HOURS = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)

NEW_YORK = ResolvedLocation(latitude=40.7128, longitude=-74.0060, country="US", city="New York")
LONDON = ResolvedLocation(latitude=51.5074, longitude=-0.1278, country="GB", city="London")
BROOKLYN = ResolvedLocation(latitude=40.6782, longitude=-73.9442, country="US", city="Brooklyn")

DESKTOP_CHROME = DeviceDescriptor(
    browser_family="Chrome",
    browser_version="120.0",
    os_family="Windows",
    os_version="10",
    device_type=DeviceType.DESKTOP,
)

WINDOWS_CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_SAFARI_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.5 Mobile/15E148 Safari/604.1"
)
GOOGLEBOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


# =============================================================================
# Context Factory
# =============================================================================

def make_context(
    identity: str = "alice",
    fingerprint: str = "fp-laptop",
    location: Optional[ResolvedLocation] = NEW_YORK,
    device: DeviceDescriptor = DESKTOP_CHROME,
    action: ActionKind = ActionKind.LOGIN,
    timestamp: datetime = BUSINESS_HOURS,
    ip_address: str = "203.0.113.10",
) -> AuthenticationContext:
    """Build an AuthenticationContext with sensible defaults."""
    return AuthenticationContext(
        identity=identity,
        device_fingerprint=fingerprint,
        ip_address=ip_address,
        location=location,
        device=device,
        action=action,
        timestamp=timestamp,
    )


# =============================================================================
# Redis Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def redis_client():
    """
    Session-scoped Redis client for integration tests.

    Skips the test when no Redis server is reachable.
    """
    import redis

    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", "6379"))
    password = os.environ.get("REDIS_PASSWORD") or None

    client = redis.Redis(
        host=host,
        port=port,
        password=password,
        decode_responses=True,
    )
    try:
        client.ping()
    except redis.RedisError:
        pytest.skip(f"Redis not available at {host}:{port}")
    yield client
    client.close()


@pytest.fixture
def clean_redis(redis_client):
    """
    Function-scoped fixture that provides a clean Redis state.
    Flushes the database after each test for isolation.
    """
    yield redis_client
    redis_client.flushdb()


# =============================================================================
# GeoIP Fixtures
# =============================================================================

@pytest.fixture
def mock_geoip():
    """
    Fixture that returns a factory for mock GeoIP readers.

    Usage:
        def test_example(mock_geoip):
            reader = mock_geoip({
                "8.8.8.8": {"latitude": 37.7749, "longitude": -122.4194, ...}
            })
            builder = ContextBuilder(geoip_reader=reader)
    """
    import geoip2.errors

    def _mock_geoip(ip_responses: Dict[str, dict]) -> MagicMock:
        """
        Create a mock GeoIP reader that returns specified responses.

        Args:
            ip_responses: Dict mapping IP addresses to response dicts with:
                - latitude: float
                - longitude: float
                - city_name: str (optional)
                - country_iso: str (optional)
                - time_zone: str (optional)
        """
        def create_mock_response(ip: str):
            if ip not in ip_responses:
                raise geoip2.errors.AddressNotFoundError(f"{ip} not in mock database")

            data = ip_responses[ip]

            mock_response = MagicMock()
            mock_response.location.latitude = data.get("latitude", 0.0)
            mock_response.location.longitude = data.get("longitude", 0.0)
            mock_response.location.time_zone = data.get("time_zone")
            mock_response.city.name = data.get("city_name", "MockCity")
            mock_response.country.iso_code = data.get("country_iso", "US")
            return mock_response

        mock_reader = MagicMock()
        mock_reader.city.side_effect = create_mock_response
        return mock_reader

    return _mock_geoip


# =============================================================================
# Engine Fixtures
# =============================================================================

class FakeClock:
    """Manually advanced clock for step-up expiry tests."""

    def __init__(self, start: datetime = BUSINESS_HOURS) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def profile_store():
    from persistence.profile_store import InMemoryProfileStore
    return InMemoryProfileStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stepup_manager(clock):
    from adaptive_auth.models.stepup import StepUpManager
    from persistence.stepup_store import InMemoryStepUpStore
    return StepUpManager(InMemoryStepUpStore(), expiry_seconds=300, clock=clock)


@pytest.fixture
def engine(profile_store, config, stepup_manager):
    """RiskEngine over in-memory stores, audit logging disabled."""
    from adaptive_auth.engine import RiskEngine
    return RiskEngine(profile_store, config=config, stepup=stepup_manager)


@pytest.fixture
def mock_supabase():
    """MagicMock standing in for a supabase Client."""
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = MagicMock()
    return client
