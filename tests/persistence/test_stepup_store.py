"""
Step-Up Store Tests

Tests for in-memory and Redis step-up session storage, including the
fail-closed read behaviour of the Redis backend.
"""

import json
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from adaptive_auth.models.stepup import StepUpManager
from adaptive_auth.schemas.outputs import StepUpState
from persistence.stepup_store import InMemoryStepUpStore, RedisStepUpStore, StepUpSession


def verified_session() -> StepUpSession:
    return StepUpSession(
        session_id="sess-1",
        state=StepUpState.VERIFIED,
        requested_at=100.0,
        verified_at=110.0,
        expires_at=410.0,
        resume_destination="/transfer",
    )


class TestStepUpSession:
    """Test serialisation."""

    def test_round_trip(self):
        session = verified_session()

        data = json.loads(json.dumps(session.to_dict()))

        assert data["state"] == "VERIFIED"
        assert StepUpSession.from_dict(data) == session


class TestInMemoryStepUpStore:
    """Test the process-local store."""

    def test_put_get_delete(self):
        store = InMemoryStepUpStore()

        store.put(verified_session())
        assert store.get("sess-1") == verified_session()

        store.delete("sess-1")
        assert store.get("sess-1") is None

    def test_delete_missing_is_noop(self):
        InMemoryStepUpStore().delete("missing")

    def test_reads_are_copies(self):
        store = InMemoryStepUpStore()
        store.put(verified_session())

        store.get("sess-1").state = StepUpState.NONE

        assert store.get("sess-1").state == StepUpState.VERIFIED


class TestRedisStepUpStoreFailures:
    """Test failure handling against a mocked redis client."""

    def test_read_failure_fails_closed(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("down")
        manager = StepUpManager(RedisStepUpStore(client=client))

        assert manager.is_elevated("sess-1") is False

    def test_write_failure_propagates(self):
        client = MagicMock()
        client.setex.side_effect = RedisConnectionError("down")
        store = RedisStepUpStore(client=client)

        with pytest.raises(RedisConnectionError):
            store.put(verified_session())

    def test_put_sets_ttl(self):
        client = MagicMock()
        store = RedisStepUpStore(client=client)

        store.put(verified_session())

        key, ttl, payload = client.setex.call_args[0]
        assert key == "STEPUP:sess-1"
        assert ttl == RedisStepUpStore.SESSION_TTL
        assert json.loads(payload)["state"] == "VERIFIED"


class TestRedisStepUpStoreIntegration:
    """Test against a live Redis server."""

    def test_put_get_delete(self, clean_redis):
        store = RedisStepUpStore(client=clean_redis)

        store.put(verified_session())
        assert store.get("sess-1") == verified_session()
        assert clean_redis.ttl("STEPUP:sess-1") > 0

        store.delete("sess-1")
        assert store.get("sess-1") is None
