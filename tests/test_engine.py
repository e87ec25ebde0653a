"""
Risk Engine End-to-End Tests

Drives RiskEngine through full assess → record_outcome cycles over
in-memory stores. All timestamps are fixed, so every expected score
below is exact.
"""

from datetime import timedelta

import pytest

from adaptive_auth.config import EngineConfig
from adaptive_auth.engine import RiskEngine
from adaptive_auth.schemas.inputs import ActionKind
from adaptive_auth.schemas.outputs import (
    MonitoringMode,
    RiskDecision,
    RiskLevel,
    StepUpState,
)
from persistence.profile_store import InMemoryProfileStore, KnownLocation, RiskProfile

from conftest import BUSINESS_HOURS, LONDON, NEW_YORK, make_context


DAY = 86400.0


def save_established_profile(store: InMemoryProfileStore) -> None:
    """Known laptop, home in New York, usual hour 10, a year old."""
    store.save(
        "alice",
        RiskProfile(
            identity="alice",
            created_at=BUSINESS_HOURS.timestamp() - 365 * DAY,
            known_devices=["fp-laptop"],
            known_locations=[KnownLocation(latitude=NEW_YORK.latitude, longitude=NEW_YORK.longitude)],
            typical_hours=[10],
            successful_login_count=50,
        ),
        store.get_attempt_log("alice"),
    )


# =============================================================================
# Assessment Scenarios
# =============================================================================

class TestColdStart:
    """New identity, no profile, business-hours login."""

    def test_scenario_score(self, engine):
        result = engine.assess(make_context())

        assert result.breakdown.device.score == 40
        assert result.breakdown.location.score == 35
        assert result.breakdown.time.score == 0
        assert result.breakdown.behavioral.score == 0
        assert result.breakdown.historical.score == 30
        assert result.score == 24
        assert result.level == RiskLevel.LOW
        assert result.recommendation.action == RiskDecision.ALLOW
        assert result.recommendation.monitoring == MonitoringMode.ENHANCED
        assert [f.factor for f in result.factors] == ["device", "location", "historical"]

    def test_assess_never_writes(self, engine, profile_store):
        engine.assess(make_context())

        profile, log = profile_store.snapshot("alice")
        assert profile is None
        assert log.entries == []

    def test_deterministic(self, engine):
        context = make_context()

        assert engine.assess(context) == engine.assess(context)


class TestRecentFailures:
    """Failed attempts raise the behavioral factor."""

    def test_known_device_three_failures(self, engine, profile_store):
        save_established_profile(profile_store)
        assert engine.assess(make_context()).score == 0

        for minutes in (10, 8, 6):
            engine.record_outcome(
                "alice", make_context(timestamp=BUSINESS_HOURS - timedelta(minutes=minutes)), False
            )
        result = engine.assess(make_context())

        assert result.breakdown.behavioral.score == 30
        assert result.score == 6
        assert result.recommendation.action == RiskDecision.ALLOW

    def test_escalates_to_challenge_past_40(self, engine):
        # Wednesday 03:00 UTC, unfamiliar device and place, funds transfer
        at = BUSINESS_HOURS.replace(hour=3)
        scores = []

        for n in range(4):
            engine.record_outcome(
                "alice", make_context(timestamp=at - timedelta(minutes=10 - n)), False
            )
            result = engine.assess(make_context(timestamp=at, action=ActionKind.TRANSFER))
            scores.append(result.score)

            expected = RiskDecision.CHALLENGE if result.score >= 40 else RiskDecision.ALLOW
            assert result.recommendation.action == expected

        assert scores == [35, 37, 39, 41]
        assert result.level == RiskLevel.MEDIUM


class TestImpossibleTravel:
    """New York, then London thirty minutes later."""

    def test_flagged_after_successful_login(self, engine):
        engine.record_outcome("alice", make_context(), True)

        result = engine.assess(
            make_context(location=LONDON, timestamp=BUSINESS_HOURS + timedelta(minutes=30))
        )

        assert "impossible_travel" in result.breakdown.location.signal_names()
        assert result.breakdown.location.score == 95

    def test_not_flagged_after_failed_login(self, engine):
        engine.record_outcome("alice", make_context(), False)

        result = engine.assess(
            make_context(location=LONDON, timestamp=BUSINESS_HOURS + timedelta(minutes=30))
        )

        assert "impossible_travel" not in result.breakdown.location.signal_names()


class TestProfileLearning:
    """Successful outcomes make later attempts look familiar."""

    def test_device_becomes_known(self, engine):
        engine.record_outcome("alice", make_context(), True)

        result = engine.assess(make_context(timestamp=BUSINESS_HOURS + timedelta(days=1)))

        assert result.breakdown.device.score == 0
        assert result.breakdown.location.score == 0

    def test_evicted_device_is_unknown_again(self, engine):
        for i in range(6):
            engine.record_outcome(
                "alice",
                make_context(fingerprint=f"fp-{i}", timestamp=BUSINESS_HOURS + timedelta(hours=i)),
                True,
            )

        later = BUSINESS_HOURS + timedelta(days=1)
        assert engine.assess(make_context(fingerprint="fp-0", timestamp=later)).breakdown.device.score == 40
        assert engine.assess(make_context(fingerprint="fp-5", timestamp=later)).breakdown.device.score == 0

    def test_security_incidents(self, engine):
        engine.record_outcome("alice", make_context(), True)
        engine.record_security_incident("alice")

        result = engine.assess(make_context())

        assert "security_incidents" in result.breakdown.historical.signal_names()


# =============================================================================
# Step-Up
# =============================================================================

@pytest.fixture
def challenging_engine(stepup_manager):
    """Engine whose thresholds turn the cold-start score (24) into CHALLENGE."""
    return RiskEngine(
        InMemoryProfileStore(),
        config=EngineConfig(level_thresholds=(10, 20, 60, 80)),
        stepup=stepup_manager,
    )


class TestEvaluateAction:
    """Session-aware decisions."""

    def test_challenge_opens_pending_step_up(self, challenging_engine, stepup_manager):
        result = challenging_engine.evaluate_action(make_context(), "sess-1", "/transfer")

        assert result.recommendation.action == RiskDecision.CHALLENGE
        session = stepup_manager.get_session("sess-1")
        assert session.state == StepUpState.PENDING
        assert session.resume_destination == "/transfer"

    def test_recent_step_up_waives_challenge(self, challenging_engine, stepup_manager):
        challenging_engine.evaluate_action(make_context(), "sess-1", "/transfer")
        stepup_manager.complete_step_up("sess-1", now=BUSINESS_HOURS)

        result = challenging_engine.evaluate_action(
            make_context(timestamp=BUSINESS_HOURS + timedelta(minutes=4)), "sess-1"
        )

        assert result.recommendation.action == RiskDecision.ALLOW
        assert result.recommendation.step_up_satisfied
        assert result.score == 24
        assert stepup_manager.get_session("sess-1", now=BUSINESS_HOURS).state == StepUpState.VERIFIED

    def test_expired_step_up_challenges_again(self, challenging_engine, stepup_manager):
        challenging_engine.evaluate_action(make_context(), "sess-1")
        stepup_manager.complete_step_up("sess-1", now=BUSINESS_HOURS)
        later = BUSINESS_HOURS + timedelta(minutes=6)

        result = challenging_engine.evaluate_action(make_context(timestamp=later), "sess-1")

        assert result.recommendation.action == RiskDecision.CHALLENGE
        assert stepup_manager.get_session("sess-1", now=later).state == StepUpState.PENDING

    def test_block_never_waived(self, stepup_manager):
        engine = RiskEngine(
            InMemoryProfileStore(),
            config=EngineConfig(level_thresholds=(5, 10, 15, 20)),
            stepup=stepup_manager,
        )
        stepup_manager.request_step_up("sess-1", now=BUSINESS_HOURS)
        stepup_manager.complete_step_up("sess-1", now=BUSINESS_HOURS)

        result = engine.evaluate_action(make_context(), "sess-1")

        assert result.recommendation.action == RiskDecision.BLOCK
        assert not result.recommendation.step_up_satisfied

    def test_allow_leaves_session_untouched(self, engine, stepup_manager):
        result = engine.evaluate_action(make_context(), "sess-1")

        assert result.recommendation.action == RiskDecision.ALLOW
        assert stepup_manager.get_session("sess-1").state == StepUpState.NONE


# =============================================================================
# Reporting
# =============================================================================

class TestRiskSummary:
    """Profile and recent-attempt summary."""

    def test_unknown_identity(self, engine):
        summary = engine.get_risk_summary("ghost")

        assert summary.profile is None
        assert summary.recent_attempts == []

    def test_recent_attempts_limited(self, engine):
        for i in range(12):
            engine.record_outcome(
                "alice", make_context(timestamp=BUSINESS_HOURS + timedelta(minutes=i)), i % 2 == 0
            )

        summary = engine.get_risk_summary("alice")

        assert summary.profile["successful_login_count"] == 6
        assert len(summary.recent_attempts) == 10
        assert summary.recent_attempts[-1]["timestamp"] == (
            BUSINESS_HOURS + timedelta(minutes=11)
        ).timestamp()


class TestAuditLogging:
    """Assessments are forwarded to the audit logger."""

    def test_assess_and_evaluate_logged(self, profile_store, mock_supabase):
        from persistence.audit_logger import AuditLogger

        engine = RiskEngine(profile_store, audit_logger=AuditLogger(client=mock_supabase))

        engine.assess(make_context())
        engine.evaluate_action(make_context(), "sess-1")

        assert mock_supabase.table.return_value.insert.call_count == 2
