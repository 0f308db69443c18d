"""
Unit tests for engine/sessions.py
Tests profile merging, message history and TTL eviction.
"""

from datetime import datetime, timedelta, timezone

import pytest
from engine.models import ProfileUpdate, RewardType, Role, Step
from engine.sessions import SessionStore, SessionSweeper


class FakeClock:
    """Manually advanced clock for deterministic expiry tests."""

    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(retention=timedelta(hours=24), clock=clock)


class TestProfileUpdates:
    """Tests for SessionStore.update_profile."""

    def test_scalars_overwrite(self, store):
        store.create("s1")
        store.update_profile("s1", ProfileUpdate(monthly_income=50000))
        store.update_profile("s1", ProfileUpdate(monthly_income=70000, credit_score=720))

        profile = store.get("s1").profile
        assert profile.monthly_income == 70000
        assert profile.credit_score == 720

    def test_spending_merges_per_category(self, store):
        store.create("s1")
        store.update_profile("s1", ProfileUpdate(spending={"dining": 5000, "fuel": 2000}))
        store.update_profile("s1", ProfileUpdate(spending={"fuel": 3000}))

        spending = store.get("s1").profile.spending_habits
        assert spending["dining"] == 5000
        assert spending["fuel"] == 3000
        assert spending["travel"] == 0

    def test_preferences_merge_field_by_field(self, store):
        store.create("s1")
        store.update_profile("s1", ProfileUpdate(reward_type=RewardType.CASHBACK))
        store.update_profile("s1", ProfileUpdate(max_annual_fee=1000))

        preferences = store.get("s1").profile.preferences
        assert preferences.reward_type == RewardType.CASHBACK
        assert preferences.max_annual_fee == 1000

    def test_completeness_recomputed(self, store):
        store.create("s1")
        store.update_profile("s1", ProfileUpdate(monthly_income=50000, credit_score=700))
        assert not store.get("s1").is_profile_complete

        store.update_profile("s1", ProfileUpdate(spending={"online": 4000}, reward_type=RewardType.POINTS))
        assert store.get("s1").is_profile_complete

    def test_unknown_session(self, store):
        assert store.update_profile("missing", ProfileUpdate(monthly_income=50000)) is None
        assert store.append_message("missing", Role.USER, "hi") is None


class TestSessionLifecycle:
    """Tests for create / get_or_create / delete and message history."""

    def test_create_replaces_existing(self, store):
        store.create("s1")
        store.update_profile("s1", ProfileUpdate(monthly_income=50000))

        fresh = store.create("s1")

        assert fresh.profile.monthly_income is None
        assert len(store) == 1

    def test_get_or_create_reuses(self, store):
        first = store.get_or_create("s1")

        assert store.get_or_create("s1") is first

    def test_history_is_append_only_and_ordered(self, store, clock):
        store.create("s1")
        store.append_message("s1", Role.ASSISTANT, "Hello")
        clock.advance(seconds=5)
        store.append_message("s1", Role.USER, "50k")

        history = store.get("s1").chat_history
        assert [(m.role, m.text) for m in history] == [(Role.ASSISTANT, "Hello"), (Role.USER, "50k")]
        assert history[1].timestamp > history[0].timestamp

    def test_step_and_questions(self, store):
        store.create("s1")
        store.set_step("s1", Step.INCOME)
        store.mark_question_asked("s1", Step.INCOME)

        session = store.get("s1")
        assert session.current_step == Step.INCOME
        assert session.to_dict()["questionsAsked"] == ["income"]

    def test_delete(self, store):
        store.create("s1")

        assert store.delete("s1") is True
        assert store.delete("s1") is False
        assert "s1" not in store


class TestExpiry:
    """Tests for sweep_expired and stats."""

    def test_sweep_evicts_only_stale_sessions(self, store, clock):
        store.create("old")
        clock.advance(hours=20)
        store.create("recent")
        clock.advance(hours=5)

        evicted = store.sweep_expired()

        assert evicted == 1
        assert "old" not in store
        assert "recent" in store

    def test_activity_extends_lifetime(self, store, clock):
        store.create("s1")
        clock.advance(hours=23)
        store.append_message("s1", Role.USER, "still here")
        clock.advance(hours=2)

        assert store.sweep_expired() == 0

    def test_stats(self, store, clock):
        store.create("a")
        clock.advance(hours=2)
        store.create("b")
        store.update_profile(
            "b",
            ProfileUpdate(
                monthly_income=50000,
                credit_score=700,
                spending={"dining": 1000},
                reward_type=RewardType.CASHBACK,
            ),
        )

        assert store.stats() == {"totalSessions": 2, "activeInLastHour": 1, "completedProfiles": 1}


class TestSessionSweeper:
    """Tests for the periodic sweeper."""

    def test_start_and_stop(self, store):
        sweeper = SessionSweeper(store, interval_seconds=3600)

        sweeper.start()
        assert sweeper.running

        sweeper.stop()
        assert not sweeper.running

    def test_run_sweeps_and_reschedules(self, store, clock):
        store.create("old")
        clock.advance(hours=30)
        sweeper = SessionSweeper(store, interval_seconds=3600)

        sweeper._run()
        try:
            assert "old" not in store
            assert sweeper.running
        finally:
            sweeper.stop()
