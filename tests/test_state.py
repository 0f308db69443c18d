"""
Unit tests for engine/state.py
Tests profile completeness and the conversation step transitions.
"""

import itertools

import pytest
from engine.models import RewardType, Step, UNKNOWN_CREDIT_SCORE, UserProfile
from engine.sessions import SessionStore
from engine.state import STEP_ORDER, extract_update, is_profile_complete, missing_fields, next_step


STEP_RANK = {step: rank for rank, step in enumerate(STEP_ORDER + (Step.COMPLETE,))}


def complete_profile() -> UserProfile:
    profile = UserProfile(monthly_income=80000, credit_score=750)
    profile.spending_habits["dining"] = 5000
    profile.preferences.reward_type = RewardType.CASHBACK
    return profile


class TestCompleteness:
    """Tests for missing_fields / is_profile_complete."""

    def test_empty_profile_misses_everything(self):
        assert missing_fields(UserProfile()) == [
            "monthly income",
            "credit score",
            "spending habits",
            "reward preference",
        ]

    def test_complete_profile(self):
        assert is_profile_complete(complete_profile())

    def test_unknown_credit_score_counts_as_answered(self):
        profile = complete_profile()
        profile.credit_score = UNKNOWN_CREDIT_SCORE

        assert is_profile_complete(profile)

    def test_zero_spending_is_missing(self):
        profile = complete_profile()
        profile.spending_habits["dining"] = 0

        assert missing_fields(profile) == ["spending habits"]

    @pytest.mark.parametrize(
        "income, credit_score, spending, reward_type",
        list(itertools.product(
            [None, 60000],
            [None, 720, UNKNOWN_CREDIT_SCORE],
            [0, 4000],
            [None, RewardType.POINTS],
        )),
    )
    def test_complete_iff_every_field_present(self, income, credit_score, spending, reward_type):
        profile = UserProfile(monthly_income=income, credit_score=credit_score)
        profile.spending_habits["fuel"] = spending
        profile.preferences.reward_type = reward_type

        expected = all([income, credit_score is not None, spending > 0, reward_type is not None])
        assert is_profile_complete(profile) == expected
        assert (missing_fields(profile) == []) == expected


class TestNextStep:
    """Tests for next_step."""

    def test_advances_one_step_at_a_time(self):
        profile = UserProfile()
        for current, expected in zip(STEP_ORDER, STEP_ORDER[1:]):
            assert next_step(profile, current) == expected

    def test_advances_even_when_field_not_collected(self):
        """The step moves on regardless of which field is missing."""
        assert next_step(UserProfile(), Step.INCOME) == Step.CREDIT_SCORE

    def test_stays_at_preferences_until_complete(self):
        assert next_step(UserProfile(monthly_income=50000), Step.PREFERENCES) == Step.PREFERENCES

    def test_complete_profile_jumps_to_complete(self):
        assert next_step(complete_profile(), Step.SPENDING) == Step.COMPLETE

    def test_complete_is_terminal(self):
        assert next_step(UserProfile(), Step.COMPLETE) == Step.COMPLETE


class TestExtractUpdate:
    """Tests for extract_update."""

    @pytest.mark.parametrize("step", [Step.GREETING, Step.INCOME])
    def test_income_steps(self, step):
        update = extract_update(step, "I make 60k")

        assert update.monthly_income == 60000
        assert update.credit_score is None

    def test_credit_score_step(self):
        assert extract_update(Step.CREDIT_SCORE, "720").credit_score == 720

    def test_spending_step(self):
        assert extract_update(Step.SPENDING, "fuel 4000").spending == {"fuel": 4000}

    def test_preferences_step_with_fee(self):
        update = extract_update(Step.PREFERENCES, "cashback, no annual fee")

        assert update.reward_type == RewardType.CASHBACK
        assert update.max_annual_fee == 0

    def test_fee_without_fee_mention_is_not_extracted(self):
        update = extract_update(Step.PREFERENCES, "cashback up to 500")

        assert update.max_annual_fee is None

    def test_free_perk_does_not_set_fee_ceiling(self):
        update = extract_update(Step.PREFERENCES, "I want free lounge access")

        assert update.benefits == ["lounge"]
        assert update.max_annual_fee is None

    def test_lifetime_free_sets_zero_fee(self):
        assert extract_update(Step.PREFERENCES, "a lifetime free card with points").max_annual_fee == 0

    def test_nothing_extracted(self):
        assert extract_update(Step.INCOME, "hello there") is None

    def test_complete_step_extracts_nothing(self):
        assert extract_update(Step.COMPLETE, "50000 rupees") is None


class TestConversationProgress:
    """Drives whole message sequences through extraction and step transitions."""

    @pytest.mark.parametrize(
        "messages",
        [
            ["I earn 80000 rupees", "80000 rupees", "750", "dining 5000", "cashback please"],
            ["hi", "no idea", "maybe", "not telling", "hmm", "points", "still nothing"],
            ["50k", "I don't know my score", "fuel 3000", "lounge access", "no fee", "points"],
            ["2 lakh", "excellent", "groceries 9000 travel 4000", "points", "thanks", "bye"],
        ],
    )
    def test_step_never_moves_backward(self, messages):
        store = SessionStore()
        session = store.create("walk")

        for text in messages:
            handled = session.current_step
            if handled != Step.COMPLETE:
                update = extract_update(handled, text)
                if update is not None:
                    store.update_profile("walk", update)
            store.set_step("walk", next_step(session.profile, handled))

            assert STEP_RANK[session.current_step] >= STEP_RANK[handled]
            if session.current_step == Step.COMPLETE:
                assert is_profile_complete(session.profile)

    def test_full_sequence_reaches_complete(self):
        store = SessionStore()
        session = store.create("walk")

        for text in ["I earn 80000 rupees", "80000 rupees", "750", "dining 5000", "cashback please"]:
            update = extract_update(session.current_step, text)
            if update is not None:
                store.update_profile("walk", update)
            store.set_step("walk", next_step(session.profile, session.current_step))

        assert session.current_step == Step.COMPLETE
