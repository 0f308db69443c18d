"""
Unit tests for engine/extractors.py
Tests free-text extraction of income, credit score, spending and preferences.
"""

import pytest
from engine.extractors import (
    extract_annual_fee,
    extract_credit_score,
    extract_income,
    extract_preferences,
    extract_spending,
)
from engine.models import RewardType, UNKNOWN_CREDIT_SCORE


class TestExtractIncome:
    """Tests for extract_income."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("50000 rupees", 50000),
            ("₹75000", 75000),
            ("I earn 50k a month", 50000),
            ("around 80 thousand", 80000),
            ("2 lakh", 200000),
            ("₹1,00,000 per month", 100000),
            ("my salary is 45000", 45000),
        ],
    )
    def test_recognized_formats(self, text, expected):
        assert extract_income(text) == expected

    def test_below_minimum_is_rejected(self):
        """A value under ₹15,000 is not treated as a monthly income."""
        assert extract_income("10000 rupees") is None

    def test_short_bare_number_is_ignored(self):
        assert extract_income("500") is None

    @pytest.mark.parametrize("text", ["15000000", "15000000 rupees"])
    def test_above_maximum_is_rejected(self, text):
        assert extract_income(text) is None

    def test_no_number(self):
        assert extract_income("I'd rather not say") is None

    def test_non_string_input(self):
        assert extract_income(None) is None


class TestExtractCreditScore:
    """Tests for extract_credit_score."""

    def test_numeric_score(self):
        assert extract_credit_score("My score is 750") == 750

    def test_unknown_phrases(self):
        assert extract_credit_score("I don't know my score") == UNKNOWN_CREDIT_SCORE
        assert extract_credit_score("not sure") == UNKNOWN_CREDIT_SCORE

    def test_descriptive_scores(self):
        assert extract_credit_score("it's excellent") == 800
        assert extract_credit_score("very good I think") == 800
        assert extract_credit_score("good") == 700
        assert extract_credit_score("average") == 600
        assert extract_credit_score("pretty bad") == 500

    def test_descriptive_label_wins_over_number(self):
        """Quick-reply text such as "750-800 (Excellent)" maps through its label."""
        assert extract_credit_score("750-800 (Excellent)") == 800

    def test_out_of_range_number(self):
        assert extract_credit_score("my score is 250") is None

    def test_nothing_recognized(self):
        assert extract_credit_score("hmm") is None


class TestExtractSpending:
    """Tests for extract_spending."""

    def test_multiple_categories(self):
        spending = extract_spending("dining ₹5,000, fuel 3000 and groceries 8000")

        assert spending == {"dining": 5000, "fuel": 3000, "groceries": 8000}

    def test_uncategorized_amount_goes_to_default(self):
        assert extract_spending("I spend about 20000 a month") == {"default": 20000}

    def test_no_amount(self):
        assert extract_spending("not much really") is None


class TestExtractPreferences:
    """Tests for extract_preferences and extract_annual_fee."""

    def test_cashback(self):
        signals = extract_preferences("I prefer cashback")

        assert signals.reward_type == RewardType.CASHBACK
        assert signals.benefits == ()

    def test_travel_implies_points_and_benefit(self):
        signals = extract_preferences("travel and lounge access")

        assert signals.reward_type == RewardType.POINTS
        assert signals.benefits == ("lounge", "travel")

    def test_nothing_relevant(self):
        assert extract_preferences("whatever works") is None

    def test_annual_fee(self):
        assert extract_annual_fee("no annual fee please") == 0
        assert extract_annual_fee("fee up to ₹1,000") == 1000
        assert extract_annual_fee("anything") is None

    @pytest.mark.parametrize("text", ["lifetime free card", "zero fee", "a fee-free card"])
    def test_zero_fee_phrases(self, text):
        assert extract_annual_fee(text) == 0

    def test_free_benefit_is_not_a_fee_ceiling(self):
        assert extract_annual_fee("free lounge access") is None
