"""
Free-text field extractors.
Each extractor takes the raw user message and returns a typed value, or None
when nothing usable was found. Extractors never raise on malformed input.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from engine.models import CreditScore, RewardType, UNKNOWN_CREDIT_SCORE


MIN_MONTHLY_INCOME = 15_000
MAX_MONTHLY_INCOME = 10_000_000

MIN_CREDIT_SCORE = 300
MAX_CREDIT_SCORE = 900

KEYWORD_SPENDING_CATEGORIES = ("dining", "travel", "fuel", "groceries", "online")
BENEFIT_KEYWORDS = ("lounge", "travel", "dining", "fuel")

# Income patterns, tried in order; the first one that matches decides the candidate.
_INCOME_PATTERNS = (
    (re.compile(r"(\d{1,6})\s*(?:rupees?|rs|₹)", re.IGNORECASE), 1),
    (re.compile(r"₹\s*(\d{1,6})"), 1),
    (re.compile(r"(\d{1,3})\s*(?:k|thousand)", re.IGNORECASE), 1_000),
    (re.compile(r"(\d{1,2})\s*lakh", re.IGNORECASE), 100_000),
    (re.compile(r"\b(\d{4,6})\b"), 1),
)

_UNKNOWN_SCORE_PHRASES = ("don't know", "dont know", "don’t know", "unknown", "not sure", "no idea")

# Checked in order; "very good" must win over "good".
_DESCRIPTIVE_SCORES = (
    (("excellent", "very good"), 800),
    (("good",), 700),
    (("fair", "average"), 600),
    (("poor", "bad"), 500),
)

_SCORE_PATTERNS = (
    re.compile(r"\b(\d{3})\b"),
    re.compile(r"score.*?(\d{3})", re.IGNORECASE),
    re.compile(r"around.*?(\d{3})", re.IGNORECASE),
    re.compile(r"(\d{3}).*?range", re.IGNORECASE),
)
_THREE_DIGITS = re.compile(r"\d{3}")

_SPENDING_PATTERNS = {
    category: re.compile(rf"{category}[^\d]*₹?\s*(\d+)", re.IGNORECASE)
    for category in KEYWORD_SPENDING_CATEGORIES
}
_MONEY_AMOUNT = re.compile(r"₹?\s*(\d+)")
_ZERO_FEE_PHRASES = ("no fee", "no annual fee", "zero fee", "free card", "lifetime free", "fee free", "fee-free")

# Digit grouping commas ("₹1,00,000", "75,000")
_DIGIT_GROUPING = re.compile(r"(?<=\d),(?=\d)")


@dataclass(frozen=True)
class PreferenceSignals:
    """Reward type and benefit keywords spotted in a message."""
    reward_type: Optional[RewardType] = None
    benefits: tuple[str, ...] = field(default_factory=tuple)


def _normalize(text: Optional[str]) -> str:
    if not isinstance(text, str):
        return ""
    return _DIGIT_GROUPING.sub("", text)


def extract_income(text: str) -> Optional[int]:
    """
    Extract a monthly income in rupees.

    Recognizes "50000 rupees", "₹75000", "50k", "2 lakh" and, as a last
    resort, a bare 4-6 digit number. Values outside [15,000, 10,000,000]
    are rejected.

    Example:
        >>> extract_income("I earn 50k a month")
        50000
        >>> extract_income("500") is None
        True
    """
    message = _normalize(text)
    amount = None
    for pattern, multiplier in _INCOME_PATTERNS:
        match = pattern.search(message)
        if match:
            amount = int(match.group(1)) * multiplier
            if amount:
                break

    if amount and MIN_MONTHLY_INCOME <= amount <= MAX_MONTHLY_INCOME:
        return amount
    return None


def extract_credit_score(text: str) -> Optional[CreditScore]:
    """
    Extract a credit score: an int in [300, 900], or "unknown".

    Descriptive answers map to fixed points (excellent -> 800, good -> 700,
    fair -> 600, poor -> 500).
    """
    message = _normalize(text)
    lowered = message.lower()

    if any(phrase in lowered for phrase in _UNKNOWN_SCORE_PHRASES):
        return UNKNOWN_CREDIT_SCORE

    for keywords, score in _DESCRIPTIVE_SCORES:
        if any(keyword in lowered for keyword in keywords):
            return score

    for pattern in _SCORE_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        score = int(_THREE_DIGITS.search(match.group(0)).group(0))
        if MIN_CREDIT_SCORE <= score <= MAX_CREDIT_SCORE:
            return score
    return None


def extract_spending(text: str) -> Optional[dict[str, int]]:
    """
    Extract monthly spending per category.

    Each known category keyword may be followed by an amount
    ("dining ₹5,000, fuel 3000"). When no category matches, the first
    amount in the message is recorded under "default".

    Returns:
        category -> amount, or None when no amount was found at all
    """
    message = _normalize(text)
    spending = {}
    for category, pattern in _SPENDING_PATTERNS.items():
        match = pattern.search(message)
        if match:
            spending[category] = int(match.group(1))

    if not spending:
        match = _MONEY_AMOUNT.search(message)
        if match:
            spending["default"] = int(match.group(1))

    return spending or None


def extract_preferences(text: str) -> Optional[PreferenceSignals]:
    """Spot reward-type and benefit keywords. None when neither is present."""
    lowered = _normalize(text).lower()

    reward_type = None
    if "cashback" in lowered:
        reward_type = RewardType.CASHBACK
    elif "points" in lowered or "travel" in lowered:
        reward_type = RewardType.POINTS

    benefits = tuple(keyword for keyword in BENEFIT_KEYWORDS if keyword in lowered)

    if reward_type is None and not benefits:
        return None
    return PreferenceSignals(reward_type=reward_type, benefits=benefits)


def extract_annual_fee(text: str) -> Optional[int]:
    """Annual fee ceiling: 0 for "no fee"/"lifetime free", else the first amount mentioned."""
    message = _normalize(text)
    lowered = message.lower()
    if any(phrase in lowered for phrase in _ZERO_FEE_PHRASES):
        return 0

    match = _MONEY_AMOUNT.search(message)
    if match:
        return int(match.group(1))
    return None
