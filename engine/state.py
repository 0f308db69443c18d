"""
Conversation state machine.
Deterministic and unit-testable: decides which fields are still missing,
what to ask next, and which extractor applies to a message at each step.
"""

from typing import Optional

from engine.extractors import (
    extract_annual_fee,
    extract_credit_score,
    extract_income,
    extract_preferences,
    extract_spending,
)
from engine.models import ProfileUpdate, Step, UserProfile


STEP_ORDER = (Step.GREETING, Step.INCOME, Step.CREDIT_SCORE, Step.SPENDING, Step.PREFERENCES)

# "free" alone is too loose ("free lounge access")
FEE_MENTIONS = ("fee", "free card", "lifetime free")


def has_income(profile: UserProfile) -> bool:
    return bool(profile.monthly_income) and profile.monthly_income > 0


def has_credit_score(profile: UserProfile) -> bool:
    return profile.credit_score is not None


def has_spending(profile: UserProfile) -> bool:
    return any(amount > 0 for amount in profile.spending_habits.values())


def has_reward_preference(profile: UserProfile) -> bool:
    return profile.preferences.reward_type is not None


_COMPLETENESS_CHECKS = (
    ("monthly income", has_income),
    ("credit score", has_credit_score),
    ("spending habits", has_spending),
    ("reward preference", has_reward_preference),
)


def missing_fields(profile: UserProfile) -> list[str]:
    """
    Names of the profile fields still needed before recommending.

    Example:
        >>> missing_fields(UserProfile())
        ['monthly income', 'credit score', 'spending habits', 'reward preference']
    """
    return [name for name, check in _COMPLETENESS_CHECKS if not check(profile)]


def is_profile_complete(profile: UserProfile) -> bool:
    return not missing_fields(profile)


def next_step(profile: UserProfile, current: Step) -> Step:
    """
    Decide the step after handling a message at `current`.

    Rules:
    - Profile complete -> COMPLETE (terminal)
    - Otherwise advance exactly one position along STEP_ORDER, regardless of
      which field is actually missing
    - At the last collecting step the conversation stays put until complete
    """
    if current == Step.COMPLETE or is_profile_complete(profile):
        return Step.COMPLETE

    index = STEP_ORDER.index(current)
    if index < len(STEP_ORDER) - 1:
        return STEP_ORDER[index + 1]
    return current


def _preferences_update(text: str) -> ProfileUpdate:
    update = ProfileUpdate()
    signals = extract_preferences(text)
    if signals is not None:
        update.reward_type = signals.reward_type
        update.benefits = list(signals.benefits) or None
    if any(mention in (text or "").lower() for mention in FEE_MENTIONS):
        update.max_annual_fee = extract_annual_fee(text)
    return update


# Step -> builder of the partial profile a message answers at that step
EXTRACTORS_BY_STEP = {
    Step.GREETING: lambda text: ProfileUpdate(monthly_income=extract_income(text)),
    Step.INCOME: lambda text: ProfileUpdate(monthly_income=extract_income(text)),
    Step.CREDIT_SCORE: lambda text: ProfileUpdate(credit_score=extract_credit_score(text)),
    Step.SPENDING: lambda text: ProfileUpdate(spending=extract_spending(text)),
    Step.PREFERENCES: _preferences_update,
}


def extract_update(step: Step, text: str) -> Optional[ProfileUpdate]:
    """
    Run the extractor for `step` over a user message.

    greeting and income both collect income. On the preferences step a
    message that mentions fees also sets the annual fee ceiling.

    Returns:
        ProfileUpdate with the extracted fields, or None when nothing was found
        (always None at the complete step)
    """
    extractor = EXTRACTORS_BY_STEP.get(step)
    if extractor is None:
        return None
    update = extractor(text)
    return None if update.is_empty() else update
