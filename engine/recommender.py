"""
Recommendation engine with weighted multi-factor scoring.
Filters the catalog by hard eligibility constraints, scores the survivors
against a user profile and attaches short reasons to choose each card.
"""

import logging
from typing import Optional

from engine.catalog import CardCatalog, CardFilter, calculate_annual_reward, parse_reward_rate
from engine.models import CardCategory, CardRecord, RewardType, ScoredCard, UserProfile

logger = logging.getLogger(__name__)


# Recommendation policy configuration
RECOMMENDATION_CONFIG = {
    "max_recommendations": 5,
    "max_reasons": 4,
    "weights": {"reward": 0.40, "preference": 0.25, "value": 0.20, "feature": 0.15},
    # Assumed ceiling reward rate (in %) used to normalize reward alignment
    "max_reward_rate": 6.0,
    "value_shift": 5000,
    "value_range": 15000,
    "high_value_threshold": 5000,
    "reason_rate_threshold": 3,
    "fallback_limit": 3,
    "fallback_max_min_income": 300000,
    "fallback_max_min_credit_score": 650,
    "fallback_score": 0.6,
}

MAJOR_ISSUERS = ("HDFC Bank", "ICICI Bank", "Axis Bank", "SBI", "Kotak Mahindra Bank")
PREMIUM_CATEGORIES = (CardCategory.PREMIUM.value, CardCategory.SUPER_PREMIUM.value)

FALLBACK_REASONS = ("Good entry-level option", "Easy approval process", "Build credit history")

# Category shortcuts offered by the "recommend by category" view
CATEGORY_FILTERS = {
    "cashback": lambda card: card.reward_type == RewardType.CASHBACK,
    "travel": lambda card: "Travel" in card.best_for,
    "dining": lambda card: "Dining" in card.best_for,
    "fuel": lambda card: "Fuel" in card.best_for,
    "premium": lambda card: card.category in PREMIUM_CATEGORIES,
    "free": lambda card: card.annual_fee == 0,
}


class RecommendationEngine:
    """
    Scores catalog cards against a user profile.

    Usage:
        engine = RecommendationEngine(CardCatalog.load())
        top_cards = engine.generate_recommendations(profile)
    """

    def __init__(self, catalog: CardCatalog, config: Optional[dict] = None):
        self.catalog = catalog
        self.config = config or RECOMMENDATION_CONFIG

    def generate_recommendations(self, profile: UserProfile) -> list[ScoredCard]:
        """
        Rank eligible cards for a profile.

        Returns:
            At most 5 ScoredCard sorted by descending score, or the entry-level
            fallback list when no card passes the eligibility filter
        """
        eligible = self.eligible_cards(profile)
        if not eligible:
            logger.info("No eligible cards for profile, using entry-level fallback")
            return self.fallback_recommendations(profile)

        scored = [self.score_card(card, profile) for card in eligible]
        # sorted() is stable, so equal scores keep catalog order
        ranked = sorted(scored, key=lambda scored_card: scored_card.score, reverse=True)
        return ranked[: self.config["max_recommendations"]]

    def eligible_cards(self, profile: UserProfile) -> list[CardRecord]:
        """
        Apply the hard constraints: income, credit score, fee ceiling, reward type.
        An unknown credit score skips the score check.
        """
        annual_income = (profile.monthly_income or 0) * 12
        credit_score = profile.numeric_credit_score
        preferences = profile.preferences

        eligible = []
        for card in self.catalog.get_all():
            if card.eligibility.min_income > annual_income:
                continue
            if credit_score is not None and credit_score < card.eligibility.min_credit_score:
                continue
            if preferences.max_annual_fee is not None and card.annual_fee > preferences.max_annual_fee:
                continue
            if preferences.reward_type is not None and card.reward_type != preferences.reward_type:
                continue
            eligible.append(card)
        return eligible

    def score_card(self, card: CardRecord, profile: UserProfile) -> ScoredCard:
        """Score one card and attach its reward metrics and reasons."""
        return ScoredCard(
            card=card,
            score=self.calculate_score(card, profile),
            estimated_annual_reward=calculate_annual_reward(card, profile.spending_habits),
            net_value=self.net_value(card, profile),
            reasons_to_choose=self.generate_reasons(card, profile),
        )

    def calculate_score(self, card: CardRecord, profile: UserProfile) -> float:
        """
        Weighted sum of four 0-1 factors, scaled to 0-100.

        Weights:
        - reward alignment 40%
        - preference match 25%
        - value for money 20%
        - features 15%
        """
        weights = self.config["weights"]
        score = (
            self.reward_alignment_score(card, profile.spending_habits) * weights["reward"]
            + self.preference_score(card, profile) * weights["preference"]
            + self.value_score(card, profile) * weights["value"]
            + self.feature_score(card) * weights["feature"]
        )
        return round(score * 100, 2)

    def reward_alignment_score(self, card: CardRecord, spending: dict[str, int]) -> float:
        total_spending = sum(spending.values())
        if total_spending <= 0:
            return 0.5

        weighted_rate = 0.0
        for category, amount in spending.items():
            if amount <= 0:
                continue
            weight = amount / total_spending
            numeric_rate = parse_reward_rate(card.rate_for(category))
            # Points rates are put on a rupee-equivalent basis
            if card.reward_type == RewardType.POINTS:
                numeric_rate *= card.point_value
            weighted_rate += weight * numeric_rate

        return max(0.0, min(weighted_rate / self.config["max_reward_rate"], 1.0))

    def preference_score(self, card: CardRecord, profile: UserProfile) -> float:
        preferences = profile.preferences
        score = 0.0
        max_score = 0.0

        if preferences.reward_type is not None:
            max_score += 0.4
            if card.reward_type == preferences.reward_type:
                score += 0.4

        if preferences.benefits:
            max_score += 0.6
            perks_text = " ".join(card.special_perks).lower()
            matches = sum(1 for benefit in preferences.benefits if benefit.lower() in perks_text)
            score += (matches / len(preferences.benefits)) * 0.6

        return score / max_score if max_score > 0 else 0.5

    def value_score(self, card: CardRecord, profile: UserProfile) -> float:
        shifted = max(0, self.net_value(card, profile) + self.config["value_shift"])
        return min(shifted / self.config["value_range"], 1.0)

    def feature_score(self, card: CardRecord) -> float:
        score = 0.0
        if card.category in PREMIUM_CATEGORIES:
            score += 0.3
        if card.issuer in MAJOR_ISSUERS:
            score += 0.2
        if card.annual_fee == 0:
            score += 0.3
        elif card.annual_fee <= 1000:
            score += 0.2
        if _has_perk(card, "welcome"):
            score += 0.2
        return min(score, 1.0)

    def net_value(self, card: CardRecord, profile: UserProfile) -> int:
        return calculate_annual_reward(card, profile.spending_habits) - card.annual_fee

    def generate_reasons(self, card: CardRecord, profile: UserProfile) -> list[str]:
        """
        Short reasons to choose a card, most specific first, at most 4.

        Order: top-category rate callouts, fee, lounge, welcome bonus,
        high net value, preference match.
        """
        reasons = []
        preferences = profile.preferences

        top_categories = sorted(
            (item for item in profile.spending_habits.items() if item[1] > 0),
            key=lambda item: item[1],
            reverse=True,
        )[:2]
        for category, _ in top_categories:
            rate_descriptor = card.reward_rate.get(category)
            if not rate_descriptor or category == "default":
                continue
            rate = parse_reward_rate(rate_descriptor)
            if rate >= self.config["reason_rate_threshold"]:
                unit = "%" if card.reward_type == RewardType.CASHBACK else "x"
                reasons.append(f"Excellent {rate:g}{unit} rewards on {category}")

        if card.annual_fee == 0:
            reasons.append("Lifetime free with no annual fee")
        elif card.fee_waiver and card.fee_waiver != "None":
            reasons.append(f"Annual fee waived with {card.fee_waiver.lower()}")

        if _has_perk(card, "lounge"):
            reasons.append("Airport lounge access included")

        if _has_perk(card, "welcome"):
            reasons.append("Attractive welcome bonus")

        net_value = self.net_value(card, profile)
        if net_value > self.config["high_value_threshold"]:
            reasons.append(f"High value card with ₹{net_value:,} annual benefit")

        if preferences.reward_type is not None and card.reward_type == preferences.reward_type:
            reasons.append(f"Matches your preference for {preferences.reward_type.value.lower()}")

        return reasons[: self.config["max_reasons"]]

    def fallback_recommendations(self, profile: UserProfile) -> list[ScoredCard]:
        """Entry-level cards offered when the eligibility filter leaves nothing."""
        entry_level = self.catalog.filter(
            CardFilter(
                min_income=self.config["fallback_max_min_income"],
                credit_score=self.config["fallback_max_min_credit_score"],
            )
        )[: self.config["fallback_limit"]]

        return [
            ScoredCard(
                card=card,
                score=self.config["fallback_score"],
                estimated_annual_reward=calculate_annual_reward(card, profile.spending_habits),
                net_value=self.net_value(card, profile),
                reasons_to_choose=list(FALLBACK_REASONS),
            )
            for card in entry_level
        ]

    def cards_for_category(self, category: str, profile: UserProfile) -> list[ScoredCard]:
        """
        Cards matching a category shortcut (cashback, travel, dining, fuel,
        premium, free), scored for the profile, best first.

        Raises:
            ValueError: If the category is not a known shortcut
        """
        key = category.lower()
        if key not in CATEGORY_FILTERS:
            raise ValueError(f"Invalid category: {category}. Must be one of: {', '.join(CATEGORY_FILTERS)}")

        matching = [card for card in self.catalog.get_all() if CATEGORY_FILTERS[key](card)]
        scored = [self.score_card(card, profile) for card in matching]
        return sorted(scored, key=lambda scored_card: scored_card.score, reverse=True)


def _has_perk(card: CardRecord, keyword: str) -> bool:
    return any(keyword in perk.lower() for perk in card.special_perks)
