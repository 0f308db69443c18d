from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from app.schemas.api_schemas import (
    CardExplanationResponse,
    CategoryRecommendationResponse,
    CompareRecommendationsResponse,
    ComparisonInsights,
    ProfileIn,
    RecommendationResponse,
)
from app.services.card_service import CardService, validate_card_ids
from app.services.errors import NotFoundError, ValidationError
from app.services.phrasing_service import PhrasingChain, format_inr
from engine.models import ScoredCard, UserProfile
from engine.recommender import CATEGORY_FILTERS, RecommendationEngine
from engine.sessions import SessionStore

logger = logging.getLogger(__name__)

CATEGORY_RESULT_LIMIT = 10
SUMMARY_PERKS = 3


def is_valid_profile(profile: Optional[UserProfile]) -> bool:
    """A profile can be scored once income is known and some spending is positive."""
    return bool(
        profile is not None
        and profile.monthly_income
        and any(amount > 0 for amount in profile.spending_habits.values())
    )


def _summary(scored: ScoredCard) -> Dict[str, Any]:
    card = scored.card
    return {
        "id": card.id,
        "name": card.name,
        "issuer": card.issuer,
        "cardImage": card.card_image,
        "annualFee": card.annual_fee,
        "rewardType": card.reward_type.value,
        "score": scored.score,
        "estimatedAnnualReward": scored.estimated_annual_reward,
        "netValue": scored.net_value,
        "reasonsToChoose": list(scored.reasons_to_choose),
        "applyLink": card.apply_link,
        "category": card.category,
        "specialPerks": list(card.special_perks[:SUMMARY_PERKS]),
    }


def _first_max(cards: List[ScoredCard], key) -> ScoredCard:
    # Ties keep the earliest card
    best = cards[0]
    for scored in cards[1:]:
        if key(scored) > key(best):
            best = scored
    return best


def comparison_insights(cards: List[ScoredCard], profile: UserProfile) -> ComparisonInsights:
    """
    Best value, best rewards, lowest fee and highest score among compared cards,
    plus a short narrative summary.
    """
    best_value = _first_max(cards, lambda c: c.net_value)
    best_rewards = _first_max(cards, lambda c: c.estimated_annual_reward)
    lowest_fee = _first_max(cards, lambda c: -c.card.annual_fee)
    highest_score = _first_max(cards, lambda c: c.score)

    summary = []
    if best_value.net_value > 0:
        summary.append(
            f"{best_value.card.name} offers the best value with "
            f"{format_inr(best_value.net_value)} net annual benefit"
        )
    if lowest_fee.card.annual_fee == 0:
        summary.append(f"{lowest_fee.card.name} is free for life with no annual fee")
    summary.append(
        f"Based on your {format_inr(profile.total_spending)} monthly spending, "
        f"{best_rewards.card.name} maximizes your rewards"
    )

    return ComparisonInsights(
        best_value=best_value.to_dict(),
        best_rewards=best_rewards.to_dict(),
        lowest_fee=lowest_fee.to_dict(),
        highest_score=highest_score.to_dict(),
        summary=summary,
    )


class RecommendationService:
    """
    Profile-driven recommendation views.

    Usage:
        service = RecommendationService(engine, card_service, store, phrasing)
        response = service.recommend(ProfileIn(monthly_income=80000, spending_habits={"dining": 5000}))
    """

    def __init__(
        self,
        engine: RecommendationEngine,
        card_service: CardService,
        store: SessionStore,
        phrasing: PhrasingChain,
    ) -> None:
        self.engine = engine
        self.card_service = card_service
        self.store = store
        self.phrasing = phrasing

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_profile(self, profile_in: Optional[ProfileIn]) -> UserProfile:
        profile = profile_in.to_profile() if profile_in is not None else None
        if not is_valid_profile(profile):
            raise ValidationError(
                "Please provide a complete user profile.",
                {"required": ["monthlyIncome", "spendingHabits with a positive amount"]},
            )
        return profile

    def _public_profile(self, profile: UserProfile) -> Dict[str, Any]:
        data = profile.to_dict()
        return {
            "monthlyIncome": data["monthlyIncome"],
            "creditScore": data["creditScore"],
            "preferences": data["preferences"],
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def recommend(
        self,
        profile_in: Optional[ProfileIn] = None,
        session_id: Optional[str] = None,
    ) -> RecommendationResponse:
        """
        Rank cards for a completed session's profile, or for the submitted profile
        when the session is unknown or still incomplete.
        """
        profile = None
        session = self.store.get(session_id) if session_id else None
        if session is not None and session.is_profile_complete:
            profile = session.profile
        if profile is None:
            profile = self._require_profile(profile_in)

        recommendations = self.engine.generate_recommendations(profile)
        logger.info(f"Generated {len(recommendations)} recommendations (session={session_id})")
        if not recommendations:
            raise NotFoundError("No suitable credit cards found for your profile.", {})

        explanation = self.phrasing.generate_recommendation_explanation(recommendations, profile)
        # Only a session's own completed profile is cached back onto it
        if session is not None and profile is session.profile:
            self.store.set_recommendations(session.id, recommendations)

        return RecommendationResponse(
            explanation=explanation,
            user_profile=self._public_profile(profile),
            recommendations=[_summary(scored) for scored in recommendations],
        )

    def recommend_by_category(
        self, category: str, profile_in: Optional[ProfileIn]
    ) -> CategoryRecommendationResponse:
        key = category.lower()
        if key not in CATEGORY_FILTERS:
            raise ValidationError(
                f"Category must be one of: {', '.join(CATEGORY_FILTERS)}.",
                {"field": "category", "value": category},
            )
        profile = self._require_profile(profile_in)

        cards = self.engine.cards_for_category(key, profile)
        if not cards:
            raise NotFoundError(f"No {key} cards found matching your profile.", {"category": key})

        return CategoryRecommendationResponse(
            category=key,
            count=len(cards),
            data=[scored.to_dict() for scored in cards[:CATEGORY_RESULT_LIMIT]],
        )

    def compare(
        self, card_ids: Optional[List[str]], profile_in: Optional[ProfileIn]
    ) -> CompareRecommendationsResponse:
        """Recompute score, reward and reasons of 2-5 cards for one profile."""
        card_ids = validate_card_ids(card_ids)
        profile = self._require_profile(profile_in)
        cards = self.card_service.get_cards(card_ids)

        scored = [self.engine.score_card(card, profile) for card in cards]
        return CompareRecommendationsResponse(
            user_profile={"monthlyIncome": profile.monthly_income, "creditScore": profile.credit_score},
            comparison=[card.to_dict() for card in scored],
            insights=comparison_insights(scored, profile),
        )

    def explain_card(self, card_id: str, profile_in: Optional[ProfileIn]) -> CardExplanationResponse:
        profile = self._require_profile(profile_in)
        card = self.card_service.get_card_record(card_id)

        scored = self.engine.score_card(card, profile)
        explanation = self.phrasing.generate_recommendation_explanation([scored], profile)
        return CardExplanationResponse(
            card={"id": card.id, "name": card.name, "issuer": card.issuer},
            metrics={
                "score": scored.score,
                "estimatedAnnualReward": scored.estimated_annual_reward,
                "netValue": scored.net_value,
                "reasonsToChoose": list(scored.reasons_to_choose),
            },
            explanation=explanation,
        )
