from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.services.errors import NotFoundError, ValidationError
from engine.catalog import (
    MIN_SEARCH_QUERY_LENGTH,
    CardCatalog,
    CardFilter,
    calculate_annual_reward,
    compare_cards,
    is_spending_category,
    reward_breakdown,
)
from engine.models import SPENDING_CATEGORIES, CardRecord, RewardType

MIN_COMPARE_CARDS = 2
MAX_COMPARE_CARDS = 5


def validate_card_ids(card_ids: Optional[List[str]]) -> List[str]:
    if not card_ids or len(card_ids) < MIN_COMPARE_CARDS:
        raise ValidationError(
            f"Please provide at least {MIN_COMPARE_CARDS} card IDs to compare.",
            {"field": "cardIds", "count": len(card_ids or [])},
        )
    if len(card_ids) > MAX_COMPARE_CARDS:
        raise ValidationError(
            f"You can compare at most {MAX_COMPARE_CARDS} cards at once.",
            {"field": "cardIds", "count": len(card_ids)},
        )
    return list(card_ids)


class CardService:
    """Read-only queries over the card catalog."""

    def __init__(self, catalog: CardCatalog) -> None:
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def get_card_record(self, card_id: str) -> CardRecord:
        card = self.catalog.get_by_id(card_id)
        if card is None:
            raise NotFoundError(f"Credit card with ID '{card_id}' does not exist.", {"card_id": card_id})
        return card

    def get_cards(self, card_ids: List[str]) -> List[CardRecord]:
        """Resolve every id or fail listing the unknown ones."""
        cards = [self.catalog.get_by_id(card_id) for card_id in card_ids]
        missing = [card_id for card_id, card in zip(card_ids, cards) if card is None]
        if missing:
            raise NotFoundError("One or more card IDs are invalid.", {"missing": missing})
        return cards

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def list_cards(self) -> List[Dict[str, Any]]:
        return [card.to_dict() for card in self.catalog.get_all()]

    def get_card(self, card_id: str) -> Dict[str, Any]:
        return self.get_card_record(card_id).to_dict()

    def filter_cards(
        self,
        min_income: Optional[int] = None,
        credit_score: Optional[int] = None,
        category: Optional[str] = None,
        max_annual_fee: Optional[int] = None,
        reward_type: Optional[str] = None,
        issuer: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Filter by any combination of criteria; absent criteria do not filter.

        category is a comma separated list of card categories ("Premium,Travel").
        """
        criteria = CardFilter(
            min_income=min_income,
            credit_score=credit_score,
            category=[c.strip() for c in category.split(",") if c.strip()] if category else None,
            max_annual_fee=max_annual_fee,
            reward_type=self._parse_reward_type(reward_type),
            issuer=issuer,
        )
        cards = self.catalog.filter(criteria)
        applied = {
            "minIncome": min_income,
            "creditScore": credit_score,
            "category": criteria.category,
            "maxAnnualFee": max_annual_fee,
            "rewardType": reward_type,
            "issuer": issuer,
        }
        return {
            "criteria": {key: value for key, value in applied.items() if value is not None},
            "data": [card.to_dict() for card in cards],
        }

    def _parse_reward_type(self, reward_type: Optional[str]) -> Optional[RewardType]:
        if not reward_type:
            return None
        for option in RewardType:
            if option.value.lower() == reward_type.strip().lower():
                return option
        raise ValidationError(
            f"Invalid reward type '{reward_type}'. Must be one of: {', '.join(t.value for t in RewardType)}.",
            {"field": "rewardType"},
        )

    def search_cards(self, query: Optional[str]) -> List[Dict[str, Any]]:
        query = (query or "").strip()
        if len(query) < MIN_SEARCH_QUERY_LENGTH:
            raise ValidationError(
                f"Search query must be at least {MIN_SEARCH_QUERY_LENGTH} characters long.",
                {"field": "q"},
            )
        return [card.to_dict() for card in self.catalog.search(query)]

    def cards_by_spending_category(self, category: str) -> List[Dict[str, Any]]:
        key = category.lower()
        if not is_spending_category(key):
            raise ValidationError(
                f"Invalid category '{category}'. Must be one of: {', '.join(SPENDING_CATEGORIES)}.",
                {"field": "category"},
            )
        return [card.to_dict() for card in self.catalog.get_by_spending_category(key)]

    def compare(self, card_ids: Optional[List[str]]) -> Dict[str, Any]:
        cards = self.get_cards(validate_card_ids(card_ids))
        return compare_cards(cards)

    def calculate_rewards(self, card_id: str, spending_pattern: Dict[str, int]) -> Dict[str, Any]:
        """Annual reward, net value and per-category breakdown for a monthly spending pattern."""
        if not isinstance(spending_pattern, dict) or not spending_pattern:
            raise ValidationError(
                "Please provide spending amounts for different categories.",
                {"field": "spendingPattern"},
            )
        negative = [category for category, amount in spending_pattern.items() if amount < 0]
        if negative:
            raise ValidationError("Spending amounts must be non-negative.", {"categories": negative})

        card = self.get_card_record(card_id)
        annual_reward = calculate_annual_reward(card, spending_pattern)
        return {
            "card": {"id": card.id, "name": card.name, "rewardType": card.reward_type.value},
            "calculation": {
                "totalAnnualReward": annual_reward,
                "annualFee": card.annual_fee,
                "netValue": annual_reward - card.annual_fee,
                "breakdown": reward_breakdown(card, spending_pattern),
            },
        }

    def stats(self) -> Dict[str, Any]:
        return self.catalog.stats()
