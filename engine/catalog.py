"""
Card catalog and reward arithmetic.
The catalog is loaded once from a static JSON file and is read-only afterwards.
Reward helpers are pure functions shared by the recommender and the API layer.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

from engine.models import CardRecord, RewardType, SPENDING_CATEGORIES

logger = logging.getLogger(__name__)


DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "credit_cards.json"

# First decimal number in a rate descriptor ("5% cashback" -> 5.0)
_NUMERIC_RATE = re.compile(r"(\d+\.?\d*)")
# "<N> points per ₹<M>"
_POINTS_RATE = re.compile(r"(\d+\.?\d*)\s*points?\s*per\s*₹(\d+)", re.IGNORECASE)

MIN_SEARCH_QUERY_LENGTH = 2


class CatalogLoadError(Exception):
    """Raised when the catalog file is missing or malformed."""


def parse_reward_rate(rate: Optional[str]) -> float:
    """
    Extract the numeric magnitude of a reward-rate descriptor.

    Only the first number is used, so tiered descriptors such as
    "1% up to ₹1L, then 2%" resolve to their first figure.

    Example:
        >>> parse_reward_rate("5% cashback")
        5.0
        >>> parse_reward_rate("2 points per ₹150")
        2.0
        >>> parse_reward_rate("no rewards")
        0.0
    """
    if not isinstance(rate, str):
        return 0.0
    match = _NUMERIC_RATE.search(rate)
    return float(match.group(1)) if match else 0.0


def calculate_points(amount: float, rate: str) -> float:
    """
    Points earned on a spend amount for a "<N> points per ₹<M>" descriptor.

    Non-matching descriptors earn nothing.

    Example:
        >>> calculate_points(1000, "4 points per ₹100")
        40.0
    """
    if not isinstance(rate, str):
        return 0.0
    match = _POINTS_RATE.search(rate)
    if not match:
        return 0.0
    points = float(match.group(1))
    rupees = float(match.group(2))
    if rupees <= 0:
        return 0.0
    return math.floor(amount / rupees) * points


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def category_reward(card: CardRecord, category: str, amount: float) -> float:
    """Unrounded rupee reward for one spending category."""
    if amount <= 0:
        return 0.0
    rate = card.rate_for(category)
    if card.reward_type == RewardType.CASHBACK:
        return amount * parse_reward_rate(rate) / 100
    return calculate_points(amount, rate) * card.point_value


def calculate_annual_reward(card: CardRecord, spending: Mapping[str, float]) -> int:
    """
    Estimated reward for a spending pattern, rounded to the nearest rupee.

    Args:
        card: CardRecord to evaluate
        spending: category -> amount; categories the card does not list use its default rate

    Returns:
        Rounded reward value in rupees
    """
    total = sum(category_reward(card, category, amount) for category, amount in spending.items())
    return _round_half_up(total)


def reward_breakdown(card: CardRecord, spending: Mapping[str, float]) -> dict[str, dict]:
    """Per-category detail of calculate_annual_reward."""
    breakdown = {}
    for category, amount in spending.items():
        if amount <= 0:
            continue
        rate = card.rate_for(category)
        if card.reward_type == RewardType.CASHBACK:
            numeric_rate = parse_reward_rate(rate)
            breakdown[category] = {
                "spending": amount,
                "rewardRate": f"{numeric_rate:g}%",
                "reward": _round_half_up(amount * numeric_rate / 100),
            }
        else:
            points = calculate_points(amount, rate)
            breakdown[category] = {
                "spending": amount,
                "rewardRate": rate,
                "pointsEarned": points,
                "cashValue": _round_half_up(points * card.point_value),
            }
    return breakdown


@dataclass
class CardFilter:
    """
    Optional catalog filter criteria. Unset fields do not constrain.

    Fields:
    - min_income: applicant's annual income; keeps cards whose minimum is <= it
    - credit_score: applicant's score; keeps cards whose minimum is <= it
    - category: set of acceptable card categories
    - max_annual_fee: fee ceiling
    - reward_type: exact reward type
    - issuer: issuer name (case-insensitive)
    """
    min_income: Optional[int] = None
    credit_score: Optional[int] = None
    category: Optional[Iterable[str]] = None
    max_annual_fee: Optional[int] = None
    reward_type: Optional[RewardType] = None
    issuer: Optional[str] = None

    def matches(self, card: CardRecord) -> bool:
        if self.min_income is not None and card.eligibility.min_income > self.min_income:
            return False
        if self.credit_score is not None and card.eligibility.min_credit_score > self.credit_score:
            return False
        if self.category is not None and card.category not in set(self.category):
            return False
        if self.max_annual_fee is not None and card.annual_fee > self.max_annual_fee:
            return False
        if self.reward_type is not None and card.reward_type != self.reward_type:
            return False
        if self.issuer is not None and card.issuer.lower() != self.issuer.lower():
            return False
        return True


class CardCatalog:
    """
    Immutable, loaded-once collection of CardRecord.

    Usage:
        catalog = CardCatalog.load()
        card = catalog.get_by_id("hdfc-millennia")
    """

    def __init__(self, cards: Iterable[CardRecord] = ()):
        self._cards = tuple(cards)
        self._by_id = {card.id: card for card in self._cards}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "CardCatalog":
        """
        Load the catalog from JSON. Any failure yields an empty catalog.

        Individual malformed records are skipped with a warning; a missing or
        unparseable file is logged as an error.
        """
        path = Path(path) if path else DEFAULT_CATALOG_PATH
        try:
            records = cls._read_records(path)
        except CatalogLoadError as exc:
            logger.error(f"Card catalog unavailable, continuing with no cards: {exc}")
            return cls()

        cards = []
        seen_ids = set()
        for index, raw in enumerate(records):
            try:
                card = CardRecord.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping malformed card record #{index} in {path}: {exc}")
                continue
            if card.id in seen_ids:
                logger.warning(f"Skipping duplicate card id {card.id!r} in {path}")
                continue
            seen_ids.add(card.id)
            cards.append(card)

        logger.info(f"Loaded {len(cards)} cards from {path}")
        return cls(cards)

    @staticmethod
    def _read_records(path: Path) -> list:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as exc:
            raise CatalogLoadError(f"cannot read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CatalogLoadError(f"invalid JSON in {path}: {exc}") from exc
        if not isinstance(data, list):
            raise CatalogLoadError(f"{path} must contain a JSON array of cards")
        return data

    def __len__(self) -> int:
        return len(self._cards)

    def get_all(self) -> list[CardRecord]:
        return list(self._cards)

    def get_by_id(self, card_id: str) -> Optional[CardRecord]:
        return self._by_id.get(card_id)

    def filter(self, criteria: CardFilter) -> list[CardRecord]:
        return [card for card in self._cards if criteria.matches(card)]

    def search(self, query: str) -> list[CardRecord]:
        """
        Case-insensitive substring search on name, issuer and best-for tags.

        Raises:
            ValueError: If the query is shorter than 2 characters
        """
        term = (query or "").strip().lower()
        if len(term) < MIN_SEARCH_QUERY_LENGTH:
            raise ValueError(f"Search query must be at least {MIN_SEARCH_QUERY_LENGTH} characters long")
        return [
            card
            for card in self._cards
            if term in card.name.lower()
            or term in card.issuer.lower()
            or any(term in tag.lower() for tag in card.best_for)
        ]

    def get_by_spending_category(self, category: str) -> list[CardRecord]:
        """
        Cards with an explicit rate for the category, best rate first.
        Cards that would only fall back to their default rate are excluded.
        """
        listed = [card for card in self._cards if card.reward_rate.get(category)]
        return sorted(listed, key=lambda card: parse_reward_rate(card.reward_rate[category]), reverse=True)

    def stats(self) -> dict:
        """Aggregate counts and fee distribution across the catalog."""
        stats = {
            "totalCards": len(self._cards),
            "byIssuer": {},
            "byCategory": {},
            "byRewardType": {},
            "feeDistribution": {"free": 0, "low": 0, "medium": 0, "high": 0},
            "averageAnnualFee": 0,
        }
        for card in self._cards:
            stats["byIssuer"][card.issuer] = stats["byIssuer"].get(card.issuer, 0) + 1
            stats["byCategory"][card.category] = stats["byCategory"].get(card.category, 0) + 1
            reward_type = card.reward_type.value
            stats["byRewardType"][reward_type] = stats["byRewardType"].get(reward_type, 0) + 1

            if card.annual_fee == 0:
                stats["feeDistribution"]["free"] += 1
            elif card.annual_fee <= 1000:
                stats["feeDistribution"]["low"] += 1
            elif card.annual_fee <= 5000:
                stats["feeDistribution"]["medium"] += 1
            else:
                stats["feeDistribution"]["high"] += 1

        if self._cards:
            total_fees = sum(card.annual_fee for card in self._cards)
            stats["averageAnnualFee"] = _round_half_up(total_fees / len(self._cards))
        return stats


def compare_cards(cards: list[CardRecord]) -> dict:
    """
    Side-by-side summary of fees, headline rates and eligibility ranges.

    Args:
        cards: at least one CardRecord

    Returns:
        Dict with "cards", "comparison" and "details" keys
    """
    def best_rate(category: str) -> float:
        return max(parse_reward_rate(card.rate_for(category)) for card in cards)

    fees = [card.annual_fee for card in cards]
    incomes = [card.eligibility.min_income for card in cards]
    scores = [card.eligibility.min_credit_score for card in cards]

    return {
        "cards": [
            {
                "id": card.id,
                "name": card.name,
                "issuer": card.issuer,
                "annualFee": card.annual_fee,
                "rewardType": card.reward_type.value,
                "category": card.category,
            }
            for card in cards
        ],
        "comparison": {
            "fees": {"lowest": min(fees), "highest": max(fees), "free": fees.count(0)},
            "rewards": {
                "diningMax": best_rate("dining"),
                "travelMax": best_rate("travel"),
                "fuelMax": best_rate("fuel"),
            },
            "eligibility": {
                "minIncomeRange": {"lowest": min(incomes), "highest": max(incomes)},
                "minCreditScoreRange": {"lowest": min(scores), "highest": max(scores)},
            },
        },
        "details": [card.to_dict() for card in cards],
    }


def is_spending_category(category: str) -> bool:
    return category in SPENDING_CATEGORIES
