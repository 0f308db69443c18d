"""
Data models for the Credit Card Advisor engine.
All models are dataclasses for simplicity and type safety.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union


SPENDING_CATEGORIES = ("dining", "travel", "fuel", "groceries", "online", "default")
UNKNOWN_CREDIT_SCORE = "unknown"

CreditScore = Union[int, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RewardType(str, Enum):
    CASHBACK = "Cashback"
    POINTS = "Points"


class CardCategory(str, Enum):
    ENTRY_LEVEL = "Entry Level"
    CASHBACK = "Cashback"
    REWARDS = "Rewards"
    TRAVEL = "Travel"
    FUEL = "Fuel"
    LIFESTYLE = "Lifestyle"
    PREMIUM = "Premium"
    SUPER_PREMIUM = "Super Premium"


class Step(str, Enum):
    """Conversation steps, in the order the advisor asks about them."""
    GREETING = "greeting"
    INCOME = "income"
    CREDIT_SCORE = "creditScore"
    SPENDING = "spending"
    PREFERENCES = "preferences"
    COMPLETE = "complete"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Eligibility:
    """
    Hard eligibility constraints of a card.

    Fields:
    - min_income: minimum ANNUAL income in rupees
    - min_credit_score: minimum credit score (300-900)
    """
    min_income: int
    min_credit_score: int


@dataclass(frozen=True)
class CardRecord:
    """
    A credit card from the static catalog. Immutable once loaded.

    Fields:
    - id: unique identifier (e.g., "hdfc-millennia")
    - name / issuer: display name and issuing bank
    - annual_fee: annual fee in rupees (>= 0)
    - reward_type: Cashback | Points
    - reward_rate: category -> rate descriptor (e.g., "5% cashback", "4 points per ₹150"),
      always includes a "default" entry
    - point_value: rupee value of one point (only meaningful for Points cards)
    - eligibility: income / credit score thresholds
    - special_perks: ordered perk descriptions
    - category: card tier/category tag
    - best_for: spending categories the card is marketed for
    - apply_link: opaque application URL
    - fee_waiver: optional fee waiver condition (e.g., "Spend ₹1 lakh annually")
    - card_image: optional image URL
    """
    id: str
    name: str
    issuer: str
    annual_fee: int
    reward_type: RewardType
    reward_rate: dict[str, str]
    point_value: float
    eligibility: Eligibility
    special_perks: tuple[str, ...]
    category: str
    best_for: tuple[str, ...]
    apply_link: str
    fee_waiver: Optional[str] = None
    card_image: Optional[str] = None

    def rate_for(self, category: str) -> str:
        """Rate descriptor for a spending category, falling back to the default rate."""
        return self.reward_rate.get(category) or self.reward_rate["default"]

    @classmethod
    def from_dict(cls, data: dict) -> "CardRecord":
        reward_rate = dict(data["rewardRate"])
        if not reward_rate.get("default"):
            raise ValueError(f"Card {data.get('id')!r} has no default reward rate")
        annual_fee = int(data.get("annualFee", 0))
        if annual_fee < 0:
            raise ValueError(f"Card {data.get('id')!r} has a negative annual fee")
        eligibility = data.get("eligibility") or {}
        return cls(
            id=str(data["id"]),
            name=data["name"],
            issuer=data["issuer"],
            annual_fee=annual_fee,
            reward_type=RewardType(data["rewardType"]),
            reward_rate=reward_rate,
            point_value=float(data.get("pointValue", 1.0)),
            eligibility=Eligibility(
                min_income=int(eligibility.get("minIncome", 0)),
                min_credit_score=int(eligibility.get("minCreditScore", 300)),
            ),
            special_perks=tuple(data.get("specialPerks", [])),
            category=data.get("category", CardCategory.REWARDS.value),
            best_for=tuple(data.get("bestFor", [])),
            apply_link=data.get("applyLink", ""),
            fee_waiver=data.get("feeWaiver"),
            card_image=data.get("cardImage"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "issuer": self.issuer,
            "annualFee": self.annual_fee,
            "rewardType": self.reward_type.value,
            "rewardRate": dict(self.reward_rate),
            "pointValue": self.point_value,
            "eligibility": {
                "minIncome": self.eligibility.min_income,
                "minCreditScore": self.eligibility.min_credit_score,
            },
            "specialPerks": list(self.special_perks),
            "category": self.category,
            "bestFor": list(self.best_for),
            "applyLink": self.apply_link,
            "feeWaiver": self.fee_waiver,
            "cardImage": self.card_image,
        }


def empty_spending() -> dict[str, int]:
    return {category: 0 for category in SPENDING_CATEGORIES}


@dataclass
class Preferences:
    reward_type: Optional[RewardType] = None
    benefits: list[str] = field(default_factory=list)
    max_annual_fee: Optional[int] = None
    existing_cards: list[str] = field(default_factory=list)


@dataclass
class UserProfile:
    """
    Financial profile built up over a conversation.

    Fields:
    - monthly_income: monthly income in rupees, None until known
    - credit_score: 300-900, the "unknown" sentinel, or None until asked
    - spending_habits: monthly spend per category (all six categories present)
    - preferences: reward type, benefit keywords, fee ceiling
    """
    monthly_income: Optional[int] = None
    credit_score: Optional[CreditScore] = None
    spending_habits: dict[str, int] = field(default_factory=empty_spending)
    preferences: Preferences = field(default_factory=Preferences)

    @property
    def total_spending(self) -> int:
        return sum(self.spending_habits.values())

    @property
    def numeric_credit_score(self) -> Optional[int]:
        if isinstance(self.credit_score, int) and not isinstance(self.credit_score, bool):
            return self.credit_score
        return None

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        """Build a profile from the camelCase wire shape used by the API."""
        spending = empty_spending()
        for category, amount in (data.get("spendingHabits") or {}).items():
            if category in spending and amount is not None:
                spending[category] = int(amount)

        raw_prefs = data.get("preferences") or {}
        reward_type = raw_prefs.get("rewardType")
        preferences = Preferences(
            reward_type=RewardType(reward_type) if reward_type else None,
            benefits=list(raw_prefs.get("benefits") or []),
            max_annual_fee=raw_prefs.get("maxAnnualFee"),
            existing_cards=list(raw_prefs.get("existingCards") or []),
        )

        credit_score = data.get("creditScore")
        if isinstance(credit_score, str) and credit_score != UNKNOWN_CREDIT_SCORE:
            credit_score = int(credit_score) if credit_score.isdigit() else None

        monthly_income = data.get("monthlyIncome")
        return cls(
            monthly_income=int(monthly_income) if monthly_income is not None else None,
            credit_score=credit_score,
            spending_habits=spending,
            preferences=preferences,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "monthlyIncome": self.monthly_income,
            "creditScore": self.credit_score,
            "spendingHabits": dict(self.spending_habits),
            "preferences": {
                "rewardType": self.preferences.reward_type.value if self.preferences.reward_type else None,
                "benefits": list(self.preferences.benefits),
                "maxAnnualFee": self.preferences.max_annual_fee,
                "existingCards": list(self.preferences.existing_cards),
            },
        }


@dataclass
class ProfileUpdate:
    """
    Partial profile produced by an extractor. None means "leave unchanged".
    spending and preferences are merged field by field, never replaced wholesale.
    """
    monthly_income: Optional[int] = None
    credit_score: Optional[CreditScore] = None
    spending: Optional[dict[str, int]] = None
    reward_type: Optional[RewardType] = None
    benefits: Optional[list[str]] = None
    max_annual_fee: Optional[int] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.monthly_income,
                self.credit_score,
                self.spending,
                self.reward_type,
                self.benefits,
                self.max_annual_fee,
            )
        )


@dataclass
class ChatMessage:
    role: Role
    text: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "text": self.text, "timestamp": self.timestamp.isoformat()}


@dataclass
class ScoredCard:
    """
    A catalog card annotated with profile-specific metrics.

    Fields:
    - card: the underlying CardRecord
    - score: 0-100 recommendation score
    - estimated_annual_reward: rounded rupee reward for the profile's spending
    - net_value: estimated_annual_reward - annual_fee (may be negative)
    - reasons_to_choose: up to 4 short reason strings
    """
    card: CardRecord
    score: float
    estimated_annual_reward: int
    net_value: int
    reasons_to_choose: list[str]

    def to_dict(self) -> dict[str, Any]:
        data = self.card.to_dict()
        data.update(
            {
                "score": self.score,
                "estimatedAnnualReward": self.estimated_annual_reward,
                "netValue": self.net_value,
                "reasonsToChoose": list(self.reasons_to_choose),
            }
        )
        return data


@dataclass
class Session:
    """
    Conversation state for one user. Owned exclusively by the SessionStore.

    Fields:
    - id: opaque session token
    - profile: the profile collected so far
    - chat_history: append-only messages (user and assistant)
    - questions_asked: steps whose question has been asked (informational)
    - current_step: where the conversation is
    - is_profile_complete: recomputed on every profile mutation
    - recommendations: set once, when the profile first becomes complete
    """
    id: str
    profile: UserProfile = field(default_factory=UserProfile)
    chat_history: list[ChatMessage] = field(default_factory=list)
    questions_asked: set[str] = field(default_factory=set)
    current_step: Step = Step.GREETING
    is_profile_complete: bool = False
    recommendations: Optional[list[ScoredCard]] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "currentStep": self.current_step.value,
            "isProfileComplete": self.is_profile_complete,
            "chatHistory": [message.to_dict() for message in self.chat_history],
            "questionsAsked": sorted(self.questions_asked),
            "userProfile": self.profile.to_dict(),
            "recommendations": (
                [card.to_dict() for card in self.recommendations]
                if self.recommendations is not None
                else None
            ),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
