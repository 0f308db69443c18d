"""
API Schemas - request/response DTOs for the advisor HTTP surface.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator
from pydantic.alias_generators import to_camel

from engine.extractors import MAX_CREDIT_SCORE, MIN_CREDIT_SCORE
from engine.models import RewardType, UNKNOWN_CREDIT_SCORE, UserProfile


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Profile input
# =============================================================================

class PreferencesIn(ApiModel):
    reward_type: Optional[str] = Field(None, description="Cashback or Points")
    benefits: List[str] = Field(default_factory=list)
    max_annual_fee: Optional[int] = Field(None, ge=0)
    existing_cards: List[str] = Field(default_factory=list)

    @field_validator("reward_type")
    @classmethod
    def normalize_reward_type(cls, v: Optional[str]) -> Optional[str]:
        """Accept any casing of Cashback / Points."""
        if v is None:
            return v
        for option in RewardType:
            if option.value.lower() == v.strip().lower():
                return option.value
        raise ValueError(f"rewardType must be one of: {', '.join(t.value for t in RewardType)}")


class ProfileIn(ApiModel):
    """
    User profile as submitted by a client.

    Usage:
        ProfileIn(monthly_income=80000, spending_habits={"dining": 5000}).to_profile()
    """
    monthly_income: Optional[int] = Field(None, ge=0, description="Monthly income in rupees")
    credit_score: Optional[Union[int, str]] = Field(None, description="300-900 or 'unknown'")
    spending_habits: Dict[str, NonNegativeInt] = Field(default_factory=dict, description="Monthly spend per category")
    preferences: PreferencesIn = Field(default_factory=PreferencesIn)

    @field_validator("credit_score")
    @classmethod
    def check_credit_score(cls, v: Optional[Union[int, str]]) -> Optional[Union[int, str]]:
        if v is None or v == UNKNOWN_CREDIT_SCORE:
            return v
        score = int(v) if isinstance(v, str) and v.isdigit() else v
        if not isinstance(score, int) or not MIN_CREDIT_SCORE <= score <= MAX_CREDIT_SCORE:
            raise ValueError(f"creditScore must be {MIN_CREDIT_SCORE}-{MAX_CREDIT_SCORE} or '{UNKNOWN_CREDIT_SCORE}'")
        return score

    def to_profile(self) -> UserProfile:
        return UserProfile.from_dict(self.model_dump(by_alias=True))


# =============================================================================
# Chat
# =============================================================================

class SessionInfo(ApiModel):
    current_step: str
    is_profile_complete: bool


class StartSessionResponse(ApiModel):
    session_id: str
    message: str
    suggestions: List[str]
    session: SessionInfo


class MessageRequest(ApiModel):
    # Emptiness is checked by the service so it surfaces as VALIDATION_ERROR
    message: Optional[str] = None


class MessageResponse(ApiModel):
    message: str
    suggestions: List[str]
    session: SessionInfo
    recommendations: Optional[List[Dict[str, Any]]] = None
    provider: Optional[str] = None


class SessionResponse(ApiModel):
    session: Dict[str, Any]


class SessionStatsResponse(ApiModel):
    total_sessions: int
    active_in_last_hour: int
    completed_profiles: int


# =============================================================================
# Cards
# =============================================================================

class CardListResponse(ApiModel):
    count: int
    data: List[Dict[str, Any]]
    query: Optional[str] = None
    category: Optional[str] = None
    criteria: Optional[Dict[str, Any]] = None


class CardResponse(ApiModel):
    data: Dict[str, Any]


class CompareCardsRequest(ApiModel):
    card_ids: List[str] = Field(default_factory=list)


class CalculateRewardsRequest(ApiModel):
    spending_pattern: Dict[str, int] = Field(..., description="Monthly spend per category")


# =============================================================================
# Recommendations
# =============================================================================

class RecommendationRequest(ApiModel):
    user_profile: Optional[ProfileIn] = None


class CompareRecommendationsRequest(ApiModel):
    card_ids: List[str] = Field(default_factory=list)
    user_profile: Optional[ProfileIn] = None


class RecommendationResponse(ApiModel):
    explanation: str
    user_profile: Dict[str, Any]
    recommendations: List[Dict[str, Any]]


class CategoryRecommendationResponse(ApiModel):
    category: str
    count: int
    data: List[Dict[str, Any]]


class ComparisonInsights(ApiModel):
    best_value: Dict[str, Any]
    best_rewards: Dict[str, Any]
    lowest_fee: Dict[str, Any]
    highest_score: Dict[str, Any]
    summary: List[str]


class CompareRecommendationsResponse(ApiModel):
    user_profile: Dict[str, Any]
    comparison: List[Dict[str, Any]]
    insights: ComparisonInsights


class CardExplanationResponse(ApiModel):
    card: Dict[str, Any]
    metrics: Dict[str, Any]
    explanation: str
