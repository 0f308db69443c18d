from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies.services import get_recommendation_service
from app.schemas.api_schemas import (
    CardExplanationResponse,
    CategoryRecommendationResponse,
    CompareRecommendationsRequest,
    CompareRecommendationsResponse,
    RecommendationRequest,
    RecommendationResponse,
)
from app.services.errors import ServiceError
from app.services.recommendation_service import RecommendationService


router = APIRouter(prefix="/api/v1/recommendations", tags=["recommendation"])


@router.post("", response_model=RecommendationResponse)
def get_recommendations(
    payload: RecommendationRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    try:
        return service.recommend(payload.user_profile)
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.post("/session/{session_id}", response_model=RecommendationResponse)
def get_session_recommendations(
    session_id: str,
    payload: Optional[RecommendationRequest] = None,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Uses the session's profile once complete, otherwise the submitted profile."""
    try:
        return service.recommend(payload.user_profile if payload else None, session_id=session_id)
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.post("/category/{category}", response_model=CategoryRecommendationResponse)
def get_category_recommendations(
    category: str,
    payload: RecommendationRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    try:
        return service.recommend_by_category(category, payload.user_profile)
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.post("/compare", response_model=CompareRecommendationsResponse)
def compare_recommendations(
    payload: CompareRecommendationsRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    try:
        return service.compare(payload.card_ids, payload.user_profile)
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.post("/explain/{card_id}", response_model=CardExplanationResponse)
def explain_card(
    card_id: str,
    payload: RecommendationRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    try:
        return service.explain_card(card_id, payload.user_profile)
    except ServiceError as exc:
        raise exc.to_http_exception()
