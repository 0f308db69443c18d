from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies.services import get_card_service
from app.schemas.api_schemas import (
    CalculateRewardsRequest,
    CardListResponse,
    CardResponse,
    CompareCardsRequest,
)
from app.services.card_service import CardService
from app.services.errors import ServiceError


router = APIRouter(prefix="/api/v1/cards", tags=["cards"])


@router.get("", response_model=CardListResponse)
def list_cards(service: CardService = Depends(get_card_service)):
    cards = service.list_cards()
    return CardListResponse(count=len(cards), data=cards)


@router.get("/search", response_model=CardListResponse)
def search_cards(
    q: Optional[str] = Query(default=None),
    service: CardService = Depends(get_card_service),
):
    try:
        cards = service.search_cards(q)
    except ServiceError as exc:
        raise exc.to_http_exception()
    return CardListResponse(count=len(cards), data=cards, query=q.strip())


@router.get("/filter", response_model=CardListResponse)
def filter_cards(
    min_income: Optional[int] = Query(default=None, alias="minIncome", ge=0),
    credit_score: Optional[int] = Query(default=None, alias="creditScore", ge=0),
    category: Optional[str] = Query(default=None),
    max_annual_fee: Optional[int] = Query(default=None, alias="maxAnnualFee", ge=0),
    reward_type: Optional[str] = Query(default=None, alias="rewardType"),
    issuer: Optional[str] = Query(default=None),
    service: CardService = Depends(get_card_service),
):
    try:
        result = service.filter_cards(
            min_income=min_income,
            credit_score=credit_score,
            category=category,
            max_annual_fee=max_annual_fee,
            reward_type=reward_type,
            issuer=issuer,
        )
    except ServiceError as exc:
        raise exc.to_http_exception()
    return CardListResponse(count=len(result["data"]), data=result["data"], criteria=result["criteria"])


@router.get("/stats", response_model=CardResponse)
def card_stats(service: CardService = Depends(get_card_service)):
    return CardResponse(data=service.stats())


@router.get("/category/{category}", response_model=CardListResponse)
def cards_by_category(category: str, service: CardService = Depends(get_card_service)):
    try:
        cards = service.cards_by_spending_category(category)
    except ServiceError as exc:
        raise exc.to_http_exception()
    return CardListResponse(count=len(cards), data=cards, category=category.lower())


@router.post("/compare", response_model=CardResponse)
def compare_cards(payload: CompareCardsRequest, service: CardService = Depends(get_card_service)):
    try:
        return CardResponse(data=service.compare(payload.card_ids))
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.get("/{card_id}", response_model=CardResponse)
def get_card(card_id: str, service: CardService = Depends(get_card_service)):
    try:
        return CardResponse(data=service.get_card(card_id))
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.post("/{card_id}/calculate-rewards", response_model=CardResponse)
def calculate_rewards(
    card_id: str,
    payload: CalculateRewardsRequest,
    service: CardService = Depends(get_card_service),
):
    try:
        return CardResponse(data=service.calculate_rewards(card_id, payload.spending_pattern))
    except ServiceError as exc:
        raise exc.to_http_exception()
