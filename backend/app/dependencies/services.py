from fastapi import Request

from app.services.card_service import CardService
from app.services.chat_service import ConversationService
from app.services.recommendation_service import RecommendationService


# Services are built once in the app lifespan and shared across requests

def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversation_service


def get_card_service(request: Request) -> CardService:
    return request.app.state.card_service


def get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service
