from .card_service import CardService
from .chat_service import ConversationService
from .errors import NotFoundError, ServiceError, ValidationError
from .phrasing_service import PhrasingChain, build_default_chain
from .recommendation_service import RecommendationService

__all__ = [
    "CardService",
    "ConversationService",
    "NotFoundError",
    "PhrasingChain",
    "RecommendationService",
    "ServiceError",
    "ValidationError",
    "build_default_chain",
]
