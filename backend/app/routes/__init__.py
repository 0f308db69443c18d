from .chat import router as chat_router
from .cards import router as cards_router
from .recommendation import router as recommendation_router

__all__ = [
    "chat_router",
    "cards_router",
    "recommendation_router",
]
