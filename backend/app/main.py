import os
import sys
import logging
from datetime import timedelta

# Add backend directory and repository root (engine package) to path
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, BACKEND_DIR)
sys.path.insert(0, os.path.dirname(BACKEND_DIR))

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Optional

from app.config import settings
from app.routes import cards_router, chat_router, recommendation_router
from app.services.card_service import CardService
from app.services.chat_service import ConversationService
from app.services.phrasing_service import PhrasingChain, build_default_chain
from app.services.recommendation_service import RecommendationService
from engine.catalog import CardCatalog
from engine.models import utcnow
from engine.recommender import RecommendationEngine
from engine.sessions import SessionStore, SessionSweeper

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def configure_services(
    app: FastAPI,
    catalog: Optional[CardCatalog] = None,
    phrasing: Optional[PhrasingChain] = None,
    store: Optional[SessionStore] = None,
) -> None:
    """Build the shared service graph and attach it to app.state."""
    if catalog is None:
        catalog = CardCatalog.load(settings.CARD_CATALOG_PATH)
    if phrasing is None:
        phrasing = build_default_chain()
    if store is None:
        store = SessionStore(retention=timedelta(hours=settings.SESSION_RETENTION_HOURS))

    engine = RecommendationEngine(catalog)
    card_service = CardService(catalog)

    app.state.catalog = catalog
    app.state.phrasing = phrasing
    app.state.session_store = store
    app.state.card_service = card_service
    app.state.conversation_service = ConversationService(store, engine, phrasing)
    app.state.recommendation_service = RecommendationService(engine, card_service, store, phrasing)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler - runs on startup and shutdown"""
    # Startup
    if not hasattr(app.state, "conversation_service"):
        configure_services(app)
    sweeper = SessionSweeper(app.state.session_store, settings.SESSION_SWEEP_INTERVAL_SECONDS)
    sweeper.start()
    logger.info(f"Session sweeper running every {settings.SESSION_SWEEP_INTERVAL_SECONDS}s")
    yield
    # Shutdown
    sweeper.stop()


app = FastAPI(
    title="Credit Card Advisor API",
    version="0.1.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# CORS middleware - MUST be added first before other middlewares
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):  # type: ignore[override]
    """Handle validation errors with HTTP 400 to maintain the error envelope contract."""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request payload.",
                "details": {"errors": jsonable_encoder(exc.errors())}
            }
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):  # type: ignore[override]
    """Unwrap service error envelopes so every error body has the same shape."""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {"error": {"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}}}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):  # type: ignore[override]
    """Handle general exceptions - log and return 500 error"""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal server error.",
                "details": {}
            }
        }
    )


@app.get("/health")
def health():
    return {
        "status": "OK",
        "service": "Credit Card Advisor API",
        "timestamp": utcnow().isoformat(),
        "cards": len(app.state.catalog) if hasattr(app.state, "catalog") else 0,
        "phrasingProviders": app.state.phrasing.provider_names if hasattr(app.state, "phrasing") else [],
    }


# Register routers
app.include_router(chat_router)
app.include_router(cards_router)
app.include_router(recommendation_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
