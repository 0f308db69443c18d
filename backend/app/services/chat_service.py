from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, Optional

from app.schemas.api_schemas import (
    MessageResponse,
    SessionInfo,
    SessionStatsResponse,
    StartSessionResponse,
)
from app.services.errors import NotFoundError, ValidationError
from app.services.phrasing_service import RECOMMENDATION_SUGGESTIONS, PhrasingChain
from engine.models import Role, Session, Step
from engine.recommender import RecommendationEngine
from engine.sessions import SessionStore
from engine.state import extract_update, next_step

logger = logging.getLogger(__name__)


class ConversationService:
    """
    Drives one advisor conversation per session id.

    Each message is handled as a single unit of work:
    append user text -> extract for the current step -> merge into profile ->
    pick next step -> recommend once on completion -> phrase and append reply.

    Usage:
        service = ConversationService(store, engine, build_default_chain())
        started = service.start_session()
        reply = service.send_message(started.session_id, "I earn 80k a month")
    """

    def __init__(
        self,
        store: SessionStore,
        engine: RecommendationEngine,
        phrasing: PhrasingChain,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.store = store
        self.engine = engine
        self.phrasing = phrasing
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _session_info(self, session: Session) -> SessionInfo:
        return SessionInfo(
            current_step=session.current_step.value,
            is_profile_complete=session.is_profile_complete,
        )

    def _greet(self, session: Session) -> StartSessionResponse:
        reply = self.phrasing.generate_response([], session.profile, Step.GREETING)
        self.store.append_message(session.id, Role.ASSISTANT, reply.message)
        self.store.mark_question_asked(session.id, Step.GREETING)
        return StartSessionResponse(
            session_id=session.id,
            message=reply.message,
            suggestions=reply.suggestions,
            session=self._session_info(session),
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def start_session(self) -> StartSessionResponse:
        session = self.store.create(self.id_factory())
        logger.info(f"Started chat session {session.id}")
        return self._greet(session)

    def send_message(self, session_id: str, text: Optional[str]) -> MessageResponse:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Message is required.", {"field": "message", "reason": "Must be non-empty."})

        # Unknown ids get a fresh session rather than an error
        session = self.store.get_or_create(session_id)
        self.store.append_message(session_id, Role.USER, text)

        handled_step = session.current_step
        if handled_step != Step.COMPLETE:
            update = extract_update(handled_step, text)
            if update is not None:
                self.store.update_profile(session_id, update)
            else:
                logger.debug(f"Nothing extracted for step {handled_step.value} in session {session_id}")

        new_step = next_step(session.profile, handled_step)
        self.store.set_step(session_id, new_step)

        if session.is_profile_complete and session.recommendations is None:
            return self._complete(session)

        reply = self.phrasing.generate_response(session.chat_history, session.profile, handled_step)
        self.store.append_message(session_id, Role.ASSISTANT, reply.message)
        self.store.mark_question_asked(session_id, new_step)
        cached = session.recommendations
        return MessageResponse(
            message=reply.message,
            suggestions=reply.suggestions,
            session=self._session_info(session),
            provider=reply.provider,
            recommendations=[card.to_dict() for card in cached] if cached is not None else None,
        )

    def _complete(self, session: Session) -> MessageResponse:
        recommendations = self.engine.generate_recommendations(session.profile)
        self.store.set_recommendations(session.id, recommendations)
        logger.info(f"Session {session.id} complete with {len(recommendations)} recommendations")

        explanation = self.phrasing.generate_recommendation_explanation(recommendations, session.profile)
        self.store.append_message(session.id, Role.ASSISTANT, explanation)
        return MessageResponse(
            message=explanation,
            suggestions=list(RECOMMENDATION_SUGGESTIONS),
            session=self._session_info(session),
            recommendations=[card.to_dict() for card in recommendations],
        )

    def get_session(self, session_id: str) -> Dict[str, Any]:
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError("Session not found.", {"session_id": session_id})
        return session.to_dict()

    def reset_session(self, session_id: str) -> StartSessionResponse:
        """Drop all state for the id and greet again under the same id."""
        self.store.delete(session_id)
        session = self.store.create(session_id)
        logger.info(f"Reset chat session {session_id}")
        return self._greet(session)

    def get_stats(self) -> SessionStatsResponse:
        stats = self.store.stats()
        return SessionStatsResponse(
            total_sessions=stats["totalSessions"],
            active_in_last_hour=stats["activeInLastHour"],
            completed_profiles=stats["completedProfiles"],
        )
