from fastapi import APIRouter, Depends, status

from app.dependencies.services import get_conversation_service
from app.schemas.api_schemas import (
    MessageRequest,
    MessageResponse,
    SessionResponse,
    SessionStatsResponse,
    StartSessionResponse,
)
from app.services.chat_service import ConversationService
from app.services.errors import ServiceError


router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post("/start", response_model=StartSessionResponse, status_code=status.HTTP_201_CREATED)
def start_session(service: ConversationService = Depends(get_conversation_service)):
    return service.start_session()


# Declared before /{session_id} so "stats" is not taken as a session id
@router.get("/stats/overview", response_model=SessionStatsResponse)
def get_stats(service: ConversationService = Depends(get_conversation_service)):
    return service.get_stats()


@router.post("/{session_id}/message", response_model=MessageResponse)
def send_message(
    session_id: str,
    payload: MessageRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    try:
        return service.send_message(session_id, payload.message)
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, service: ConversationService = Depends(get_conversation_service)):
    try:
        return SessionResponse(session=service.get_session(session_id))
    except ServiceError as exc:
        raise exc.to_http_exception()


@router.post("/{session_id}/reset", response_model=StartSessionResponse)
def reset_session(session_id: str, service: ConversationService = Depends(get_conversation_service)):
    return service.reset_session(session_id)
