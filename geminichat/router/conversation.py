from fastapi import APIRouter, Depends, Response
from geminichat.core.dependencies import get_store
from geminichat.core.storage import ScopedStore, expose_refreshed_credential
from geminichat.schemas.conversation import ConversationSummary, MessageResponse
from geminichat.service import conversation_service

router = APIRouter()


@router.get("/", response_model=list[ConversationSummary])
async def list_conversations(
    response: Response,
    store: ScopedStore = Depends(get_store),
):
    """getConversations — 내 대화 목록 (최신순)"""
    conversations = await conversation_service.get_conversations(store)
    expose_refreshed_credential(response, store)
    return conversations


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: str,
    response: Response,
    store: ScopedStore = Depends(get_store),
):
    """getMessages — 대화의 메시지 전체 (오래된 순, 이미지 포함)"""
    messages = await conversation_service.get_messages(store, conversation_id)
    expose_refreshed_credential(response, store)
    return messages
