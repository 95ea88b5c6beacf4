from fastapi import APIRouter, Depends, Response
from geminichat.core.dependencies import get_dispatcher, get_store
from geminichat.core.storage import ScopedStore, expose_refreshed_credential
from geminichat.schemas.chat import SendMessageRequest, SendMessageResponse
from geminichat.schemas.conversation import MessageResponse
from geminichat.service.chat_service import ImageAttachment, MessageDispatcher

router = APIRouter()


@router.post("/", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    response: Response,
    store: ScopedStore = Depends(get_store),
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    """
    sendMessage
    1. 인증 (get_store → get_current_caller)
    2. 대화 생성/선택 + Gemini 호출 경로 결정
    3. 사용자 메시지, AI 응답 순서로 저장
    """
    attachment = None
    if request.image_base64 and request.mime_type:
        attachment = ImageAttachment(data=request.image_base64, mime_type=request.mime_type)

    result = await dispatcher.dispatch(
        store, request.message, request.conversation_id, attachment
    )

    expose_refreshed_credential(response, store)
    return SendMessageResponse(
        assistant_message=MessageResponse.model_validate(result.assistant_message),
        conversation_id=result.conversation_id,
    )
