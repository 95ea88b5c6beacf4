from pydantic import BaseModel
from typing import Optional
from geminichat.schemas.conversation import CAMEL_CONFIG, MessageResponse


class SendMessageRequest(BaseModel):
    model_config = CAMEL_CONFIG

    message: str                                   # 이번 메시지 ("/image ..." 면 이미지 생성)
    conversation_id: Optional[str] = None          # 기존 대화에 이어서 할 때
    image_base64: Optional[str] = None             # 첨부 이미지 (mime_type과 함께 있어야 유효)
    mime_type: Optional[str] = None


class SendMessageResponse(BaseModel):
    model_config = CAMEL_CONFIG

    assistant_message: MessageResponse
    conversation_id: str
