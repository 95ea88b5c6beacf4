from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Literal
from datetime import datetime

# 모바일 클라이언트는 camelCase로 주고받음 (snake_case 입력도 허용)
CAMEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    from_attributes=True,  # SQLAlchemy 모델 객체를 Pydantic 모델로 자동 변환
)


class MessageResponse(BaseModel):
    """개별 메시지 응답"""
    model_config = CAMEL_CONFIG

    id: str
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str        # 이미지 결과는 data:<mime>;base64,<payload>
    message_type: Literal["text", "image", "image_prompt", "image_query"]
    created_at: datetime


class ConversationSummary(BaseModel):
    """대화 목록용 (메시지 내용 제외, 가볍게)"""
    model_config = CAMEL_CONFIG

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
