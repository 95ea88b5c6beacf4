from geminichat.core.config import settings
from geminichat.core.storage import ScopedStore
from geminichat.models.conversation import Message
from geminichat.service.conversation_service import persistence_errors
from geminichat.service.gemini_client import user_turn


async def load_context(store: ScopedStore, conversation_id: str) -> list[Message]:
    """
    모델 입력용 대화 기록 — 최근 text 메시지 최대 N개 (오래된 순)

    이미지/이미지 프롬프트 턴은 제외.
    대화가 없거나 남의 대화면 빈 리스트 (에러 아님).
    """
    with persistence_errors("대화 기록을 불러오지 못했습니다."):
        return await store.recent_messages(conversation_id, "text", settings.context_window)


def to_dialogue(messages: list[Message]) -> list[dict]:
    """저장된 메시지 → Gemini 대화 턴 (user → user, assistant → model)"""
    return [
        {
            "role": "user" if message.role == "user" else "model",
            "parts": [{"text": message.content}],
        }
        for message in messages
    ]


def build_dialogue(history: list[Message], message: str) -> list[dict]:
    """이전 턴 + 이번 사용자 메시지"""
    return to_dialogue(history) + [user_turn(message)]
