from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError
from geminichat.core.errors import PersistenceFailure
from geminichat.core.logger import get_logger
from geminichat.core.storage import ScopedStore
from geminichat.models.conversation import Conversation, Message

logger = get_logger("conversation")


@contextmanager
def persistence_errors(detail: str):
    """DB 예외 → PersistenceFailure (원인은 로그에만)"""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"{detail} ({type(e).__name__}: {e})")
        raise PersistenceFailure(detail, cause=e) from e


async def create_conversation(store: ScopedStore, title: str) -> Conversation:
    """새 대화 세션 생성"""
    with persistence_errors("대화를 생성하지 못했습니다."):
        conversation = await store.create_conversation(title)
    logger.info(
        "새 대화 생성",
        extra={"extra_data": {"user_id": store.user_id, "conversation_id": conversation.id}},
    )
    return conversation


async def add_message(
    store: ScopedStore, conversation_id: str, role: str, content: str, message_type: str
) -> Message:
    """대화에 메시지 추가"""
    with persistence_errors("메시지를 저장하지 못했습니다."):
        return await store.add_message(conversation_id, role, content, message_type)


async def get_conversations(store: ScopedStore) -> list[Conversation]:
    """내 대화 목록 조회 (최신순)"""
    with persistence_errors("대화 목록을 불러오지 못했습니다."):
        return await store.list_conversations()


async def get_messages(store: ScopedStore, conversation_id: str) -> list[Message]:
    """대화의 메시지 전체 (오래된 순, 종류 무관) — 화면 표시용"""
    with persistence_errors("메시지를 불러오지 못했습니다."):
        return await store.list_messages(conversation_id)
