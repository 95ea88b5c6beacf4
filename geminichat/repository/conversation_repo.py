from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from geminichat.models.conversation import Conversation, Message


async def create(db: AsyncSession, conversation: Conversation) -> Conversation:
    """대화 세션 저장"""
    db.add(conversation)
    await db.commit()
    await db.refresh(conversation)
    return conversation


async def add_message(db: AsyncSession, message: Message) -> Message:
    """메시지 한 건 저장 (건마다 커밋)"""
    db.add(message)
    await db.commit()
    await db.refresh(message)
    return message


async def find_by_user_id(db: AsyncSession, user_id: str) -> list[Conversation]:
    """유저의 대화 목록 조회 (최신 생성순)"""
    result = await db.execute(
        select(Conversation)
        .where(Conversation.user_id == user_id)
        .order_by(Conversation.created_at.desc())
    )
    return list(result.scalars().all())


async def find_messages(db: AsyncSession, conversation_id: str, user_id: str) -> list[Message]:
    """대화의 메시지 전체 (오래된 순, 본인 것만)"""
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .where(Message.user_id == user_id)
        .order_by(Message.created_at.asc())
    )
    return list(result.scalars().all())


async def find_recent_messages(
    db: AsyncSession, conversation_id: str, user_id: str, message_type: str, limit: int
) -> list[Message]:
    """특정 종류의 최근 메시지 limit개 — 최신순으로 자른 뒤 오래된 순으로 뒤집어 반환"""
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .where(Message.user_id == user_id)
        .where(Message.message_type == message_type)
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))
