import uuid
from sqlalchemy import String, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from geminichat.models.base import CreatedAtMixin, TimestampMixin
from geminichat.core.database import Base

MESSAGE_ROLES = ("user", "assistant")

# text         일반 대화
# image        생성된 이미지 (data URI)
# image_prompt /image 명령으로 보낸 사용자 메시지
# image_query  이미지를 첨부해서 보낸 질문
MESSAGE_TYPES = ("text", "image", "image_prompt", "image_query")

DEFAULT_TITLE = "새 대화"


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class Conversation(TimestampMixin, Base):
    """
    대화 세션 — 하나의 채팅방
    Caller : Conversation = 1 : N (소유자만 접근, 공유 없음)
    """
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Identity Provider의 sub 클레임 (예: "auth0|64f..."): 사용자 테이블은 외부에 있음
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # 대화 제목 (첫 메시지 앞부분, 생성 후 변경 없음)
    title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=DEFAULT_TITLE,
    )

    # ORM 관계: conversation.messages로 접근 가능
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )


class Message(CreatedAtMixin, Base):
    """
    개별 메시지 — 대화 안의 한 턴 (한 번 저장되면 수정하지 않음)
    Conversation : Message = 1 : N
    """
    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(_in_clause("role", MESSAGE_ROLES), name="ck_messages_role"),
        CheckConstraint(_in_clause("message_type", MESSAGE_TYPES), name="ck_messages_message_type"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 부모 대화의 user_id와 항상 같아야 함 (DB의 RLS 정책이 보장)
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # "user" 또는 "assistant"
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    message_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="text",
        server_default="text",
    )

    # 메시지 본문: 이미지 결과는 data URI
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # ORM 역참조
    conversation: Mapped["Conversation"] = relationship(
        back_populates="messages",
    )
