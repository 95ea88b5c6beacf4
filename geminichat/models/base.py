from datetime import datetime, timezone
from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatedAtMixin:
    """
    생성 시간 — 수정 경로가 없는 모델(메시지)용

    실무 포인트:
    - default=utcnow: 앱에서 마이크로초 단위로 채움
      → 연달아 저장한 user/assistant 메시지의 순서가 뒤바뀌지 않음
    - server_default=func.now(): 앱을 거치지 않은 INSERT 대비
    - timezone.utc: UTC 기준 저장 → 클라이언트에서 로컬 변환
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )


class TimestampMixin(CreatedAtMixin):
    """
    생성/수정 시간

    사용법:
        class Conversation(TimestampMixin, Base):
            __tablename__ = "conversations"
            ...
    """

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
