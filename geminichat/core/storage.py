"""
요청 단위 저장소 핸들 (Scoped Storage Client)

호출자의 자격 증명에 묶인 AsyncSession 래퍼.
- 모든 조회/저장에 user_id = caller.subject 조건을 건다
- PostgreSQL이면 트랜잭션 시작마다 JWT claims를 set_config로 주입 → RLS 정책 적용
- 자격 증명이 만료되면 refresh_on_expiry가 토큰을 재발급받아 한 번 재시도

                   ┌──────────────┐  CredentialExpired   ┌─────────────────┐
  service ───────▶ │ ScopedStore  │ ───────────────────▶ │ IdentityGateway │
                   │  (decorated) │ ◀─── 새 Caller ───── │   refresh()     │
                   └──────┬───────┘                      └─────────────────┘
                          ▼
                   conversation_repo
"""
import functools
import json
from fastapi import Response
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession

from geminichat.core.config import settings
from geminichat.core.errors import Unauthenticated
from geminichat.core.identity import IdentityGateway
from geminichat.core.logger import get_logger
from geminichat.core.security import Caller
from geminichat.models.conversation import Conversation, Message
from geminichat.repository import conversation_repo

logger = get_logger("storage")

REFRESHED_TOKEN_HEADER = "X-Refreshed-Id-Token"


class CredentialExpired(Exception):
    """저장소에 넘길 ID 토큰이 만료됨 (PostgREST의 PGRST301에 해당)"""


def refresh_on_expiry(method):
    """
    저장소 메서드 공통 래퍼

    CredentialExpired가 나면 토큰을 갱신하고 같은 호출을 한 번만 다시 보냅니다.
    갱신이 불가능하면 Unauthenticated.
    """
    @functools.wraps(method)
    async def wrapper(self: "ScopedStore", *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except CredentialExpired:
            logger.info(
                "자격 증명 만료 — 토큰 갱신 후 재시도",
                extra={"extra_data": {"user_id": self.user_id, "operation": method.__name__}},
            )
            await self.refresh_credential()
            return await method(self, *args, **kwargs)

    return wrapper


class ScopedStore:

    def __init__(self, db: AsyncSession, caller: Caller, identity: IdentityGateway | None = None):
        self.db = db
        self.caller = caller
        self.refreshed = False
        self._identity = identity
        # 트랜잭션이 시작될 때마다 현재 caller의 claims를 DB 세션에 주입
        # (sync_session 이벤트: async 세션도 내부적으로 이 세션을 사용)
        event.listen(db.sync_session, "after_begin", self._apply_claims)

    @property
    def user_id(self) -> str:
        return self.caller.subject

    def _apply_claims(self, session, transaction, connection) -> None:
        if connection.dialect.name != "postgresql":
            return
        if settings.db_rls_role:
            role = connection.dialect.identifier_preparer.quote(settings.db_rls_role)
            connection.exec_driver_sql(f"SET LOCAL ROLE {role}")
        connection.execute(
            text("SELECT set_config(:name, :claims, true)"),
            {"name": settings.db_claims_setting, "claims": json.dumps(self.caller.claims)},
        )

    def _ensure_fresh(self) -> None:
        if self.caller.is_expired():
            raise CredentialExpired(self.caller.subject)

    async def refresh_credential(self) -> None:
        if self._identity is None:
            raise Unauthenticated("세션이 만료되었습니다. 다시 로그인해주세요")
        self.caller = await self._identity.refresh(self.caller)
        self.refreshed = True
        # 조회로 열린 트랜잭션은 이전 claims로 시작됨: 닫아야 다음 쿼리가 after_begin에서 새 claims를 받음
        if self.db.in_transaction():
            await self.db.commit()

    # === 저장 ===

    @refresh_on_expiry
    async def create_conversation(self, title: str) -> Conversation:
        self._ensure_fresh()
        conversation = Conversation(user_id=self.user_id, title=title)
        return await conversation_repo.create(self.db, conversation)

    @refresh_on_expiry
    async def add_message(self, conversation_id: str, role: str, content: str, message_type: str) -> Message:
        self._ensure_fresh()
        message = Message(
            conversation_id=conversation_id,
            user_id=self.user_id,
            role=role,
            content=content,
            message_type=message_type,
        )
        return await conversation_repo.add_message(self.db, message)

    # === 조회 ===

    @refresh_on_expiry
    async def list_conversations(self) -> list[Conversation]:
        self._ensure_fresh()
        return await conversation_repo.find_by_user_id(self.db, self.user_id)

    @refresh_on_expiry
    async def list_messages(self, conversation_id: str) -> list[Message]:
        self._ensure_fresh()
        return await conversation_repo.find_messages(self.db, conversation_id, self.user_id)

    @refresh_on_expiry
    async def recent_messages(self, conversation_id: str, message_type: str, limit: int) -> list[Message]:
        self._ensure_fresh()
        return await conversation_repo.find_recent_messages(
            self.db, conversation_id, self.user_id, message_type, limit
        )


def expose_refreshed_credential(response: Response, store: ScopedStore) -> None:
    """요청 도중 토큰이 갱신됐으면 새 ID 토큰을 응답 헤더로 돌려줌"""
    if store.refreshed:
        response.headers[REFRESHED_TOKEN_HEADER] = store.caller.id_token
