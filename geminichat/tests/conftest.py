"""
pytest 공통 설정

- DB: 테스트마다 임시 sqlite 파일 (NullPool 엔진, 외래키 강제)
- Gemini: 호출 내역을 기록하는 가짜 모델로 교체
- 인증: HS256 비밀키로 직접 서명한 ID 토큰
"""
import asyncio
import base64
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./geminichat-test.db")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from google.genai import types
from jose import jwt
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient

from geminichat.core.config import settings
from geminichat.core.database import Base, get_db
from geminichat.core.dependencies import get_dispatcher, get_identity
from geminichat.core.security import Caller
from geminichat.models.conversation import Conversation, Message  # noqa: F401  테이블 등록
from geminichat.router import chat, conversation
from geminichat.service.chat_service import MessageDispatcher

TEST_USER = "auth0|tester"
OTHER_USER = "auth0|someone-else"


def make_token(sub: str | None = TEST_USER, expires_in: timedelta = timedelta(hours=1)) -> str:
    now = datetime.now(timezone.utc)
    claims = {"iat": now, "exp": now + expires_in}
    if sub is not None:
        claims["sub"] = sub
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def bearer(sub: str = TEST_USER) -> dict:
    return {"Authorization": f"Bearer {make_token(sub)}"}


# ===== 가짜 Gemini 모델 =====

def gemini_response(*parts: types.Part, finish_reason: str | None = "STOP") -> types.GenerateContentResponse:
    """candidates[0].content.parts = parts 인 응답 (parts가 없으면 content도 없음)"""
    content = types.Content(role="model", parts=list(parts)) if parts else None
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=content, finish_reason=finish_reason)]
    )


class FakeGenaiClient:
    """genai.Client 대역: client.aio.models.generate_content 호출만 기록"""

    def __init__(self, response: types.GenerateContentResponse | None = None):
        self.response = response
        self.error: Exception | None = None
        self.calls: list[dict] = []
        self.aio = self
        self.models = self

    async def generate_content(self, *, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error
        return self.response


class FakeTextModel:
    def __init__(self):
        self.reply = "Mocked AI response"
        self.delay = 0.0      # 응답 전 대기 (초), 요청 도중 토큰 만료 재현용
        self.error: Exception | None = None
        self.calls: list[list[dict]] = []
        self.image_calls: list[tuple[str, str, str]] = []

    async def generate_text(self, contents):
        self.calls.append(contents)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply

    async def understand_image(self, prompt, image_base64, mime_type):
        self.image_calls.append((prompt, image_base64, mime_type))
        if self.error:
            raise self.error
        return self.reply


class FakeImageModel:
    def __init__(self):
        self.prompts: list[str] = []
        self.error: Exception | None = None
        self.response = gemini_response(
            types.Part(text="Here is your image"),
            types.Part(inline_data=types.Blob(mime_type="image/png", data=base64.b64decode("iVBORw0KGgo="))),
        )

    async def generate_image(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


class FakeIdentity:
    """refresh 호출 시 1시간짜리 새 토큰을 발급"""

    def __init__(self):
        self.refreshed: list[str] = []

    async def refresh(self, caller: Caller) -> Caller:
        self.refreshed.append(caller.subject)
        token = make_token(caller.subject)
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return Caller(subject=caller.subject, id_token=token, claims=claims, refresh_token=caller.refresh_token)


# ===== DB =====

@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "chat.db"
    # 스키마는 동기 엔진으로 생성: 이벤트 루프와 무관
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def sync_engine(db_path):
    """테스트 데이터 시드/검증용 동기 엔진"""
    engine = create_engine(f"sqlite:///{db_path}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_path):
    # NullPool: 매 세션마다 새 커넥션 (TestClient 루프/asyncio.run 루프 어디서든 사용 가능)
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ===== 앱 =====

@pytest.fixture
def text_model():
    return FakeTextModel()


@pytest.fixture
def image_model():
    return FakeImageModel()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def client(session_factory, text_model, image_model, identity):
    """테스트 전용 앱 (미들웨어/lifespan 없이) + 의존성 교체"""
    test_app = FastAPI()
    test_app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
    test_app.include_router(conversation.router, prefix="/api/conversations", tags=["Conversations"])

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    async def override_get_dispatcher():
        return MessageDispatcher(text_model=text_model, image_model=image_model)

    async def override_get_identity():
        return identity

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_dispatcher] = override_get_dispatcher
    test_app.dependency_overrides[get_identity] = override_get_identity

    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def auth_headers():
    return bearer(TEST_USER)
