import httpx
from fastapi import Depends
from google import genai
from google.genai import types
from sqlalchemy.ext.asyncio import AsyncSession

from geminichat.core import security
from geminichat.core.config import settings
from geminichat.core.database import get_db
from geminichat.core.identity import IdentityGateway
from geminichat.core.logger import get_logger
from geminichat.core.security import Caller, get_current_caller
from geminichat.core.storage import ScopedStore
from geminichat.service.chat_service import MessageDispatcher
from geminichat.service.gemini_client import GeminiModel

logger = get_logger("dependencies")

# 전역 클라이언트: lifespan에서 초기화/정리
_gemini_client: genai.Client | None = None
_auth_client: httpx.AsyncClient | None = None
_dispatcher: MessageDispatcher | None = None

# === FastAPI Depends()용 함수 ===

async def get_dispatcher() -> MessageDispatcher:
    if _dispatcher is None:
        raise RuntimeError("Gemini 클라이언트가 초기화되지 않았습니다. 서버 시작을 확인하세요.")
    return _dispatcher


async def get_identity() -> IdentityGateway:
    # Auth0 미설정이면 client=None → 토큰 갱신 불가 (만료 시 401)
    return IdentityGateway(_auth_client)


async def get_store(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    identity: IdentityGateway = Depends(get_identity),
) -> ScopedStore:
    """인증된 호출자 전용 저장소 핸들 — 요청마다 새로 만듦"""
    return ScopedStore(db, caller, identity)


# === 수명주기 관리 (main.py의 lifespan에서 호출) ===

async def init_connections():
    global _gemini_client, _auth_client, _dispatcher

    if not settings.gemini_api_key:
        raise RuntimeError("GEMINI_API_KEY가 설정되지 않았습니다.")

    _gemini_client = genai.Client(
        api_key=settings.gemini_api_key,
        http_options=types.HttpOptions(
            base_url=settings.gemini_base_url,
            timeout=int(settings.gemini_timeout * 1000),  # ms 단위, 이미지 생성은 오래 걸릴 수 있음
        ),
    )
    # 텍스트/이미지 이해용 1개, 이미지 생성용 1개: 같은 클라이언트 공유
    _dispatcher = MessageDispatcher(
        text_model=GeminiModel(_gemini_client, settings.gemini_text_model),
        image_model=GeminiModel(_gemini_client, settings.gemini_image_model),
    )
    logger.info("Gemini 클라이언트 준비 완료")

    if settings.auth0_domain:
        _auth_client = httpx.AsyncClient(
            base_url=f"https://{settings.auth0_domain}",
            timeout=10.0,
        )
        await security.load_jwks(_auth_client)
        logger.info("Auth0 JWKS 로드 완료")
    else:
        logger.warning("AUTH0_DOMAIN 미설정 — HS256 공유 비밀키로 토큰을 검증합니다")


async def close_connections():
    global _gemini_client, _auth_client, _dispatcher

    if _gemini_client:
        await _gemini_client.aio.aclose()
        _gemini_client = None
    if _auth_client:
        await _auth_client.aclose()
        _auth_client = None
    _dispatcher = None

    logger.info("모든 연결 종료")
