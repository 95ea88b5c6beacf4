from dataclasses import dataclass, field
from datetime import datetime, timezone
import httpx
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials, APIKeyHeader
from jose import JWTError, jwt

from geminichat.core.config import settings
from geminichat.core.errors import Unauthenticated

# HTTPBearer: Authorization 헤더에서 "Bearer <ID 토큰>" 추출
# X-Refresh-Token: 저장소 호출 중 토큰이 만료되면 재발급에 사용 (선택)
# auto_error=False: 누락 시 403 대신 우리 쪽에서 401(Unauthenticated)을 던지기 위함
security_schema = HTTPBearer(auto_error=False)
refresh_token_header = APIKeyHeader(name="X-Refresh-Token", auto_error=False)

# Auth0 테넌트 JWKS: lifespan에서 한 번 로드
_jwks: dict | None = None


@dataclass
class Caller:
    """
    인증된 호출자

    - subject: Identity Provider가 발급한 sub 클레임 (= 모든 행의 user_id)
    - id_token: 저장소(RLS)에 전달되는 bearer 자격 증명
    - claims: 검증된 토큰 payload 전체
    """
    subject: str
    id_token: str
    claims: dict = field(default_factory=dict)
    refresh_token: str | None = None

    @property
    def expires_at(self) -> datetime | None:
        exp = self.claims.get("exp")
        if exp is None:
            return None
        return datetime.fromtimestamp(exp, tz=timezone.utc)

    def is_expired(self, now: datetime | None = None) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return expires_at <= (now or datetime.now(timezone.utc))


async def load_jwks(client: httpx.AsyncClient) -> None:
    """Auth0 공개키 목록(JWKS) 조회 — RS256 ID 토큰 검증용"""
    global _jwks
    response = await client.get("/.well-known/jwks.json")
    response.raise_for_status()
    _jwks = response.json()


def _verification_options() -> dict:
    """검증 키/알고리즘/발급자 결정 — Auth0 설정 유무에 따라"""
    if settings.auth0_domain:
        if _jwks is None:
            raise Unauthenticated("인증 키가 준비되지 않았습니다")
        return {
            "key": _jwks,
            "algorithms": ["RS256"],
            "issuer": f"https://{settings.auth0_domain}/",
        }
    return {
        "key": settings.jwt_secret,
        "algorithms": [settings.jwt_algorithm],
        "issuer": None,
    }


def verify_id_token(token: str, refresh_token: str | None = None) -> Caller:
    """ID 토큰 서명/만료/발급자/대상 검증 후 Caller 반환"""
    options = _verification_options()
    try:
        payload = jwt.decode(
            token,
            options["key"],
            algorithms=options["algorithms"],
            audience=settings.auth_audience or None,
            issuer=options["issuer"],
            options={"verify_aud": bool(settings.auth_audience)},
        )
    except JWTError as e:
        raise Unauthenticated("토큰 검증에 실패했습니다") from e

    subject = payload.get("sub")
    if not subject:
        raise Unauthenticated("토큰에 사용자 ID(sub)가 없습니다")

    return Caller(
        subject=subject,
        id_token=token,
        claims=payload,
        refresh_token=refresh_token,
    )


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_schema),
    refresh_token: str | None = Depends(refresh_token_header),
) -> Caller:
    """모든 보호된 엔드포인트의 첫 관문 — 다른 작업 전에 인증부터 확인"""
    if credentials is None:
        raise Unauthenticated("인증 정보(Bearer 토큰)가 제공되지 않았습니다")
    return verify_id_token(credentials.credentials, refresh_token)
