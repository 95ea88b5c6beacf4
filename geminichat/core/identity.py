import httpx

from geminichat.core.config import settings
from geminichat.core.errors import Unauthenticated
from geminichat.core.logger import get_logger
from geminichat.core.security import Caller, verify_id_token

logger = get_logger("identity")


class IdentityGateway:
    """
    Auth0 토큰 재발급 클라이언트

    refresh_token 그랜트로 새 ID 토큰을 받아 검증합니다.
    http 클라이언트가 없으면 (Auth0 미설정) 갱신이 불가능합니다.
    """

    def __init__(self, client: httpx.AsyncClient | None):
        self._client = client

    async def refresh(self, caller: Caller) -> Caller:
        if self._client is None or not caller.refresh_token:
            raise Unauthenticated("세션이 만료되었습니다. 다시 로그인해주세요")

        try:
            response = await self._client.post("/oauth/token", json={
                "grant_type": "refresh_token",
                "client_id": settings.auth0_client_id,
                "client_secret": settings.auth0_client_secret,
                "refresh_token": caller.refresh_token,
            })
        except httpx.HTTPError as e:
            logger.warning(f"토큰 재발급 요청 실패: {e}")
            raise Unauthenticated("세션을 갱신하지 못했습니다. 다시 로그인해주세요") from e

        if response.status_code != 200:
            logger.warning(
                f"토큰 재발급 거부: {response.status_code}",
                extra={"extra_data": {"user_id": caller.subject}},
            )
            raise Unauthenticated("세션을 갱신하지 못했습니다. 다시 로그인해주세요")

        data = response.json()
        # 회전(rotation) 설정이 꺼져 있으면 새 refresh_token이 오지 않음 → 기존 것 유지
        refreshed = verify_id_token(
            data.get("id_token", ""),
            data.get("refresh_token", caller.refresh_token),
        )
        if refreshed.subject != caller.subject:
            raise Unauthenticated("갱신된 토큰의 사용자가 다릅니다")

        logger.info("ID 토큰 재발급 성공", extra={"extra_data": {"user_id": caller.subject}})
        return refreshed
