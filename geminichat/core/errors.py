"""
API 에러 정의

모두 HTTPException 하위 클래스라서 서비스 계층에서 바로 raise 하면
FastAPI가 상태코드 + detail로 변환합니다.

  Unauthenticated      401  인증 정보 없음 / 검증 실패 / 갱신 불가
  InvalidInput         400  빈 메시지 등 잘못된 입력
  InternalFailure      500  외부 서비스 실패 (원인 보관)
  ├ UpstreamFailure         Gemini 호출 실패 (fallback까지 실패)
  └ PersistenceFailure      DB 읽기/쓰기 실패

원인(cause)은 로그에만 남기고 클라이언트에는 detail 메시지만 노출합니다.
"""
from fastapi import HTTPException, status


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "인증되지 않은 사용자이거나 사용자 ID가 없습니다"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidInput(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InternalFailure(HTTPException):
    def __init__(self, detail: str, cause: BaseException | None = None):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
        self.cause = cause


class UpstreamFailure(InternalFailure):
    pass


class PersistenceFailure(InternalFailure):
    pass
