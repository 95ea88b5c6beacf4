from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

class Settings(BaseSettings):
    # Database: 운영은 PostgreSQL(asyncpg), 테스트는 sqlite(aiosqlite)
    database_url: str
    db_echo: bool = False

    # RLS 정책이 읽는 JWT claims 설정 키 (Supabase 호환)
    db_claims_setting: str = "request.jwt.claims"
    # 트랜잭션마다 SET LOCAL ROLE 할 역할 (예: "authenticated"), 없으면 생략
    db_rls_role: str | None = None

    # Identity Provider (Auth0)
    # auth0_domain이 없으면 HS256 공유 비밀키로 토큰을 검증 (개발/테스트용)
    auth0_domain: str | None = None
    auth0_client_id: str | None = None
    auth0_client_secret: str | None = None
    auth_audience: str | None = None
    jwt_secret: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"

    # Gemini
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_text_model: str = "gemini-2.5-flash"          # 텍스트 대화 + 이미지 이해
    gemini_image_model: str = "gemini-2.0-flash-preview-image-generation"
    gemini_timeout: float = 120.0

    # 대화 컨텍스트에 포함할 최근 메시지 수
    context_window: int = 20
    # 새 대화 제목 = 첫 메시지 앞 N글자
    title_max_length: int = 50

    # Pydantic v2 방식: Config 내부 클래스 대신 model_config 사용
    model_config = SettingsConfigDict(
        # config.py -> core -> geminichat -> 프로젝트 루트 아래의 .env 찾기
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,     # 환경변수 대소문자 무시
        protected_namespaces=(),  # 'model_' 접두사 경고 무시
    )


# 싱글톤 인스턴스: 앱 어디서든 import해서 사용
settings = Settings()
