from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from geminichat.core.config import settings


def _pool_options(database_url: str) -> dict:
    """sqlite 드라이버는 pool_size/max_overflow를 받지 않음"""
    if database_url.startswith("sqlite"):
        return {}
    return {"pool_size": 5, "max_overflow": 10}


# 1. Async 엔진 생성
#    - pool_size: 커넥션 풀에 유지할 연결 수
#    - max_overflow: pool_size 초과 시 추가 허용 연결 수
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    **_pool_options(settings.database_url),
)


# 2. 세션 팩토리
#    - expire_on_commit=False: commit 후에도 객체 속성에 접근 가능
#      (True면 commit 후 속성 접근 시 LazyLoad → async에서 에러 발생)
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


# 3. Base 클래스: 모든 모델이 상속받는 부모
class Base(DeclarativeBase):
    pass


# 4. DB 세션 DI (Dependency Injection)
#    요청마다 새 세션: 요청 간 공유 상태는 커넥션 풀뿐
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
