import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context
from geminichat.core.config import settings
from geminichat.core.database import Base
from geminichat.models.conversation import Conversation, Message  # noqa: F401  메타데이터 등록

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# alembic.ini 대신 .env / 환경변수의 DATABASE_URL 사용
config.set_main_option("sqlalchemy.url", settings.database_url)

target_metadata = Base.metadata


def run_migrations_offline():
    """SQL 스크립트만 출력 (DBA 검토용)"""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    # RLS 정책은 autogenerate 대상이 아니므로 버전 파일에서 직접 관리
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online():
    # 마이그레이션은 일회성: 커넥션 풀 불필요
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
