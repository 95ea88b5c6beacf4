from fastapi import FastAPI
from contextlib import asynccontextmanager
from geminichat.core.dependencies import init_connections, close_connections
from geminichat.core.database import engine
from geminichat.core.metrics import RequestMetricsMiddleware, metrics_store
from geminichat.router import chat, conversation

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await init_connections()
        yield
    finally:
        await close_connections()
        # DB 연결 풀 정리
        await engine.dispose()

app = FastAPI(
    title="Gemini Chat API",
    description="Gemini 기반 모바일 채팅 백엔드 — 대화 기록 저장 + 이미지 생성/이해",
    version="0.1.0",
    lifespan=lifespan
)

# 미들웨어 등록 (모든 요청을 자동 계측)
app.add_middleware(RequestMetricsMiddleware)

app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
app.include_router(conversation.router, prefix="/api/conversations", tags=["Conversations"])

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/api/metrics", tags=["Monitoring"])
async def get_metrics():
    """실시간 메트릭 조회 — 요청 수, 응답 시간, Gemini 호출 경로별 분포 등"""
    return metrics_store.summary()
