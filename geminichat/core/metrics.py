import time
from collections import defaultdict
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from geminichat.core.logger import get_logger, generate_request_id, request_id_var

logger = get_logger("metrics")


class MetricsStore:
    """메트릭 저장소 — 인메모리 집계 (프로세스 단위)"""

    def __init__(self):
        self.total_requests = 0
        self.by_status = defaultdict(int)     # {200: 42, 401: 3, 500: 1}
        self.by_path = defaultdict(int)        # {"POST /api/chat/": 30, ...}
        self.total_duration_ms = 0.0
        self.slowest = []                      # 가장 느린 요청 Top 5
        self.by_route = defaultdict(int)       # {"chat": 20, "image_generation": 3, "image_query": 2}
        self.image_fallbacks = 0               # 이미지 생성 실패 → 텍스트 응답 전환 횟수

    def record(self, method: str, path: str, status: int, duration_ms: float):
        self.total_requests += 1
        self.by_status[status] += 1
        self.by_path[f"{method} {path}"] += 1
        self.total_duration_ms += duration_ms

        self.slowest.append({
            "duration_ms": round(duration_ms, 1),
            "method": method,
            "path": path,
            "status": status,
        })
        self.slowest.sort(key=lambda x: x["duration_ms"], reverse=True)
        self.slowest = self.slowest[:5]

    def record_dispatch(self, route: str, fallback: bool = False):
        """Dispatcher가 어떤 Gemini 호출 경로를 탔는지 집계"""
        self.by_route[route] += 1
        if fallback:
            self.image_fallbacks += 1

    def summary(self) -> dict:
        avg = round(self.total_duration_ms / self.total_requests, 1) if self.total_requests else 0
        return {
            "total_requests": self.total_requests,
            "avg_response_time_ms": avg,
            "by_status": dict(self.by_status),
            "by_path": dict(self.by_path),
            "slowest_top5": self.slowest,
            "by_route": dict(self.by_route),
            "image_fallbacks": self.image_fallbacks,
        }


# 싱글톤 인스턴스
metrics_store = MetricsStore()


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """
    모든 HTTP 요청을 자동 계측하는 미들웨어

    1. 요청마다 고유 request_id 부여 (로그 상관관계용)
    2. 응답 시간 측정 + 메트릭 집계
    3. JSON 액세스 로그 출력
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = generate_request_id()
        request_id_var.set(req_id)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        metrics_store.record(
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
        )

        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {duration_ms:.0f}ms",
            extra={"extra_data": {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 1),
            }}
        )

        # 응답 헤더에 request_id 포함 (디버깅용)
        response.headers["X-Request-ID"] = req_id

        return response
