"""
Per-request accounting.

Every HTTP response is stamped with ``X-Response-Time-Ms`` and
``X-Query-Count`` and tallied by status class, with Access Gate
rejections (401 and 403) counted separately.  ``/metrics`` reports the
tallies.  They live in process memory: each worker keeps its own and a
restart clears them.
"""
import logging
import time
from collections import Counter

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.database import query_count_var

logger = logging.getLogger(__name__)


class RequestStats:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.total = 0
        self.by_status: Counter[str] = Counter()
        self.unauthorized = 0
        self.forbidden = 0
        self.slowest_ms = 0.0

    def record(self, status: int, elapsed_ms: float) -> None:
        self.total += 1
        self.by_status[f"{status // 100}xx"] += 1
        if status == 401:
            self.unauthorized += 1
        elif status == 403:
            self.forbidden += 1
        self.slowest_ms = max(self.slowest_ms, elapsed_ms)

    def snapshot(self) -> dict:
        return {
            "total": self.total,
            "by_status": dict(self.by_status),
            "unauthorized": self.unauthorized,
            "forbidden": self.forbidden,
            "slowest_ms": self.slowest_ms,
        }


request_stats = RequestStats()


class RequestAccounting:
    """
    Pure ASGI middleware.  Runs the handler in the caller's context, so
    the query count set by the engine listener is readable here.
    """

    def __init__(self, app: ASGIApp, stats: RequestStats = request_stats) -> None:
        self.app = app
        self.stats = stats

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        started = time.perf_counter()
        status = 500

        async def stamp(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(elapsed_ms).encode()),
                    (b"x-query-count", str(query_count_var.get()).encode()),
                ]
            await send(message)

        try:
            await self.app(scope, receive, stamp)
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            self.stats.record(status, elapsed_ms)
            logger.debug(
                "%s %s %d %.2fms queries=%d",
                scope["method"], scope["path"], status, elapsed_ms, query_count_var.get(),
            )
