"""Concurrency controls for record-store fan-out and heavy endpoints.

Cohort ranking resolves every classmate through the record store; the
fan-out is bounded so a large grade does not flood the store.

All middleware uses pure ASGI implementation (not BaseHTTPMiddleware)
to preserve SSE streaming compatibility.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Bounded fan-out ──────────────────────────────────────────

async def bounded_gather(
    factories: Iterable[Callable[[], Awaitable[T]]],
    limit: int,
) -> list[T | BaseException]:
    """Run coroutine factories with at most *limit* in flight.

    Results keep the input order; failures are returned in place (like
    ``asyncio.gather(..., return_exceptions=True)``) so one failing read
    never cancels its siblings.
    """
    sem = asyncio.Semaphore(max(1, limit))

    async def _run(factory: Callable[[], Awaitable[T]]) -> T:
        async with sem:
            return await factory()

    return await asyncio.gather(*(_run(f) for f in factories), return_exceptions=True)


# ── Heavy endpoint concurrency middleware (pure ASGI) ─────────
# Cohort-ranking endpoints trigger one resolver pass per classmate.
# Requests that exceed the limit receive 503 instead of queuing forever.

_MAX_CONCURRENT_HEAVY = 4  # per worker
_heavy_semaphore: asyncio.Semaphore | None = None


def _is_heavy(path: str) -> bool:
    return path.startswith("/api/students/") and (
        path.endswith("/metrics") or path.endswith("/reports")
    )


def _get_heavy_semaphore() -> asyncio.Semaphore:
    global _heavy_semaphore
    if _heavy_semaphore is None:
        _heavy_semaphore = asyncio.Semaphore(_MAX_CONCURRENT_HEAVY)
        logger.info("Heavy endpoint semaphore initialized (max=%d)", _MAX_CONCURRENT_HEAVY)
    return _heavy_semaphore


class ConcurrencyLimitMiddleware:
    """Pure ASGI middleware — reject heavy requests when the worker is at capacity.

    Returns HTTP 503 with Retry-After header for overloaded endpoints.
    Batch control, progress and health endpoints pass through unaffected.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not _is_heavy(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        sem = _get_heavy_semaphore()
        if sem.locked():
            logger.warning("Concurrency limit reached for %s — returning 503", scope.get("path"))
            body: dict[str, Any] = {
                "detail": "Server busy — too many concurrent ranking requests. Please retry."
            }
            await send({
                "type": "http.response.start",
                "status": 503,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"retry-after", b"5"),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": json.dumps(body).encode(),
            })
            return

        async with sem:
            await self.app(scope, receive, send)
