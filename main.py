"""FastAPI entry point for the phase report service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from services.batch_scheduler import get_batch_scheduler
from services.concurrency import ConcurrencyLimitMiddleware
from services.middleware import RequestIdLogFilter, RequestIdMiddleware
from services.record_store_client import get_record_store_client

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdLogFilter())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop shared resources."""
    client = get_record_store_client()
    if not settings.use_mock_data:
        await client.start()
    scheduler = get_batch_scheduler()

    yield

    await scheduler.shutdown()
    await client.close()


app = FastAPI(
    title="Phase Report Service",
    description="Scoring, cohort ranking and batch export of student phase reports",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (added innermost first) ──────────────────
# Order matters: CORS → RequestId → ConcurrencyLimit → route handler
app.add_middleware(ConcurrencyLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register routers ────────────────────────────────────────
from api.health import router as health_router  # noqa: E402
from api.reports import router as reports_router  # noqa: E402
from api.students import router as students_router  # noqa: E402

app.include_router(health_router)
app.include_router(reports_router)
app.include_router(students_router)


if __name__ == "__main__":
    # Batch progress lives in-process, so a single worker is required.
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        timeout_keep_alive=120,
    )
