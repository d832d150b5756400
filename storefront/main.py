import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from storefront.config import settings
from storefront.db import PostgresStore, get_pool, init_schema
from storefront.errors import OrderLifecycleError, StoreError
from storefront.memory_store import MemoryStore
from storefront.metrics import render_lifecycle_metrics
from storefront.redis_client import close_redis, get_redis
from storefront.routes import admin, customer, employee

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


async def open_store():
    if settings.store_backend == "memory":
        logger.info("Store backend=memory (single process, not persisted)")
        return MemoryStore()
    pool = await get_pool()
    await init_schema(pool)
    logger.info("Schema ready. Store backend=postgres")
    return PostgresStore(pool)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = await open_store()
    await get_redis()
    yield
    await close_redis()
    await app.state.store.close()


app = FastAPI(title="Storefront Order Lifecycle", lifespan=lifespan)
app.include_router(admin.router)
app.include_router(employee.router)
app.include_router(customer.router)


@app.exception_handler(OrderLifecycleError)
async def lifecycle_error_handler(request: Request, exc: OrderLifecycleError) -> JSONResponse:
    if isinstance(exc, StoreError):
        # Details stay in the log; the transaction has already rolled back
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "detail": "Failed to process request"},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "rejected", "detail": exc.detail},
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint: transitions applied/rejected, deliveries assigned, orders placed."""
    body, content_type = render_lifecycle_metrics()
    return Response(content=body, media_type=content_type)
