"""EvalBench FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from evalbench.config import get_settings
from evalbench.repositories.duckdb_repo import DuckDBRepo
from evalbench.repositories.storage import StorageBackend
from evalbench.services.export import ExportService
from evalbench.services.prediction import PredictionService, build_fallback

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown.

    On startup:
    - Create DuckDB connection and initialize schema.
    - Create StorageBackend and ExportService.
    - Create a shared HTTP client and the PredictionService with the
      configured fallback strategy.
    - Store all services on app.state for dependency injection.

    On shutdown:
    - Close the HTTP client.
    - Close DuckDB connection.
    """
    settings = get_settings()

    # Database
    db = DuckDBRepo(settings.db_path)
    db.initialize_schema()
    app.state.db = db

    # Storage and exports
    storage = StorageBackend()
    app.state.storage = storage
    app.state.export_service = ExportService(storage, str(settings.export_dir))

    # Prediction acquisition (scoring endpoints are called over HTTP)
    http_client = httpx.AsyncClient(timeout=settings.prediction_timeout)
    app.state.prediction_service = PredictionService(
        fallback=build_fallback(settings),
        timeout=settings.prediction_timeout,
        client=http_client,
    )
    logger.info("Prediction fallback strategy: %s", settings.fallback_strategy)

    yield

    # Shutdown
    await http_client.aclose()
    db.connection.execute("CHECKPOINT")  # Flush WAL to disk before container stops
    db.close()


app = FastAPI(
    title="EvalBench",
    description="Classification model evaluation service",
    version="0.1.0",
    lifespan=lifespan,
)

# In Docker behind a reverse proxy (same origin): no CORS needed.
# In local dev: allow the frontend dev server origin.
settings = get_settings()
if not settings.behind_proxy:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Router includes
from evalbench.routers import datasets, metrics, runs  # noqa: E402

app.include_router(datasets.router)
app.include_router(metrics.router)
app.include_router(runs.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "ok"}
