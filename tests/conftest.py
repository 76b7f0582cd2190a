"""Shared pytest fixtures for EvalBench tests."""

import json
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI

from evalbench.repositories.duckdb_repo import DuckDBRepo
from evalbench.repositories.storage import StorageBackend
from evalbench.routers import datasets, metrics, runs
from evalbench.services.export import ExportService
from evalbench.services.prediction import ConstantFallback, PredictionService

SCORING_URL = "http://scoring.test/predict"


@pytest.fixture()
def tmp_db_path(tmp_path: Path) -> Path:
    """Return a temporary DuckDB file path."""
    return tmp_path / "test.duckdb"


@pytest.fixture()
def db(tmp_db_path: Path) -> DuckDBRepo:
    """Create a DuckDBRepo with a temporary database, initialize schema, then close."""
    repo = DuckDBRepo(tmp_db_path)
    repo.initialize_schema()
    yield repo
    repo.close()


def scoring_handler(request: httpx.Request) -> httpx.Response:
    """Fake scoring endpoint: echoes the record's ``answer`` field.

    Records with ``"fail": true`` get a 500 response.
    """
    record = json.loads(request.content)
    if record.get("fail"):
        return httpx.Response(500, json={"error": "boom"})
    return httpx.Response(200, json={"prediction": record["answer"]})


@pytest.fixture()
async def scoring_client() -> httpx.AsyncClient:
    """HTTP client whose requests are served by :func:`scoring_handler`."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(scoring_handler)) as client:
        yield client


@pytest.fixture()
def prediction_service(scoring_client: httpx.AsyncClient) -> PredictionService:
    """PredictionService with a deterministic ``-1`` fallback label."""
    return PredictionService(fallback=ConstantFallback(-1), client=scoring_client)


@pytest.fixture()
def export_dir(tmp_path: Path) -> Path:
    return tmp_path / "exports"


@pytest.fixture()
async def app_client(
    db: DuckDBRepo,
    prediction_service: PredictionService,
    export_dir: Path,
) -> httpx.AsyncClient:
    """Create a fully wired FastAPI test app and yield an async HTTP client."""
    test_app = FastAPI()

    storage = StorageBackend()
    test_app.state.db = db
    test_app.state.storage = storage
    test_app.state.export_service = ExportService(storage, str(export_dir))
    test_app.state.prediction_service = prediction_service

    test_app.include_router(datasets.router)
    test_app.include_router(metrics.router)
    test_app.include_router(runs.router)

    @test_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=test_app),
        base_url="http://testserver",
    ) as client:
        yield client
