"""FastAPI dependency injection for DuckDB and application services."""

from collections.abc import Generator

import duckdb
from fastapi import Depends, Request

from evalbench.ingestion.dataset_parser import DatasetLoader
from evalbench.repositories.duckdb_repo import DuckDBRepo
from evalbench.repositories.storage import StorageBackend
from evalbench.services.evaluation_runner import EvaluationRunner
from evalbench.services.export import ExportService
from evalbench.services.prediction import PredictionService


def get_db(request: Request) -> DuckDBRepo:
    """Return the application-wide DuckDBRepo stored on app.state."""
    return request.app.state.db


def get_cursor(
    db: DuckDBRepo = Depends(get_db),
) -> Generator[duckdb.DuckDBPyConnection, None, None]:
    """Yield a DuckDB cursor, closing it after the request."""
    cursor = db.connection.cursor()
    try:
        yield cursor
    finally:
        cursor.close()


def get_storage(request: Request) -> StorageBackend:
    """Return the application-wide StorageBackend stored on app.state."""
    return request.app.state.storage


def get_prediction_service(request: Request) -> PredictionService:
    """Return the application-wide PredictionService stored on app.state."""
    return request.app.state.prediction_service


def get_export_service(request: Request) -> ExportService:
    """Return the application-wide ExportService stored on app.state."""
    return request.app.state.export_service


def get_dataset_loader(
    storage: StorageBackend = Depends(get_storage),
) -> DatasetLoader:
    """Compose a DatasetLoader from the storage backend."""
    return DatasetLoader(storage)


def get_evaluation_runner(
    db: DuckDBRepo = Depends(get_db),
    prediction_service: PredictionService = Depends(get_prediction_service),
) -> EvaluationRunner:
    """Compose an EvaluationRunner from its collaborators."""
    return EvaluationRunner(db=db, prediction_service=prediction_service)
