"""Test run orchestration service with streaming progress.

Coordinates dataset lookup, prediction acquisition, metrics
computation, and result persistence.  Exposed to the API layer as an
SSE-compatible async generator via :meth:`EvaluationRunner.execute`.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from evalbench.ingestion.dataset_parser import extract_ground_truth
from evalbench.models.metrics import Label
from evalbench.models.run import ModelConfig, RunCreateRequest, RunProgress, RunResults
from evalbench.repositories.duckdb_repo import DuckDBRepo
from evalbench.services import run_store
from evalbench.services.metrics import calculate_metrics
from evalbench.services.prediction import PredictionService

logger = logging.getLogger(__name__)

# Progress percentages for each stage; predictions fill 40..80.
_PREPARING = 20.0
_PREDICTING_START = 40.0
_PREDICTING_SPAN = 40.0
_CALCULATING = 85.0

RUN_ABORTED_MESSAGE = "Run aborted before completion"


class DatasetNotFoundError(LookupError):
    """Raised when a run references an unknown dataset."""


@dataclass
class PendingRun:
    """A run that has been recorded as ``pending`` but not yet executed."""

    run_id: str
    name: str
    model: ModelConfig
    records: list[dict[str, Any]]


class EvaluationRunner:
    """Orchestrates ground truth -> predictions -> metrics -> persistence.

    Both collaborators are injected:

    * *db* -- DuckDB repository holding datasets, runs, and results.
    * *prediction_service* -- yields one predicted label per record.
    """

    def __init__(self, db: DuckDBRepo, prediction_service: PredictionService) -> None:
        self.db = db
        self.prediction_service = prediction_service

    def create_run(self, request: RunCreateRequest) -> PendingRun:
        """Record a ``pending`` run for *request*.

        Raises :class:`DatasetNotFoundError` before anything is written
        when the dataset does not exist.
        """
        cursor = self.db.connection.cursor()
        try:
            dataset = run_store.get_dataset(cursor, request.dataset_id)
            if dataset is None:
                raise DatasetNotFoundError(request.dataset_id)
            name = request.name or f"{request.model.model_name} on {dataset.name}"
            run_id = run_store.insert_run(
                cursor, name, request.model, dataset.name, dataset.type
            )
        finally:
            cursor.close()
        return PendingRun(run_id=run_id, name=name, model=request.model, records=dataset.data)

    async def execute(self, run: PendingRun) -> AsyncIterator[RunProgress]:
        """Execute *run*, yielding progress events.

        The final event has stage ``"complete"`` or ``"failed"``; the
        run's stored status matches it.  Closing the generator before a
        terminal status is written marks the run ``failed``.
        """
        total = len(run.records)
        self._set_status(run.run_id, "running")
        logger.info("Run %s started: %d samples", run.run_id, total)
        finished = False

        try:
            try:
                yield RunProgress(
                    run_id=run.run_id,
                    stage="preparing",
                    progress=_PREPARING,
                    message="Preparing data...",
                    total=total,
                )
                ground_truth = [
                    extract_ground_truth(record, i) for i, record in enumerate(run.records)
                ]

                yield RunProgress(
                    run_id=run.run_id,
                    stage="predicting",
                    progress=_PREDICTING_START,
                    message="Sending prediction requests...",
                    total=total,
                )
                predictions: list[Label] = []
                async for label in self.prediction_service.iter_predictions(
                    run.model, run.records
                ):
                    predictions.append(label)
                    done = len(predictions)
                    yield RunProgress(
                        run_id=run.run_id,
                        stage="predicting",
                        progress=_PREDICTING_START + _PREDICTING_SPAN * done / total,
                        message=f"Predicted {done}/{total} samples",
                        current=done,
                        total=total,
                    )

                yield RunProgress(
                    run_id=run.run_id,
                    stage="calculating",
                    progress=_CALCULATING,
                    message="Calculating metrics...",
                    current=total,
                    total=total,
                )
                metrics = calculate_metrics(predictions, ground_truth)
                results = RunResults(
                    predictions=predictions, ground_truth=ground_truth, metrics=metrics
                )
                self._store_results(run.run_id, results)
                finished = True

            except Exception as e:
                self._set_status(run.run_id, "failed", error=str(e))
                finished = True
                logger.error(
                    "Run %s failed:\n%s", run.run_id, traceback.format_exc()
                )
                yield RunProgress(
                    run_id=run.run_id,
                    stage="failed",
                    progress=100.0,
                    message=str(e),
                    total=total,
                )
                return

            logger.info(
                "Run %s completed: accuracy=%.4f over %d samples",
                run.run_id,
                metrics.accuracy,
                total,
            )
            yield RunProgress(
                run_id=run.run_id,
                stage="complete",
                progress=100.0,
                message="Test completed!",
                current=total,
                total=total,
            )
        finally:
            # Generator closed early (client disconnect, cancellation).
            if not finished:
                self._set_status(run.run_id, "failed", error=RUN_ABORTED_MESSAGE)
                logger.warning("Run %s aborted before completion", run.run_id)

    async def run(self, request: RunCreateRequest) -> RunProgress:
        """Create and execute a run, returning only the final event."""
        final: RunProgress | None = None
        async for progress in self.execute(self.create_run(request)):
            final = progress
        if final is None:
            raise RuntimeError("Run produced no progress events")
        return final

    def _set_status(self, run_id: str, status: str, error: str | None = None) -> None:
        cursor = self.db.connection.cursor()
        try:
            run_store.update_run_status(cursor, run_id, status, error)
        finally:
            cursor.close()

    def _store_results(self, run_id: str, results: RunResults) -> None:
        cursor = self.db.connection.cursor()
        try:
            run_store.insert_results(cursor, run_id, results)
            run_store.update_run_status(cursor, run_id, "completed")
        finally:
            cursor.close()
        logger.info("Stored results for run %s", run_id)
