"""Test runs API router.

Endpoints:
- POST /runs                 -- execute a test run (SSE progress, or blocking)
- GET  /runs                 -- list all runs
- GET  /runs/{id}            -- get a single run
- GET  /runs/{id}/results    -- predictions, ground truth, and metrics
- GET  /runs/{id}/report     -- plain-text report download
- GET  /runs/{id}/export     -- JSON results download
- POST /runs/{id}/exports    -- write both artifacts to the export directory
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import duckdb
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from evalbench.dependencies import get_cursor, get_evaluation_runner, get_export_service
from evalbench.models.run import (
    ExportPaths,
    RunCreateRequest,
    RunListResponse,
    RunResponse,
    RunResults,
)
from evalbench.services import run_store
from evalbench.services.evaluation_runner import DatasetNotFoundError, EvaluationRunner
from evalbench.services.export import (
    ExportService,
    build_export_document,
    json_export_filename,
    render_export_json,
    report_filename,
)
from evalbench.services.metrics import format_metrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runs", tags=["runs"])


def _get_run_or_404(cursor, run_id: str) -> RunResponse:
    run = run_store.get_run(cursor, run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


def _get_results_or_409(cursor, run: RunResponse) -> RunResults:
    results = run_store.get_run_results(cursor, run.id)
    if results is None:
        raise HTTPException(
            status_code=409,
            detail=f"Run has no results (status: {run.status})",
        )
    return results


def _model_name(run: RunResponse) -> str:
    return (run.config or {}).get("model_name", run.name)


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.post("")
async def create_run(
    request: RunCreateRequest,
    stream: bool = Query(True),
    runner: EvaluationRunner = Depends(get_evaluation_runner),
):
    """Execute a test run against a stored dataset.

    With ``stream=true`` (default) streams ``text/event-stream`` events,
    each a JSON :class:`RunProgress` payload with ``run_id``, ``stage``,
    ``progress``, ``message``, ``current``, and ``total`` fields.  With
    ``stream=false`` blocks until the run finishes and returns the run.
    """
    try:
        pending = runner.create_run(request)
    except DatasetNotFoundError:
        raise HTTPException(status_code=404, detail="Dataset not found")

    if not stream:
        async for _progress in runner.execute(pending):
            pass
        cursor = runner.db.connection.cursor()
        try:
            return _get_run_or_404(cursor, pending.run_id)
        finally:
            cursor.close()

    async def progress_stream():
        async for progress in runner.execute(pending):
            yield f"data: {progress.model_dump_json()}\n\n"

    return StreamingResponse(
        progress_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("", response_model=RunListResponse)
def list_runs(
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> RunListResponse:
    """Return all runs ordered by creation date (newest first)."""
    return RunListResponse(runs=run_store.list_runs(cursor))


@router.get("/{run_id}", response_model=RunResponse)
def get_run(
    run_id: str,
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> RunResponse:
    """Return a single run by ID, or 404."""
    return _get_run_or_404(cursor, run_id)


@router.get("/{run_id}/results", response_model=RunResults)
def get_results(
    run_id: str,
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> RunResults:
    """Return the labels and metrics of a completed run.

    404 if the run is unknown, 409 if it has not produced results.
    """
    run = _get_run_or_404(cursor, run_id)
    return _get_results_or_409(cursor, run)


@router.get("/{run_id}/report", response_class=PlainTextResponse)
def download_report(
    run_id: str,
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> PlainTextResponse:
    """Return the plain-text evaluation report as a download."""
    run = _get_run_or_404(cursor, run_id)
    results = _get_results_or_409(cursor, run)
    filename = report_filename(datetime.now(timezone.utc))
    return PlainTextResponse(
        format_metrics(results.metrics), headers=_attachment(filename)
    )


@router.get("/{run_id}/export")
def download_export(
    run_id: str,
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> Response:
    """Return the JSON results document as a download."""
    run = _get_run_or_404(cursor, run_id)
    results = _get_results_or_409(cursor, run)
    document = build_export_document(results, _model_name(run), run.dataset_name)
    return Response(
        render_export_json(document),
        media_type="application/json",
        headers=_attachment(json_export_filename(document.timestamp)),
    )


@router.post("/{run_id}/exports", response_model=ExportPaths)
def write_exports(
    run_id: str,
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
    export_service: ExportService = Depends(get_export_service),
) -> ExportPaths:
    """Write the JSON export and text report to the export directory."""
    run = _get_run_or_404(cursor, run_id)
    results = _get_results_or_409(cursor, run)
    return export_service.write_all(results, _model_name(run), run.dataset_name)
