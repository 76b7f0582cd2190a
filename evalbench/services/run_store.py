"""DuckDB queries for datasets, test runs, and test results.

Every function takes a DuckDB cursor so callers control the cursor
lifecycle (``db.connection.cursor()`` ... ``cursor.close()``).
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from evalbench.models.dataset import DatasetDetailResponse, DatasetResponse
from evalbench.models.metrics import Metrics
from evalbench.models.run import ModelConfig, RunResponse, RunResults, RunStatus

_RUN_COLUMNS = (
    "id, name, model_type, model_config, dataset_name, dataset_type, "
    "status, error, created_at, completed_at"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ------------------------------------------------------------------
# Datasets
# ------------------------------------------------------------------


def insert_dataset(
    cursor, name: str, dataset_type: str, records: list[dict[str, Any]]
) -> str:
    """Store a parsed dataset and return its generated id."""
    dataset_id = str(uuid.uuid4())
    cursor.execute(
        "INSERT INTO datasets (id, name, type, data, size, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        [dataset_id, name, dataset_type, json.dumps(records), len(records), _utcnow()],
    )
    return dataset_id


def list_datasets(cursor) -> list[DatasetResponse]:
    """Return all datasets ordered by creation date (newest first)."""
    rows = cursor.execute(
        "SELECT id, name, type, size, created_at "
        "FROM datasets ORDER BY created_at DESC"
    ).fetchall()
    return [
        DatasetResponse(id=r[0], name=r[1], type=r[2], size=r[3], created_at=r[4])
        for r in rows
    ]


def get_dataset(cursor, dataset_id: str) -> DatasetDetailResponse | None:
    """Return a dataset with its records, or ``None`` if unknown."""
    row = cursor.execute(
        "SELECT id, name, type, size, created_at, data FROM datasets WHERE id = ?",
        [dataset_id],
    ).fetchone()
    if row is None:
        return None
    return DatasetDetailResponse(
        id=row[0],
        name=row[1],
        type=row[2],
        size=row[3],
        created_at=row[4],
        data=json.loads(row[5]),
    )


# ------------------------------------------------------------------
# Runs
# ------------------------------------------------------------------


def insert_run(
    cursor,
    name: str,
    model: ModelConfig,
    dataset_name: str,
    dataset_type: str,
) -> str:
    """Create a ``pending`` run and return its generated id."""
    run_id = str(uuid.uuid4())
    cursor.execute(
        f"INSERT INTO test_runs ({_RUN_COLUMNS}) "
        "VALUES (?, ?, ?, ?, ?, ?, 'pending', NULL, ?, NULL)",
        [
            run_id,
            name,
            model.type,
            json.dumps(model.public_dump()),
            dataset_name,
            dataset_type,
            _utcnow(),
        ],
    )
    return run_id


def update_run_status(
    cursor, run_id: str, status: RunStatus, error: str | None = None
) -> None:
    """Set a run's status; terminal statuses also stamp ``completed_at``."""
    completed_at = _utcnow() if status in ("completed", "failed") else None
    cursor.execute(
        "UPDATE test_runs SET status = ?, error = ?, completed_at = ? WHERE id = ?",
        [status, error, completed_at, run_id],
    )


def _row_to_run(row) -> RunResponse:
    return RunResponse(
        id=row[0],
        name=row[1],
        model_type=row[2],
        config=json.loads(row[3]) if row[3] else None,
        dataset_name=row[4],
        dataset_type=row[5],
        status=row[6],
        error=row[7],
        created_at=row[8],
        completed_at=row[9],
    )


def get_run(cursor, run_id: str) -> RunResponse | None:
    """Return a single run, or ``None`` if unknown."""
    row = cursor.execute(
        f"SELECT {_RUN_COLUMNS} FROM test_runs WHERE id = ?", [run_id]
    ).fetchone()
    return _row_to_run(row) if row is not None else None


def list_runs(cursor) -> list[RunResponse]:
    """Return all runs ordered by creation date (newest first)."""
    rows = cursor.execute(
        f"SELECT {_RUN_COLUMNS} FROM test_runs ORDER BY created_at DESC"
    ).fetchall()
    return [_row_to_run(r) for r in rows]


# ------------------------------------------------------------------
# Results
# ------------------------------------------------------------------


def insert_results(cursor, run_id: str, results: RunResults) -> str:
    """Persist the labels and metrics of a finished run."""
    result_id = str(uuid.uuid4())
    cursor.execute(
        "INSERT INTO test_results "
        "(id, test_run_id, predictions, ground_truth, metrics, confusion_matrix, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            result_id,
            run_id,
            json.dumps(results.predictions),
            json.dumps(results.ground_truth),
            results.metrics.model_dump_json(),
            json.dumps(results.metrics.confusion_matrix),
            _utcnow(),
        ],
    )
    return result_id


def get_run_results(cursor, run_id: str) -> RunResults | None:
    """Return the stored results of a run, or ``None`` if it has none."""
    row = cursor.execute(
        "SELECT predictions, ground_truth, metrics FROM test_results "
        "WHERE test_run_id = ? ORDER BY created_at DESC LIMIT 1",
        [run_id],
    ).fetchone()
    if row is None:
        return None
    return RunResults(
        predictions=json.loads(row[0]),
        ground_truth=json.loads(row[1]),
        metrics=Metrics.model_validate_json(row[2]),
    )
