"""Datasets API router.

Endpoints:
- POST /datasets        -- create a test dataset from JSON, CSV, or sample data
- GET  /datasets        -- list all datasets
- GET  /datasets/{id}   -- get a single dataset with its records
"""

from __future__ import annotations

import logging

import duckdb
from fastapi import APIRouter, Depends, HTTPException

from evalbench.dependencies import get_cursor, get_dataset_loader
from evalbench.ingestion.base_parser import DatasetParseError
from evalbench.ingestion.dataset_parser import DatasetLoader
from evalbench.models.dataset import (
    DatasetCreateRequest,
    DatasetDetailResponse,
    DatasetListResponse,
)
from evalbench.services import run_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/datasets", tags=["datasets"])


@router.post("", response_model=DatasetDetailResponse, status_code=201)
def create_dataset(
    request: DatasetCreateRequest,
    loader: DatasetLoader = Depends(get_dataset_loader),
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> DatasetDetailResponse:
    """Parse and store a test dataset.

    Every record must carry a ground-truth label in one of the
    ``truth``, ``label`` or ``ground_truth`` fields.
    """
    try:
        records = loader.load(request)
    except DatasetParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    dataset_id = run_store.insert_dataset(cursor, request.name, request.type, records)
    logger.info("Created dataset %s (%s)", dataset_id, request.name)
    return run_store.get_dataset(cursor, dataset_id)


@router.get("", response_model=DatasetListResponse)
def list_datasets(
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> DatasetListResponse:
    """Return all datasets ordered by creation date (newest first)."""
    return DatasetListResponse(datasets=run_store.list_datasets(cursor))


@router.get("/{dataset_id}", response_model=DatasetDetailResponse)
def get_dataset(
    dataset_id: str,
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),
) -> DatasetDetailResponse:
    """Return a single dataset by ID, or 404."""
    dataset = run_store.get_dataset(cursor, dataset_id)
    if dataset is None:
        raise HTTPException(status_code=404, detail="Dataset not found")
    return dataset
