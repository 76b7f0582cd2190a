"""Pydantic models for dataset creation and responses."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

DatasetType = Literal["csv", "json", "generated"]


class DatasetCreateRequest(BaseModel):
    """Request body for creating a test dataset.

    Exactly one source is used, depending on ``type``:

    - ``json``: ``json_data`` (inline JSON text) or ``file_path``.
    - ``csv``: ``file_path`` to a CSV file with a header row.
    - ``generated``: built-in sample records; no source needed.
    """

    name: str
    type: DatasetType = "json"
    file_path: str | None = None
    json_data: str | None = None


class DatasetResponse(BaseModel):
    """Single dataset record returned by the API."""

    id: str
    name: str
    type: DatasetType
    size: int
    created_at: datetime


class DatasetDetailResponse(DatasetResponse):
    """Dataset record including its parsed records."""

    data: list[dict[str, Any]]


class DatasetListResponse(BaseModel):
    """List of datasets returned by the API."""

    datasets: list[DatasetResponse]
