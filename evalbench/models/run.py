"""Pydantic models for test runs, results, and exports."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from evalbench.models.metrics import Label, Metrics

RunStatus = Literal["pending", "running", "completed", "failed"]


class ModelConfig(BaseModel):
    """How predictions are obtained for a run.

    - ``upload``: predictions come from each record's ``label`` field.
    - ``api``: each record is POSTed to ``api_endpoint``.
    """

    model_config = ConfigDict(protected_namespaces=())

    type: Literal["upload", "api"] = "upload"
    model_name: str
    api_endpoint: str | None = None
    api_key: str | None = None

    @model_validator(mode="after")
    def _require_endpoint(self) -> "ModelConfig":
        if self.type == "api" and not self.api_endpoint:
            raise ValueError("api_endpoint is required for api models")
        return self

    def public_dump(self) -> dict:
        """Config as persisted: the API key is never stored."""
        return self.model_dump(exclude={"api_key"})


class RunCreateRequest(BaseModel):
    """Request body for ``POST /runs``."""

    name: str | None = None
    model: ModelConfig
    dataset_id: str


class RunResponse(BaseModel):
    """Single test run record."""

    model_config = ConfigDict(protected_namespaces=())

    id: str
    name: str
    model_type: str
    config: dict | None = None
    dataset_name: str
    dataset_type: str
    status: RunStatus
    error: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class RunListResponse(BaseModel):
    """List of test runs returned by the API."""

    runs: list[RunResponse]


class RunResults(BaseModel):
    """Raw labels and computed metrics for a completed run."""

    predictions: list[Label]
    ground_truth: list[Label]
    metrics: Metrics


class RunProgress(BaseModel):
    """Progress update emitted while a run executes (SSE payload).

    *stage* is one of ``"preparing"``, ``"predicting"``,
    ``"calculating"``, ``"complete"``, ``"failed"``.
    """

    run_id: str
    stage: str
    progress: float
    message: str
    current: int = 0
    total: int = 0


class ExportResults(BaseModel):
    predictions: list[Label]
    ground_truth: list[Label]
    metrics: Metrics


class ExportDocument(BaseModel):
    """Self-contained JSON export of one run."""

    model: str
    dataset: str
    timestamp: datetime
    results: ExportResults


class ExportPaths(BaseModel):
    """Locations of the artifacts written by ``POST /runs/{id}/exports``."""

    json_path: str
    report_path: str
