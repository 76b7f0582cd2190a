"""Stateless metrics API router.

Endpoints:
- POST /metrics         -- compute metrics for predictions vs. ground truth
- POST /metrics/report  -- the same, rendered as a plain-text report
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse

from evalbench.models.metrics import Metrics, MetricsRequest
from evalbench.services.metrics import (
    LengthMismatchError,
    calculate_metrics,
    format_metrics,
)

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _compute(request: MetricsRequest) -> Metrics:
    try:
        return calculate_metrics(request.predictions, request.ground_truth)
    except LengthMismatchError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("", response_model=Metrics)
def compute_metrics(request: MetricsRequest) -> Metrics:
    """Return accuracy, weighted precision/recall/F1, and the confusion matrix."""
    return _compute(request)


@router.post("/report", response_class=PlainTextResponse)
def compute_report(request: MetricsRequest) -> str:
    """Return the plain-text evaluation report."""
    return format_metrics(_compute(request))
