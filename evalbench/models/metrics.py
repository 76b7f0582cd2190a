"""Response models for the classification metrics engine."""

from pydantic import BaseModel, ConfigDict

# Labels are discrete class identifiers compared by value equality.
# bool comes first so JSON true/false stay booleans instead of 0/1.
Label = bool | int | float | str


class ClassMetric(BaseModel):
    """Per-class precision, recall, F1, and support."""

    model_config = ConfigDict(frozen=True)

    precision: float
    recall: float
    f1_score: float
    support: int


class Metrics(BaseModel):
    """Full classification metrics payload.

    Top-level ``precision``, ``recall`` and ``f1_score`` are
    support-weighted averages of the per-class values.  ``labels`` lists
    the label universe in confusion-matrix row/column order, and
    ``class_metrics`` is keyed by ``str(label)`` in that same order.
    """

    model_config = ConfigDict(frozen=True)

    accuracy: float
    precision: float
    recall: float
    f1_score: float
    confusion_matrix: list[list[int]]
    labels: list[Label] = []
    class_metrics: dict[str, ClassMetric] | None = None


class MetricsRequest(BaseModel):
    """Request body for the stateless ``POST /metrics`` endpoints."""

    predictions: list[Label]
    ground_truth: list[Label]
