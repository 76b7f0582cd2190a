"""Classification metrics engine.

Computes accuracy, a confusion matrix, and per-class precision/recall/F1
by comparing predicted labels to ground-truth labels position by
position.  Aggregate precision/recall/F1 are support-weighted averages.

Every function here is pure: no I/O, no shared state, and every
zero-denominator division resolves to ``0.0`` instead of NaN.
"""

from __future__ import annotations

import math
import numbers
from collections.abc import Sequence

from evalbench.models.metrics import ClassMetric, Label, Metrics


class LengthMismatchError(ValueError):
    """Raised when predictions and ground truth differ in length."""

    def __init__(self, predictions: int, ground_truth: int) -> None:
        super().__init__(
            "Predictions and ground truth must have the same length "
            f"(got {predictions} predictions and {ground_truth} labels)"
        )
        self.predictions = predictions
        self.ground_truth = ground_truth


def _is_number(label: Label) -> bool:
    return isinstance(label, numbers.Real) and not isinstance(label, bool)


def _parses_as_number(label: Label) -> bool:
    try:
        value = float(label)
    except (TypeError, ValueError, OverflowError):
        return False
    return math.isfinite(value)


def _class_keys(labels: list[Label]) -> list[str]:
    """Return the ``class_metrics`` key per label.

    Keys are ``str(label)``; labels whose string forms collide (``1``
    and ``"1"``) fall back to ``repr(label)``.
    """
    names = [str(lbl) for lbl in labels]
    return [
        repr(lbl) if names.count(name) > 1 else name
        for lbl, name in zip(labels, names)
    ]


def _sort_key_for(labels: set[Label]):
    """Pick the total order used for the label universe.

    - every label is a real number: ascending by value
    - every label parses as a number (e.g. CSV strings): numeric ascending
    - otherwise: lexicographic by ``str(label)``

    Values that tie on the primary key (``1`` and ``"1"``) are ordered
    by type name, then string form.
    """
    if all(_is_number(lbl) for lbl in labels):
        return lambda lbl: (lbl, type(lbl).__name__)
    if all(_parses_as_number(lbl) for lbl in labels):
        return lambda lbl: (float(lbl), type(lbl).__name__, str(lbl))
    return lambda lbl: (str(lbl), type(lbl).__name__)


def build_label_index(
    predictions: Sequence[Label],
    ground_truth: Sequence[Label],
) -> tuple[list[Label], dict[Label, int]]:
    """Return the sorted label universe and a label -> index mapping.

    Raises
    ------
    LengthMismatchError
        If the two sequences differ in length.
    """
    if len(predictions) != len(ground_truth):
        raise LengthMismatchError(len(predictions), len(ground_truth))

    observed = set(predictions) | set(ground_truth)
    labels = sorted(observed, key=_sort_key_for(observed))
    label_to_idx = {lbl: i for i, lbl in enumerate(labels)}
    return labels, label_to_idx


def build_confusion_matrix(
    predictions: Sequence[Label],
    ground_truth: Sequence[Label],
    label_to_idx: dict[Label, int],
) -> list[list[int]]:
    """Tally (actual, predicted) pairs into an ``n x n`` count matrix.

    Rows are actual labels, columns are predicted labels.
    """
    n = len(label_to_idx)
    matrix = [[0] * n for _ in range(n)]
    for pred_label, gt_label in zip(predictions, ground_truth):
        matrix[label_to_idx[gt_label]][label_to_idx[pred_label]] += 1
    return matrix


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def derive_metrics(matrix: list[list[int]], labels: list[Label]) -> Metrics:
    """Compute accuracy and per-class/weighted metrics from *matrix*."""
    n = len(labels)
    total = sum(sum(row) for row in matrix)
    correct = sum(matrix[i][i] for i in range(n))
    accuracy = _ratio(correct, total)

    class_metrics: dict[str, ClassMetric] = {}
    weighted_precision = 0.0
    weighted_recall = 0.0
    weighted_f1 = 0.0

    for i, key in enumerate(_class_keys(labels)):
        tp = matrix[i][i]
        support = sum(matrix[i])
        fn = support - tp
        # fp = column sum excluding the diagonal
        fp = sum(matrix[r][i] for r in range(n)) - tp

        precision = _ratio(tp, tp + fp)
        recall = _ratio(tp, tp + fn)
        f1 = _ratio(2 * precision * recall, precision + recall)

        class_metrics[key] = ClassMetric(
            precision=precision,
            recall=recall,
            f1_score=f1,
            support=support,
        )
        weighted_precision += precision * support
        weighted_recall += recall * support
        weighted_f1 += f1 * support

    return Metrics(
        accuracy=accuracy,
        precision=_ratio(weighted_precision, total),
        recall=_ratio(weighted_recall, total),
        f1_score=_ratio(weighted_f1, total),
        confusion_matrix=matrix,
        labels=labels,
        class_metrics=class_metrics,
    )


def calculate_metrics(
    predictions: Sequence[Label],
    ground_truth: Sequence[Label],
) -> Metrics:
    """Compute classification metrics for aligned label sequences.

    Parameters
    ----------
    predictions:
        Predicted label per sample.
    ground_truth:
        Actual label per sample, in the same sample order.

    Returns
    -------
    Metrics
        Accuracy, weighted precision/recall/F1, per-class metrics, and
        the confusion matrix (rows=actual, cols=predicted).

    Raises
    ------
    LengthMismatchError
        If the two sequences differ in length.
    """
    labels, label_to_idx = build_label_index(predictions, ground_truth)
    matrix = build_confusion_matrix(predictions, ground_truth, label_to_idx)
    return derive_metrics(matrix, labels)


def _pct(value: float) -> str:
    return f"{value * 100:.2f}%"


def format_metrics(metrics: Metrics) -> str:
    """Render *metrics* as a deterministic plain-text report."""
    lines = [
        "Model Evaluation Report",
        "========================",
        "",
        "Overall Metrics:",
        f"  Accuracy:  {_pct(metrics.accuracy)}",
        f"  Precision: {_pct(metrics.precision)}",
        f"  Recall:    {_pct(metrics.recall)}",
        f"  F1-Score:  {_pct(metrics.f1_score)}",
        "",
    ]

    if metrics.class_metrics:
        lines += ["Per-Class Metrics:", "------------------"]
        for label, cm in metrics.class_metrics.items():
            lines += [
                "",
                f"Class: {label}",
                f"  Precision: {_pct(cm.precision)}",
                f"  Recall:    {_pct(cm.recall)}",
                f"  F1-Score:  {_pct(cm.f1_score)}",
                f"  Support:   {cm.support}",
            ]

    lines += ["", "Confusion Matrix:"]
    report = "\n".join(lines) + "\n"
    report += "\n".join(
        "\t".join(str(count) for count in row) for row in metrics.confusion_matrix
    )
    return report
