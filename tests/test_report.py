"""Tests for the plain-text metrics report."""

from evalbench.models.metrics import ClassMetric, Metrics
from evalbench.services.metrics import calculate_metrics, format_metrics


def _matrix_section(report: str) -> list[str]:
    return report.split("Confusion Matrix:\n", 1)[1].split("\n")


def test_report_layout() -> None:
    metrics = calculate_metrics([1, 0, 1, 1], [1, 0, 0, 1])
    report = format_metrics(metrics)

    assert report.startswith("Model Evaluation Report\n========================\n\n")
    assert "Overall Metrics:\n" in report
    assert "  Accuracy:  75.00%\n" in report
    assert "Per-Class Metrics:\n------------------\n" in report
    assert "\nClass: 0\n  Precision: 100.00%\n  Recall:    50.00%\n" in report
    assert "  Support:   2\n" in report
    assert _matrix_section(report) == ["1\t1", "0\t2"]


def test_report_exact_text() -> None:
    metrics = calculate_metrics(["a", "a"], ["a", "a"])
    assert format_metrics(metrics) == (
        "Model Evaluation Report\n"
        "========================\n"
        "\n"
        "Overall Metrics:\n"
        "  Accuracy:  100.00%\n"
        "  Precision: 100.00%\n"
        "  Recall:    100.00%\n"
        "  F1-Score:  100.00%\n"
        "\n"
        "Per-Class Metrics:\n"
        "------------------\n"
        "\n"
        "Class: a\n"
        "  Precision: 100.00%\n"
        "  Recall:    100.00%\n"
        "  F1-Score:  100.00%\n"
        "  Support:   2\n"
        "\n"
        "Confusion Matrix:\n"
        "2"
    )


def test_report_is_deterministic() -> None:
    metrics = calculate_metrics(["x", "y", "z", "x"], ["y", "y", "x", "z"])
    assert format_metrics(metrics) == format_metrics(metrics)


def test_matrix_section_is_square() -> None:
    metrics = calculate_metrics(["x", "y", "z", "x"], ["y", "y", "x", "z"])
    rows = _matrix_section(format_metrics(metrics))
    assert len(rows) == len(metrics.labels)
    assert all(len(row.split("\t")) == len(metrics.labels) for row in rows)


def test_report_without_class_metrics_skips_section() -> None:
    metrics = Metrics(
        accuracy=0.5,
        precision=0.25,
        recall=0.5,
        f1_score=0.3333,
        confusion_matrix=[[1, 1], [0, 0]],
    )
    report = format_metrics(metrics)
    assert "Per-Class Metrics" not in report
    assert "  F1-Score:  33.33%\n\n\nConfusion Matrix:\n1\t1\n0\t0" in report


def test_report_with_class_metrics_model() -> None:
    metrics = Metrics(
        accuracy=1.0,
        precision=1.0,
        recall=1.0,
        f1_score=1.0,
        confusion_matrix=[[3]],
        labels=["spam"],
        class_metrics={
            "spam": ClassMetric(precision=1.0, recall=1.0, f1_score=1.0, support=3)
        },
    )
    assert "Class: spam\n" in format_metrics(metrics)
