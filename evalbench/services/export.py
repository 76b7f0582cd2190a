"""Run export artifacts: a JSON results document and a text report.

Both are write-once files named by their generation timestamp in
milliseconds (``results-<ms>.json``, ``model-evaluation-<ms>.txt``).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from evalbench.models.run import ExportDocument, ExportPaths, ExportResults, RunResults
from evalbench.repositories.storage import StorageBackend
from evalbench.services.metrics import format_metrics

logger = logging.getLogger(__name__)


def json_export_filename(generated_at: datetime) -> str:
    return f"results-{int(generated_at.timestamp() * 1000)}.json"


def report_filename(generated_at: datetime) -> str:
    return f"model-evaluation-{int(generated_at.timestamp() * 1000)}.txt"


def build_export_document(
    results: RunResults,
    model_name: str,
    dataset_name: str,
    generated_at: datetime | None = None,
) -> ExportDocument:
    """Bundle run labels and metrics with model/dataset provenance."""
    return ExportDocument(
        model=model_name,
        dataset=dataset_name,
        timestamp=generated_at or datetime.now(timezone.utc),
        results=ExportResults(
            predictions=results.predictions,
            ground_truth=results.ground_truth,
            metrics=results.metrics,
        ),
    )


def render_export_json(document: ExportDocument) -> str:
    """Serialise *document* as indented JSON."""
    return document.model_dump_json(indent=2)


class ExportService:
    """Writes export artifacts under *export_dir* via the storage backend."""

    def __init__(self, storage: StorageBackend, export_dir: str) -> None:
        self.storage = storage
        self.export_dir = export_dir

    def write_json_export(self, document: ExportDocument) -> str:
        path = self.storage.join(self.export_dir, json_export_filename(document.timestamp))
        written = self.storage.write_text(path, render_export_json(document))
        logger.info("Wrote JSON export to %s", written)
        return written

    def write_text_report(self, results: RunResults, generated_at: datetime) -> str:
        path = self.storage.join(self.export_dir, report_filename(generated_at))
        written = self.storage.write_text(path, format_metrics(results.metrics))
        logger.info("Wrote text report to %s", written)
        return written

    def write_all(
        self, results: RunResults, model_name: str, dataset_name: str
    ) -> ExportPaths:
        """Write both artifacts with a shared generation timestamp."""
        document = build_export_document(results, model_name, dataset_name)
        return ExportPaths(
            json_path=self.write_json_export(document),
            report_path=self.write_text_report(results, document.timestamp),
        )
