"""JSON and CSV test dataset parsers plus the dataset loader.

JSON datasets are an array of objects (a single object is wrapped into
a one-element list).  CSV datasets have a header row; every value is
kept as a string.  Ground truth is read from the first present of the
``truth``, ``label`` and ``ground_truth`` fields.
"""

from __future__ import annotations

import io
import json
import logging
from typing import Any

import pandas as pd

from evalbench.ingestion.base_parser import BaseParser, DatasetParseError
from evalbench.models.dataset import DatasetCreateRequest
from evalbench.models.metrics import Label
from evalbench.repositories.storage import StorageBackend

logger = logging.getLogger(__name__)

# Flexible key lookup order for the ground-truth field.
_GROUND_TRUTH_KEYS = ("truth", "label", "ground_truth")

# Built-in records for ``generated`` datasets.
GENERATED_SAMPLES: list[dict[str, Any]] = [
    {"text": "This is a positive example", "label": 1, "truth": 1},
    {"text": "This is a negative example", "label": 0, "truth": 0},
    {"text": "Another positive example", "label": 1, "truth": 1},
    {"text": "Another negative example", "label": 0, "truth": 0},
]


def get_field(record: dict, keys: tuple[str, ...]) -> Any | None:
    """Return the first non-null value among *keys* in *record*."""
    for k in keys:
        if record.get(k) is not None:
            return record[k]
    return None


def extract_ground_truth(record: dict, index: int) -> Label:
    """Return the ground-truth label of *record* (the *index*-th sample)."""
    truth = get_field(record, _GROUND_TRUTH_KEYS)
    if truth is None:
        raise DatasetParseError(
            f"Record {index} has no ground truth field "
            f"(expected one of: {', '.join(_GROUND_TRUTH_KEYS)})"
        )
    if isinstance(truth, (dict, list)):
        raise DatasetParseError(f"Record {index} has a non-scalar ground truth label")
    return truth


class JSONDatasetParser(BaseParser):
    """Parser for JSON test datasets."""

    @property
    def format_name(self) -> str:  # noqa: D401
        """Format identifier."""
        return "json"

    def parse(self, text: str) -> list[dict[str, Any]]:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise DatasetParseError(f"Invalid JSON: {e}") from e

        records = parsed if isinstance(parsed, list) else [parsed]
        for i, record in enumerate(records):
            if not isinstance(record, dict):
                raise DatasetParseError(f"Record {i} is not a JSON object")
        return records


class CSVDatasetParser(BaseParser):
    """Parser for CSV test datasets with a header row."""

    @property
    def format_name(self) -> str:  # noqa: D401
        """Format identifier."""
        return "csv"

    def parse(self, text: str) -> list[dict[str, Any]]:
        if not text.strip():
            raise DatasetParseError("CSV dataset is empty")
        try:
            df = pd.read_csv(
                io.StringIO(text.strip()),
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise DatasetParseError(f"Invalid CSV: {e}") from e

        df.columns = [str(c).strip() for c in df.columns]
        df = df.apply(lambda col: col.str.strip())
        return df.to_dict(orient="records")


_PARSERS: dict[str, BaseParser] = {
    p.format_name: p for p in (JSONDatasetParser(), CSVDatasetParser())
}


class DatasetLoader:
    """Resolves a :class:`DatasetCreateRequest` into validated records.

    Files are read through the injected *storage* so local paths and
    ``gs://`` URIs behave the same.
    """

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    def load(self, request: DatasetCreateRequest) -> list[dict[str, Any]]:
        """Return the records for *request*, each with a ground truth."""
        if request.type == "generated":
            records = [dict(r) for r in GENERATED_SAMPLES]
        else:
            records = _PARSERS[request.type].parse(self._read_source(request))

        if not records:
            raise DatasetParseError("Dataset contains no records")
        for i, record in enumerate(records):
            extract_ground_truth(record, i)

        logger.info(
            "Loaded %s dataset '%s' with %d records",
            request.type,
            request.name,
            len(records),
        )
        return records

    def _read_source(self, request: DatasetCreateRequest) -> str:
        if request.type == "json" and request.json_data:
            return request.json_data
        if not request.file_path:
            raise DatasetParseError(
                f"A file_path is required for {request.type} datasets"
            )
        if not self.storage.exists(request.file_path):
            raise DatasetParseError(f"File not found: {request.file_path}")
        try:
            return self.storage.read_text(request.file_path)
        except (OSError, UnicodeDecodeError) as e:
            raise DatasetParseError(f"Cannot read {request.file_path}: {e}") from e
