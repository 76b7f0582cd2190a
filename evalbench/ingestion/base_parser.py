"""Abstract base parser interface for format-agnostic dataset loading."""

from abc import ABC, abstractmethod
from typing import Any


class DatasetParseError(ValueError):
    """Raised when a dataset cannot be parsed into test records."""


class BaseParser(ABC):
    """Extension point for test dataset parsers (JSON, CSV, ...).

    Subclasses turn raw file text into a list of record dicts.  Each
    record carries the model input features plus a ground-truth field.
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Short identifier for the format, e.g. ``'json'``, ``'csv'``."""
        ...

    @abstractmethod
    def parse(self, text: str) -> list[dict[str, Any]]:
        """Return the records contained in *text*.

        Raises :class:`DatasetParseError` on malformed input.
        """
        ...
