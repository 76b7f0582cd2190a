"""Prediction acquisition for test runs.

Obtains one predicted label per dataset record, either from the record
itself (``upload`` models) or by POSTing the record to a scoring
endpoint (``api`` models).  When a prediction cannot be obtained the
injected :class:`FallbackStrategy` supplies one, so the prediction list
always stays aligned with the ground-truth list.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import httpx

from evalbench.config import Settings
from evalbench.ingestion.dataset_parser import get_field
from evalbench.models.metrics import Label
from evalbench.models.run import ModelConfig

logger = logging.getLogger(__name__)

# Flexible key lookup order for the label in a scoring endpoint response.
_RESPONSE_LABEL_KEYS = ("prediction", "label", "class")


class PredictionError(ValueError):
    """Raised when a prediction is unavailable and no fallback applies."""


class FallbackStrategy(ABC):
    """Supplies a label for a sample whose prediction is unavailable."""

    @abstractmethod
    def __call__(self, record: dict[str, Any], index: int, reason: str) -> Label:
        ...


class RandomFallback(FallbackStrategy):
    """Coin flip between ``0`` and ``1``; seedable for reproducible runs."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def __call__(self, record: dict[str, Any], index: int, reason: str) -> Label:
        return 1 if self._rng.random() > 0.5 else 0


class ConstantFallback(FallbackStrategy):
    """Always substitutes the same placeholder label."""

    def __init__(self, label: Label) -> None:
        self.label = label

    def __call__(self, record: dict[str, Any], index: int, reason: str) -> Label:
        return self.label


class NoFallback(FallbackStrategy):
    """Treats an unavailable prediction as a terminal error for the run."""

    def __call__(self, record: dict[str, Any], index: int, reason: str) -> Label:
        raise PredictionError(f"No prediction for sample {index}: {reason}")


def build_fallback(settings: Settings) -> FallbackStrategy:
    """Create the fallback strategy selected by *settings*."""
    if settings.fallback_strategy == "constant":
        return ConstantFallback(settings.fallback_label)
    if settings.fallback_strategy == "none":
        return NoFallback()
    return RandomFallback(settings.fallback_seed)


class PredictionService:
    """Yields predictions for a list of records, one at a time.

    Collaborators are injected:

    * *fallback* -- label substitution for unavailable predictions.
    * *client* -- optional shared ``httpx.AsyncClient``; when omitted a
      client is created per iteration with *timeout*.
    """

    def __init__(
        self,
        fallback: FallbackStrategy,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.fallback = fallback
        self.timeout = timeout
        self._client = client

    async def iter_predictions(
        self,
        model: ModelConfig,
        records: list[dict[str, Any]],
    ) -> AsyncIterator[Label]:
        """Yield one predicted label per record, in record order."""
        if model.type == "api":
            if self._client is not None:
                async for label in self._iter_api(self._client, model, records):
                    yield label
                return
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async for label in self._iter_api(client, model, records):
                    yield label
            return

        for i, record in enumerate(records):
            label = record.get("label")
            if label is None:
                label = self.fallback(record, i, "record has no label field")
            yield label

    async def collect(
        self,
        model: ModelConfig,
        records: list[dict[str, Any]],
    ) -> list[Label]:
        """Return all predictions for *records* as a list."""
        return [label async for label in self.iter_predictions(model, records)]

    async def _iter_api(
        self,
        client: httpx.AsyncClient,
        model: ModelConfig,
        records: list[dict[str, Any]],
    ) -> AsyncIterator[Label]:
        headers = {"Content-Type": "application/json"}
        if model.api_key:
            headers["Authorization"] = f"Bearer {model.api_key}"

        fallbacks = 0
        for i, record in enumerate(records):
            try:
                label = await self._request_prediction(
                    client, model.api_endpoint, headers, record
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Prediction request %d failed: %s", i, e)
                label = self.fallback(record, i, str(e))
                fallbacks += 1
            yield label

        if fallbacks:
            logger.warning(
                "%d of %d predictions from %s used the fallback label",
                fallbacks,
                len(records),
                model.api_endpoint,
            )

    async def _request_prediction(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        headers: dict[str, str],
        record: dict[str, Any],
    ) -> Label:
        response = await client.post(
            endpoint, json=record, headers=headers, timeout=self.timeout
        )
        response.raise_for_status()
        body = response.json()
        label = get_field(body, _RESPONSE_LABEL_KEYS) if isinstance(body, dict) else None
        if label is None or isinstance(label, (dict, list)):
            raise ValueError("response has no prediction, label or class field")
        return label
