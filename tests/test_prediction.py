"""Tests for prediction acquisition and fallback strategies."""

import json

import httpx
import pytest

from evalbench.config import Settings
from evalbench.models.run import ModelConfig
from evalbench.services.prediction import (
    ConstantFallback,
    NoFallback,
    PredictionError,
    PredictionService,
    RandomFallback,
    build_fallback,
)

SCORING_URL = "http://scoring.test/predict"
API_MODEL = ModelConfig(type="api", model_name="remote", api_endpoint=SCORING_URL)


# ------------------------------------------------------------------
# Fallback strategies
# ------------------------------------------------------------------


def test_random_fallback_is_binary_and_seeded() -> None:
    first = [RandomFallback(seed=7)({}, i, "x") for i in range(20)]
    second = [RandomFallback(seed=7)({}, i, "x") for i in range(20)]
    assert first == second
    assert set(first) <= {0, 1}


def test_constant_fallback() -> None:
    assert ConstantFallback("unknown")({"a": 1}, 0, "x") == "unknown"


def test_no_fallback_raises() -> None:
    with pytest.raises(PredictionError, match="sample 4"):
        NoFallback()({}, 4, "timeout")


def test_build_fallback_from_settings() -> None:
    assert isinstance(build_fallback(Settings(fallback_strategy="random")), RandomFallback)
    assert isinstance(build_fallback(Settings(fallback_strategy="none")), NoFallback)
    constant = build_fallback(Settings(fallback_strategy="constant", fallback_label="n/a"))
    assert isinstance(constant, ConstantFallback)
    assert constant.label == "n/a"


def test_api_model_requires_endpoint() -> None:
    with pytest.raises(ValueError):
        ModelConfig(type="api", model_name="remote")


def test_public_dump_omits_api_key() -> None:
    config = ModelConfig(
        type="api", model_name="remote", api_endpoint=SCORING_URL, api_key="secret"
    )
    assert "api_key" not in config.public_dump()


# ------------------------------------------------------------------
# Upload models
# ------------------------------------------------------------------


async def test_upload_model_reads_label_field(
    prediction_service: PredictionService,
) -> None:
    records = [{"label": "a"}, {"label": 2}, {"text": "no label"}]
    model = ModelConfig(type="upload", model_name="local")
    predictions = await prediction_service.collect(model, records)
    assert predictions == ["a", 2, -1]


# ------------------------------------------------------------------
# API models
# ------------------------------------------------------------------


async def test_api_model_posts_records(prediction_service: PredictionService) -> None:
    records = [{"answer": "cat"}, {"answer": "dog"}]
    predictions = await prediction_service.collect(API_MODEL, records)
    assert predictions == ["cat", "dog"]


async def test_api_failures_use_fallback(prediction_service: PredictionService) -> None:
    records = [{"answer": 1}, {"answer": 0, "fail": True}, {"answer": 0}]
    predictions = await prediction_service.collect(API_MODEL, records)
    assert predictions == [1, -1, 0]


async def test_api_failure_without_fallback_raises(
    scoring_client: httpx.AsyncClient,
) -> None:
    service = PredictionService(fallback=NoFallback(), client=scoring_client)
    with pytest.raises(PredictionError):
        await service.collect(API_MODEL, [{"answer": 0, "fail": True}])


async def test_api_sends_bearer_token_and_json() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"class": "spam"})

    model = ModelConfig(
        type="api", model_name="remote", api_endpoint=SCORING_URL, api_key="secret"
    )
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = PredictionService(fallback=NoFallback(), client=client)
        predictions = await service.collect(model, [{"text": "buy now"}])

    assert predictions == ["spam"]
    assert seen[0].method == "POST"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert json.loads(seen[0].content) == {"text": "buy now"}


@pytest.mark.parametrize(
    "body",
    [{"prediction": 3, "label": 9}, {"label": 3}, {"class": 3}],
)
async def test_api_response_key_precedence(body: dict) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
    async with httpx.AsyncClient(transport=transport) as client:
        service = PredictionService(fallback=NoFallback(), client=client)
        assert await service.collect(API_MODEL, [{}]) == [3]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"score": 0.9}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=[1, 2]),
        httpx.Response(404, json={"prediction": 1}),
    ],
)
async def test_api_unusable_responses_use_fallback(response: httpx.Response) -> None:
    transport = httpx.MockTransport(lambda request: response)
    async with httpx.AsyncClient(transport=transport) as client:
        service = PredictionService(fallback=ConstantFallback("?"), client=client)
        assert await service.collect(API_MODEL, [{}]) == ["?"]


async def test_api_timeout_uses_fallback() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = PredictionService(fallback=ConstantFallback("?"), client=client)
        assert await service.collect(API_MODEL, [{}, {}]) == ["?", "?"]


async def test_iter_predictions_yields_in_order(
    prediction_service: PredictionService,
) -> None:
    records = [{"answer": i} for i in range(5)]
    seen = [label async for label in prediction_service.iter_predictions(API_MODEL, records)]
    assert seen == [0, 1, 2, 3, 4]
