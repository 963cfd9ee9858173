import asyncio
from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from autotoon.genai_client import GAIC, ConfigurationError, OracleError, _status_of


def test_missing_api_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        GAIC("")


def test_fal_backend_needs_its_own_key():
    with pytest.raises(ConfigurationError):
        GAIC("key", image_backend="fal", fal_key="")


@pytest.mark.parametrize("error, expected", [
    (OracleError("whatever", status=429), True),
    (OracleError("rate limit exceeded", status=500), False),
    (OracleError("Quota exceeded"), True),
    (OracleError("request throttled"), True),
    (OracleError("internal error"), False),
])
def test_rate_limit_detection(error, expected):
    assert error.rate_limited is expected


def test_resource_exhausted_maps_to_429():
    exc = genai_errors.ClientError(429, {"error": {
        "code": 429, "message": "Resource has been exhausted",
        "status": "RESOURCE_EXHAUSTED"}})
    assert _status_of(exc) == 429
    assert _status_of(ValueError("x")) is None


def fake_models(generate_content):
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(
        generate_content=generate_content)))


def test_generate_text_collects_candidate_parts():
    async def generate_content(model, contents):
        part = SimpleNamespace(text="from parts")
        return SimpleNamespace(text="", candidates=[
            SimpleNamespace(content=SimpleNamespace(parts=[part]))])

    g = GAIC("key")
    g.client = fake_models(generate_content)
    assert asyncio.run(g.generate_text("hi")) == "from parts"


def test_generate_text_wraps_sdk_errors():
    async def generate_content(model, contents):
        raise RuntimeError("quota exceeded")

    g = GAIC("key")
    g.client = fake_models(generate_content)
    with pytest.raises(OracleError) as info:
        asyncio.run(g.generate_text("hi"))
    assert info.value.rate_limited


def test_gemini_image_returns_inline_data_or_none():
    replies = [
        SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[
            SimpleNamespace(inline_data=None, text="thinking"),
            SimpleNamespace(inline_data=SimpleNamespace(data=b"png-bytes")),
        ]))]),
        SimpleNamespace(candidates=[]),
    ]

    async def generate_content(model, contents, config):
        assert config.response_modalities == ["TEXT", "IMAGE"]
        return replies.pop(0)

    g = GAIC("key")
    g.client = fake_models(generate_content)
    assert asyncio.run(g.generate_image("draw")) == b"png-bytes"
    assert asyncio.run(g.generate_image("draw")) is None
