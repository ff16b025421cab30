"""Tests for the Gemini wrapper, with the SDK client replaced by a fake."""

import os
from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from config import ProviderConfig
from models.schemas.chunk import RetrievedChunk
from services.errors import ConfigurationError, MalformedResponseError, TransientProviderError
from services.gemini_client import GeminiClient


class FakeModels:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    async def generate_content(self, model, contents, config):
        self.requests.append({"model": model, "contents": contents, "config": config})
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return SimpleNamespace(text=response)


def _client_with(*responses) -> tuple[GeminiClient, FakeModels]:
    client = GeminiClient(ProviderConfig(api_key="test-key"))
    models = FakeModels(responses)
    client._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return client, models


@pytest.mark.asyncio
async def test_missing_key_is_configuration_error():
    client = GeminiClient(ProviderConfig(api_key=""))
    assert not client.is_configured
    with pytest.raises(ConfigurationError):
        await client.evaluate({}, {}, "cv")


@pytest.mark.asyncio
async def test_evaluate_sends_prompt_and_parses_json():
    client, models = _client_with('```json\n{"decision": "yes", "confidence": 0.8}\n```')

    result = await client.evaluate({"title": "Backend"}, {"name": "Jane"}, "[Chunk 0] ...")

    assert result == {"decision": "yes", "confidence": 0.8}
    request = models.requests[0]
    assert request["model"] == "gemini-2.5-flash"
    assert '"title": "Backend"' in request["contents"]
    assert "[Chunk 0] ..." in request["contents"]
    assert request["config"].temperature == 0.3
    assert request["config"].max_output_tokens == 8192
    assert request["config"].response_mime_type == "application/json"


@pytest.mark.asyncio
async def test_truncated_output_is_recovered():
    client, _ = _client_with('{"decision": "maybe", "summary": "Solid but')
    result = await client.evaluate({}, {}, "cv")
    assert result["decision"] == "maybe"


@pytest.mark.asyncio
async def test_unparseable_output_is_malformed():
    client, _ = _client_with("I cannot evaluate this candidate.")
    with pytest.raises(MalformedResponseError):
        await client.evaluate({}, {}, "cv")


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [429, 503])
async def test_rate_limit_maps_to_transient(code):
    error = genai_errors.APIError(code, {"error": {"code": code, "message": "busy", "status": "UNAVAILABLE"}})
    client, _ = _client_with(error)

    with pytest.raises(TransientProviderError) as exc_info:
        await client.evaluate({}, {}, "cv")
    assert exc_info.value.status_code == code


@pytest.mark.asyncio
async def test_other_api_errors_propagate():
    error = genai_errors.APIError(400, {"error": {"code": 400, "message": "bad request", "status": "INVALID_ARGUMENT"}})
    client, _ = _client_with(error)

    with pytest.raises(genai_errors.APIError):
        await client.evaluate({}, {}, "cv")


@pytest.mark.asyncio
async def test_parse_cv_to_profile_uses_chunks():
    client, models = _client_with('{"name": "Jane", "skills": [{"skill": "Python", "chunk_index": 2}]}')
    chunks = [RetrievedChunk(text="Python, Go", index=2, section_type="skills", start_char=0, end_char=10,
                             relevance_score=0.9)]

    profile = await client.parse_cv_to_profile("raw cv text", chunks)

    assert profile["name"] == "Jane"
    assert "[Chunk 2] (Section: skills, Score: 0.900):" in models.requests[0]["contents"]
    assert "raw cv text" not in models.requests[0]["contents"]


@pytest.mark.asyncio
async def test_parse_jd_to_blueprint():
    client, models = _client_with('{"role_title": "Backend Engineer", "required_skills": [{"skill": "Python", "priority": "must_have"}]}')

    blueprint = await client.parse_jd_to_blueprint("We need a Python backend engineer.")

    assert blueprint["role_title"] == "Backend Engineer"
    assert "We need a Python backend engineer." in models.requests[0]["contents"]
    assert "evaluation_criteria" in models.requests[0]["contents"]


@pytest.mark.asyncio
async def test_blueprint_rate_limit_is_transient():
    error = genai_errors.APIError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})
    client, _ = _client_with(error)
    with pytest.raises(TransientProviderError):
        await client.parse_jd_to_blueprint("JD")

@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.skipif(not os.environ.get("GEMINI_API_KEY"), reason="GEMINI_API_KEY not set")
async def test_live_evaluation():
    client = GeminiClient(ProviderConfig(api_key=os.environ["GEMINI_API_KEY"]))
    result = await client.evaluate(
        {"title": "Python developer", "must_have": ["Python"]},
        {},
        "Python developer with 5 years of Django and PostgreSQL experience.",
    )
    assert "decision" in result
