import base64
import json

import httpx
import pytest

from clinscribe.config.settings import Settings
from clinscribe.models.audio import AudioSegment
from clinscribe.models.clinical import LanguageTag
from clinscribe.models.reasoning import (
    BlobPart,
    OutputContract,
    ReasoningRequest,
    StructuredResult,
    TextPart,
    TextResult,
)
from clinscribe.providers.base import ContractViolation, ServiceError
from clinscribe.providers.reasoning.gemini_rest import GEMINI_API_URL, GeminiRESTProvider
from clinscribe.providers.reasoning.mock_reasoning import MockReasoningProvider
from clinscribe.providers.reasoning.response_parser import parse_json_response
from clinscribe.services.reasoning_service import ReasoningService
from clinscribe.services.transcription_service import TranscriptionService
from clinscribe.utils.wav_utils import encode_wav

from conftest import tone_pcm


def gemini_reply(text, status=200):
    body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return httpx.Response(status, json=body)


def provider_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiRESTProvider(api_key="test-key", client=client)


def text_request(**overrides):
    values = dict(model="gemini-2.5-flash", system_instruction="Be brief.", parts=[TextPart(text="Hello")])
    values.update(overrides)
    return ReasoningRequest(**values)


@pytest.mark.asyncio
async def test_rest_payload_shape():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return gemini_reply('[{"speaker": "Doctor", "text": "Hello"}]')

    provider = provider_with(handler)
    request = text_request(
        parts=[BlobPart(mime_type="audio/wav", data=b"RIFF1234"), TextPart(text="Transcribe")],
        output=OutputContract.JSON_SCHEMA,
        response_schema={"type": "ARRAY"},
    )

    result = await provider.generate(request)
    await provider.aclose()

    assert seen["url"].startswith(f"{GEMINI_API_URL}/gemini-2.5-flash:generateContent")
    assert "key=test-key" in seen["url"]
    body = seen["body"]
    assert body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
    inline = body["contents"][0]["parts"][0]["inline_data"]
    assert inline["mime_type"] == "audio/wav"
    assert base64.b64decode(inline["data"]) == b"RIFF1234"
    assert body["contents"][0]["parts"][1] == {"text": "Transcribe"}
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    assert body["generationConfig"]["responseSchema"] == {"type": "ARRAY"}
    assert body["generationConfig"]["temperature"] == 0.0

    assert isinstance(result, StructuredResult)
    assert result.data == [{"speaker": "Doctor", "text": "Hello"}]


@pytest.mark.asyncio
async def test_rest_free_text():
    provider = provider_with(lambda request: gemini_reply("  A short answer. "))

    result = await provider.generate(text_request())

    assert isinstance(result, TextResult)
    assert result.text == "A short answer."


@pytest.mark.asyncio
async def test_rest_http_error_status():
    provider = provider_with(lambda request: httpx.Response(429, text="quota"))

    with pytest.raises(ServiceError):
        await provider.generate(text_request())


@pytest.mark.asyncio
async def test_rest_transport_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    provider = provider_with(handler)

    with pytest.raises(ServiceError):
        await provider.generate(text_request())


@pytest.mark.asyncio
async def test_rest_invalid_json_violates_contract():
    provider = provider_with(lambda request: gemini_reply("I cannot do that."))
    request = text_request(output=OutputContract.JSON_SCHEMA, response_schema={"type": "OBJECT"})

    with pytest.raises(ContractViolation):
        await provider.generate(request)


@pytest.mark.asyncio
async def test_rest_no_candidates_is_empty_text():
    provider = provider_with(lambda request: httpx.Response(200, json={"candidates": []}))

    result = await provider.generate(text_request())

    assert result.text == ""


@pytest.mark.parametrize("body", [
    {"candidates": [{"content": "blocked"}]},
    {"candidates": [{"content": {"parts": ["text"]}}]},
    {"candidates": "none"},
    [],
])
@pytest.mark.asyncio
async def test_rest_unexpected_shape_violates_contract(body):
    provider = provider_with(lambda request: httpx.Response(200, json=body))

    with pytest.raises(ContractViolation):
        await provider.generate(text_request())


@pytest.mark.asyncio
async def test_unexpected_shape_drops_the_segment():
    provider = provider_with(lambda request: httpx.Response(200, json={"candidates": [{"content": "blocked"}]}))
    service = TranscriptionService(provider)
    segment = AudioSegment(data=encode_wav(tone_pcm()), mime_type="audio/wav", sequence=0)

    assert await service.transcribe(segment, LanguageTag.ENGLISH) is None


def test_json_schema_contract_requires_schema():
    with pytest.raises(ValueError):
        text_request(output=OutputContract.JSON_SCHEMA)


@pytest.mark.parametrize("content,expected", [
    ('{"a": 1}', {"a": 1}),
    ('```json\n{"a": 1}\n```', {"a": 1}),
    ('Here you go:\n```\n[1, 2]\n```', [1, 2]),
])
def test_parse_json_response(content, expected):
    assert parse_json_response(content) == expected


@pytest.mark.parametrize("content", ["", "   ", "plain words", "```json\n{broken\n```"])
def test_parse_json_response_rejects(content):
    with pytest.raises(ContractViolation):
        parse_json_response(content)


@pytest.mark.asyncio
async def test_mock_provider_scripted_then_simulated():
    provider = MockReasoningProvider(replies=["scripted"])

    first = await provider.generate(text_request())
    second = await provider.generate(text_request(parts=[TextPart(text="Raw Transcript:\nDoctor: hi")]))

    assert first.text == "scripted"
    assert second.text == "Doctor: hi"
    assert provider.call_count == 2


def test_reasoning_service_selects_provider(monkeypatch):
    monkeypatch.delenv("CLINSCRIBE_PROVIDER", raising=False)
    settings = Settings.from_dict({"reasoning": {"provider": "mock"}})

    service = ReasoningService(settings)

    assert isinstance(service.provider, MockReasoningProvider)


def test_reasoning_service_requires_api_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("CLINSCRIBE_PROVIDER", raising=False)
    settings = Settings.from_dict({"reasoning": {"provider": "gemini"}})

    with pytest.raises(ValueError):
        ReasoningService(settings)


def test_reasoning_service_rejects_unknown_provider():
    settings = Settings.from_dict({})
    settings.reasoning.provider = "openai"

    with pytest.raises(ValueError):
        ReasoningService(settings)


class FakeGenerativeModel:
    instances = []

    def __init__(self, model_name, system_instruction, generation_config):
        self.model_name = model_name
        self.system_instruction = system_instruction
        self.generation_config = generation_config
        self.contents = None
        FakeGenerativeModel.instances.append(self)

    async def generate_content_async(self, contents):
        self.contents = contents
        if self.model_name == "broken":
            raise RuntimeError("503 Service Unavailable")

        class Response:
            text = '```json\n{"medications": [], "advice": []}\n```'
        return Response()


@pytest.fixture
def sdk_provider(monkeypatch):
    from clinscribe.providers.reasoning import gemini_sdk

    FakeGenerativeModel.instances = []
    monkeypatch.setattr(gemini_sdk.genai, "configure", lambda api_key: None)
    monkeypatch.setattr(gemini_sdk.genai, "GenerativeModel", FakeGenerativeModel)
    return gemini_sdk.GeminiSDKProvider(api_key="test-key")


@pytest.mark.asyncio
async def test_sdk_provider_structured(sdk_provider):
    request = text_request(
        parts=[BlobPart(mime_type="audio/wav", data=b"RIFF"), TextPart(text="Extract")],
        output=OutputContract.JSON_SCHEMA,
        response_schema={"type": "OBJECT"},
    )

    result = await sdk_provider.generate(request)

    model = FakeGenerativeModel.instances[0]
    assert model.system_instruction == "Be brief."
    assert model.generation_config["response_mime_type"] == "application/json"
    assert model.contents == [{"mime_type": "audio/wav", "data": b"RIFF"}, "Extract"]
    assert result.data == {"medications": [], "advice": []}


@pytest.mark.asyncio
async def test_sdk_provider_wraps_errors(sdk_provider):
    with pytest.raises(ServiceError):
        await sdk_provider.generate(text_request(model="broken"))
