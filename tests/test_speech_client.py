"""Tests for the ElevenLabs speech client using httpx.MockTransport."""

import json

import httpx
import pytest

from sproutling.speech.client import API_KEY_ACCOUNT, SpeechClient
from sproutling.speech.errors import (
    InsufficientCreditsError,
    InvalidEndpointError,
    NoAPIKeyError,
    NoAudioDataError,
    RateLimitedError,
    SpeechError,
    SpeechHTTPError,
    SpeechNetworkError,
    UnauthorizedError,
)
from sproutling.speech.voices import (
    SpeechModel,
    ValidationResult,
    Voice,
    VoiceSettings,
    clamp_speed,
)
from sproutling.storage.credentials import InMemoryCredentialStore

SERVICE = "com.sproutling.test"


def _client(handler, api_key="sk-test", base_url="https://api.example.test/v1"):
    credentials = InMemoryCredentialStore()
    if api_key:
        credentials.set(SERVICE, API_KEY_ACCOUNT, api_key)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SpeechClient(credentials, service=SERVICE, base_url=base_url, http_client=http)


class Recorder:
    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


class TestGenerateSpeech:
    async def test_request_shape(self):
        recorder = Recorder(httpx.Response(200, content=b"ID3audio"))
        async with _client(recorder) as client:
            audio = await client.generate_speech("Hello", voice=Voice.LILY)
        assert audio == b"ID3audio"
        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"https://api.example.test/v1/text-to-speech/{Voice.LILY.value}"
        assert request.headers["xi-api-key"] == "sk-test"
        assert request.headers["accept"] == "audio/mpeg"
        assert request.headers["content-type"] == "application/json"
        body = json.loads(request.content)
        assert body["text"] == "Hello"
        assert body["model_id"] == "eleven_flash_v2_5"
        assert body["voice_settings"] == {
            "stability": 0.8,
            "similarity_boost": 0.75,
            "style": 0.0,
            "use_speaker_boost": True,
            "speed": 0.85,
        }

    async def test_defaults_from_constructor(self):
        recorder = Recorder(httpx.Response(200, content=b"x"))
        client = _client(recorder)
        client.default_voice = Voice.JOSH.value
        client.default_model = SpeechModel.TURBO_V2_5.value
        await client.generate_speech("Hi")
        request = recorder.requests[0]
        assert request.url.path.endswith(Voice.JOSH.value)
        assert json.loads(request.content)["model_id"] == "eleven_turbo_v2_5"

    @pytest.mark.parametrize("speed, expected", [(2.0, 1.2), (0.1, 0.7), (1.0, 1.0)])
    async def test_speed_clamped(self, speed, expected):
        recorder = Recorder(httpx.Response(200, content=b"x"))
        client = _client(recorder)
        await client.generate_speech("Hi", settings=VoiceSettings(speed=speed))
        assert json.loads(recorder.requests[0].content)["voice_settings"]["speed"] == expected

    async def test_speed_omitted_when_unset(self):
        recorder = Recorder(httpx.Response(200, content=b"x"))
        client = _client(recorder)
        await client.generate_speech("Hi", settings=VoiceSettings(speed=None))
        assert "speed" not in json.loads(recorder.requests[0].content)["voice_settings"]

    async def test_no_api_key_makes_no_request(self):
        recorder = Recorder(httpx.Response(200, content=b"x"))
        client = _client(recorder, api_key=None)
        with pytest.raises(NoAPIKeyError):
            await client.generate_speech("Hi")
        assert recorder.requests == []

    @pytest.mark.parametrize(
        "status, error",
        [
            (401, UnauthorizedError),
            (402, InsufficientCreditsError),
            (429, RateLimitedError),
            (500, SpeechHTTPError),
        ],
    )
    async def test_status_mapping(self, status, error):
        client = _client(Recorder(httpx.Response(status, text="nope")))
        with pytest.raises(error) as exc_info:
            await client.generate_speech("Hi")
        assert exc_info.value.status_code == status

    async def test_http_error_keeps_body(self):
        client = _client(Recorder(httpx.Response(503, text="maintenance")))
        with pytest.raises(SpeechHTTPError) as exc_info:
            await client.generate_speech("Hi")
        assert exc_info.value.response_body == "maintenance"

    async def test_empty_body_is_no_audio(self):
        client = _client(Recorder(httpx.Response(200, content=b"")))
        with pytest.raises(NoAudioDataError):
            await client.generate_speech("Hi")

    async def test_transport_error_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        with pytest.raises(SpeechNetworkError) as exc_info:
            await client.generate_speech("Hi")
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    async def test_empty_voice_id_is_invalid_endpoint(self):
        recorder = Recorder(httpx.Response(200, content=b"x"))
        client = _client(recorder)
        with pytest.raises(InvalidEndpointError):
            await client.generate_speech("Hi", voice="  ")
        assert recorder.requests == []

    async def test_bad_base_url_is_invalid_endpoint(self):
        client = _client(Recorder(httpx.Response(200, content=b"x")), base_url="ftp://nowhere")
        with pytest.raises(InvalidEndpointError):
            await client.generate_speech("Hi")


class TestFetchVoices:
    async def test_decodes_voices(self):
        payload = {
            "voices": [
                {"voice_id": "v1", "name": "Bella", "category": "premade", "labels": {"accent": "us"}},
                {"voice_id": "v2", "name": "Custom"},
            ]
        }
        recorder = Recorder(httpx.Response(200, json=payload))
        client = _client(recorder)
        voices = await client.fetch_voices()
        assert [v.id for v in voices] == ["v1", "v2"]
        assert voices[0].labels == {"accent": "us"}
        assert voices[1].category is None
        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.path == "/v1/voices"

    async def test_malformed_response(self):
        client = _client(Recorder(httpx.Response(200, json={"voices": [{"name": "x"}]})))
        with pytest.raises(SpeechError):
            await client.fetch_voices()

    async def test_unauthorized(self):
        client = _client(Recorder(httpx.Response(401)))
        with pytest.raises(UnauthorizedError):
            await client.fetch_voices()


class TestValidateApiKey:
    @pytest.mark.parametrize(
        "response, expected",
        [
            (httpx.Response(200, content=b"x"), ValidationResult.VALID),
            (httpx.Response(401), ValidationResult.INVALID),
            (httpx.Response(429), ValidationResult.RATE_LIMITED),
            (httpx.Response(402), ValidationResult.INSUFFICIENT_CREDITS),
            (httpx.Response(500), ValidationResult.NETWORK_ERROR),
        ],
    )
    async def test_classification(self, response, expected):
        client = _client(Recorder(response))
        assert await client.validate_api_key() == expected

    async def test_missing_key_is_invalid(self):
        client = _client(Recorder(httpx.Response(200, content=b"x")), api_key=None)
        result = await client.validate_api_key()
        assert result == ValidationResult.INVALID
        assert not result.is_valid
        assert result.user_message

    async def test_uses_quick_prompt(self):
        recorder = Recorder(httpx.Response(200, content=b"x"))
        await _client(recorder).validate_api_key()
        body = json.loads(recorder.requests[0].content)
        assert body["text"] == "Hi"
        assert body["voice_settings"]["speed"] == 0.95


class TestApiKeyManagement:
    def test_save_replace_delete(self):
        client = SpeechClient(InMemoryCredentialStore(), service=SERVICE)
        assert not client.has_api_key()
        client.save_api_key("first")
        client.save_api_key("second")
        assert client.get_api_key() == "second"
        client.delete_api_key()
        assert not client.has_api_key()


class TestVoiceCatalog:
    def test_seventeen_voices(self):
        assert len(Voice) == 17
        assert Voice.BELLA.is_female
        assert not Voice.JOSH.is_female
        assert Voice.BELLA.display_name == "Bella"
        assert Voice.MATILDA.description

    def test_clamp(self):
        assert clamp_speed(5) == 1.2
        assert clamp_speed(0) == 0.7

    def test_presets(self):
        assert VoiceSettings.encouraging().style == 0.1
        assert VoiceSettings.child_friendly().speed == 0.85
