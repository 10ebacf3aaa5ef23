"""ElevenLabs text-to-speech REST client."""

from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

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
    VoiceInfo,
    VoiceSettings,
    VoicesResponse,
)
from sproutling.storage.credentials import CredentialStore

logger = structlog.get_logger()

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"
API_KEY_ACCOUNT = "elevenlabs_api_key"
MAX_ERROR_BODY_CHARS = 500


class SpeechClient:
    """Stateless request/response wrapper around the ElevenLabs TTS API.

    The API key is read from the credential store on every call, so a key
    saved or deleted at runtime takes effect immediately. Calls share no
    mutable state and may run concurrently.

    Args:
        credentials: Secure store holding the API key.
        service: Fixed service identifier for the credential entry.
        base_url: API root, without a trailing slash.
        timeout: Request timeout in seconds.
        default_voice: Voice id used when a call names none.
        default_model: Model id used when a call names none.
        http_client: Optional pre-built client (tests inject a mock transport).
    """

    def __init__(
        self,
        credentials: CredentialStore,
        service: str = "com.sproutling.app",
        base_url: str = ELEVENLABS_API_URL,
        timeout: float = 30.0,
        default_voice: Voice | str = Voice.BELLA,
        default_model: SpeechModel | str = SpeechModel.FLASH_V2_5,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.credentials = credentials
        self.service = service
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_voice = str(default_voice)
        self.default_model = str(default_model)
        self._client = http_client

    async def __aenter__(self) -> "SpeechClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    # API key management

    def get_api_key(self) -> str | None:
        return self.credentials.get(self.service, API_KEY_ACCOUNT)

    def save_api_key(self, key: str) -> None:
        """Store the API key, replacing any previous one."""
        self.delete_api_key()
        self.credentials.set(self.service, API_KEY_ACCOUNT, key)
        logger.info("speech_api_key_saved")

    def delete_api_key(self) -> bool:
        return self.credentials.delete(self.service, API_KEY_ACCOUNT)

    def has_api_key(self) -> bool:
        return bool(self.get_api_key())

    # Requests

    async def generate_speech(
        self,
        text: str,
        voice: Voice | str | None = None,
        model: SpeechModel | str | None = None,
        settings: VoiceSettings | None = None,
    ) -> bytes:
        """Generate speech from text.

        Args:
            text: The text to speak.
            voice: A curated voice or any provider voice id (default voice if None).
            model: Speech model id (default model if None).
            settings: Voice tunables (defaults to child-friendly).

        Returns:
            MP3 audio bytes.

        Raises:
            SpeechError: One of its subclasses for every failure.
        """
        api_key = self._require_api_key()
        voice = self.default_voice if voice is None else str(voice)
        model = self.default_model if model is None else str(model)
        url = self._endpoint(f"/text-to-speech/{quote(voice, safe='')}", voice)
        settings = settings or VoiceSettings.child_friendly()
        body = {
            "text": text,
            "model_id": model,
            "voice_settings": settings.to_payload(),
        }
        headers = {
            "xi-api-key": api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }

        logger.debug("speech_request", voice=voice, model=model, chars=len(text))
        response = await self._send("POST", url, headers=headers, json=body)
        self._raise_for_status(response)
        if not response.content:
            raise NoAudioDataError()
        logger.info("speech_generated", voice=voice, bytes=len(response.content))
        return response.content

    async def fetch_voices(self) -> list[VoiceInfo]:
        """List the voices available to this API key."""
        api_key = self._require_api_key()
        url = self._endpoint("/voices")
        response = await self._send("GET", url, headers={"xi-api-key": api_key})
        self._raise_for_status(response)
        try:
            voices = VoicesResponse.model_validate_json(response.content).voices
        except ValidationError as e:
            raise SpeechError(
                "Malformed voices response",
                status_code=response.status_code,
                response_body=_snippet(response),
            ) from e
        logger.info("speech_voices_fetched", count=len(voices))
        return voices

    async def validate_api_key(self) -> ValidationResult:
        """Check the stored key with a minimal real synthesis request."""
        try:
            await self.generate_speech(
                "Hi",
                voice=Voice.BELLA,
                model=SpeechModel.FLASH_V2_5,
                settings=VoiceSettings.quick_prompt(),
            )
        except (UnauthorizedError, NoAPIKeyError):
            result = ValidationResult.INVALID
        except RateLimitedError:
            result = ValidationResult.RATE_LIMITED
        except InsufficientCreditsError:
            result = ValidationResult.INSUFFICIENT_CREDITS
        except SpeechError as e:
            logger.warning("speech_key_validation_error", error=e.message)
            result = ValidationResult.NETWORK_ERROR
        else:
            result = ValidationResult.VALID
        logger.info("speech_key_validated", result=result.value)
        return result

    # Internals

    def _require_api_key(self) -> str:
        api_key = self.get_api_key()
        if not api_key:
            raise NoAPIKeyError()
        return api_key

    def _endpoint(self, path: str, voice_id: str | None = None) -> httpx.URL:
        raw = f"{self.base_url}{path}"
        if voice_id is not None and not voice_id.strip():
            raise InvalidEndpointError(raw)
        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL:
            raise InvalidEndpointError(raw) from None
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidEndpointError(raw)
        return url

    async def _send(self, method: str, url: httpx.URL, **kwargs) -> httpx.Response:
        try:
            return await self._get_client().request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning("speech_network_error", error=str(e), error_type=type(e).__name__)
            raise SpeechNetworkError(e) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status == 200:
            return
        body = _snippet(response)
        logger.warning("speech_http_error", status_code=status)
        if status == 401:
            raise UnauthorizedError(body)
        if status == 402:
            raise InsufficientCreditsError(body)
        if status == 429:
            raise RateLimitedError(body)
        raise SpeechHTTPError(status, body)


def _snippet(response: httpx.Response) -> str | None:
    text = response.text
    if not text:
        return None
    return text[:MAX_ERROR_BODY_CHARS]
