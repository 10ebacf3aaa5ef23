"""ElevenLabs voice, model and voice-settings definitions."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

SPEED_MIN = 0.7
SPEED_MAX = 1.2


class Voice(StrEnum):
    """Curated ElevenLabs voices for children's content (value is the voice id)."""

    BELLA = "EXAVITQu4vr4xnSDxMaL"
    RACHEL = "21m00Tcm4TlvDq8ikWAM"
    DOMI = "AZnzlk1XvdvUeBnXmlld"
    ELLI = "MF3mGyEYCl7XYWbV9V6O"
    CHARLOTTE = "XB0fDUnXU5powFXDhCwa"
    ALICE = "Xb7hH8MSUJpSbSDYk0k2"
    MATILDA = "XrExE9yKIg1WjnnlVkGX"
    LILY = "pFZP5JQG7iQjIQuC4Bku"
    GRACE = "oWAxZDx7w5VEj9dCyTzz"
    ARIA = "9BWtsMINqrJLrRacOk9x"
    JOSH = "TxGEqnHWrfWFTfGW9XjX"
    ADAM = "pNInz6obpgDQGcFmaJgB"
    BILL = "pqHfZKP75CvOlQylNhV4"
    GEORGE = "JBFqnCBsd6RMkjVDRZzb"
    CALLUM = "N2lVS1w4EtoT3dr4eOWO"
    CHARLIE = "IKne3meq5aSn9XLyUdCD"
    DANIEL = "onwK4e9ZLuTAKqWW03F9"

    @property
    def display_name(self) -> str:
        return self.name.title()

    @property
    def description(self) -> str:
        return _VOICE_DESCRIPTIONS[self]

    @property
    def is_female(self) -> bool:
        return self in _FEMALE_VOICES


_VOICE_DESCRIPTIONS: dict[Voice, str] = {
    Voice.BELLA: "Warm & gentle, like a kind teacher",
    Voice.RACHEL: "Calm & clear, great for instructions",
    Voice.DOMI: "Young & cheerful, playful energy",
    Voice.ELLI: "Bright & expressive, full of wonder",
    Voice.CHARLOTTE: "Warm Swedish accent, soothing",
    Voice.ALICE: "British, confident & encouraging",
    Voice.MATILDA: "Storyteller voice, great for reading",
    Voice.LILY: "Soft British accent, gentle & patient",
    Voice.GRACE: "Southern US charm, warm & comforting",
    Voice.ARIA: "Expressive & engaging, fun personality",
    Voice.JOSH: "Friendly & supportive, like a big brother",
    Voice.ADAM: "Clear & articulate, easy to understand",
    Voice.BILL: "Trustworthy American, calm & steady",
    Voice.GEORGE: "Warm British, like a friendly uncle",
    Voice.CALLUM: "Friendly Scottish accent, cheerful",
    Voice.CHARLIE: "Casual Australian, fun & relaxed",
    Voice.DANIEL: "Deep British voice, calm & reassuring",
}

_FEMALE_VOICES = frozenset({
    Voice.BELLA, Voice.RACHEL, Voice.DOMI, Voice.ELLI, Voice.CHARLOTTE,
    Voice.ALICE, Voice.MATILDA, Voice.LILY, Voice.GRACE, Voice.ARIA,
})


class SpeechModel(StrEnum):
    """Speech models, fastest first."""

    FLASH_V2_5 = "eleven_flash_v2_5"  # ~75ms, best for real-time
    TURBO_V2_5 = "eleven_turbo_v2_5"
    MULTILINGUAL_V2 = "eleven_multilingual_v2"  # highest quality


class VoiceSettings(BaseModel):
    """Tunables sent with every synthesis request.

    ``stability`` trades consistency for expressiveness, ``similarity_boost``
    is fidelity to the reference voice, ``style`` is the exaggeration amount
    and ``speed`` the playback rate. Speed is clamped to [0.7, 1.2] only when
    the payload is built, so any input value is accepted here.
    """

    model_config = ConfigDict(frozen=True)

    stability: float = Field(default=0.8, ge=0.0, le=1.0)
    similarity_boost: float = Field(default=0.75, ge=0.0, le=1.0)
    style: float | None = Field(default=0.0, ge=0.0, le=1.0)
    use_speaker_boost: bool | None = True
    speed: float | None = 1.0

    def to_payload(self) -> dict:
        payload = {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style if self.style is not None else 0.0,
            "use_speaker_boost": (
                self.use_speaker_boost if self.use_speaker_boost is not None else True
            ),
        }
        if self.speed is not None:
            payload["speed"] = clamp_speed(self.speed)
        return payload

    @classmethod
    def child_friendly(cls) -> "VoiceSettings":
        """Calm, clear and slightly slower than normal."""
        return cls(stability=0.80, similarity_boost=0.75, style=0.0, use_speaker_boost=True, speed=0.85)

    @classmethod
    def quick_prompt(cls) -> "VoiceSettings":
        """Very stable settings for short prompts like numbers and letters."""
        return cls(stability=0.85, similarity_boost=0.75, style=0.0, use_speaker_boost=True, speed=0.95)

    @classmethod
    def encouraging(cls) -> "VoiceSettings":
        return cls(stability=0.75, similarity_boost=0.75, style=0.1, use_speaker_boost=True, speed=0.9)


def clamp_speed(speed: float) -> float:
    return max(SPEED_MIN, min(SPEED_MAX, speed))


class VoiceInfo(BaseModel):
    """A voice as listed by the provider."""

    voice_id: str
    name: str
    category: str | None = None
    description: str | None = None
    labels: dict[str, str] | None = None

    @property
    def id(self) -> str:
        return self.voice_id


class VoicesResponse(BaseModel):
    voices: list[VoiceInfo] = Field(default_factory=list)


class ValidationResult(StrEnum):
    """Outcome of checking an API key with a real request."""

    VALID = "valid"
    INVALID = "invalid"
    RATE_LIMITED = "rate_limited"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    NETWORK_ERROR = "network_error"

    @property
    def is_valid(self) -> bool:
        return self == ValidationResult.VALID

    @property
    def user_message(self) -> str | None:
        return _VALIDATION_MESSAGES.get(self)


_VALIDATION_MESSAGES: dict[ValidationResult, str] = {
    ValidationResult.INVALID: "Invalid API key. Please check and try again.",
    ValidationResult.NETWORK_ERROR: "Network error. Please check your connection.",
    ValidationResult.RATE_LIMITED: "Too many requests. Please wait a moment.",
    ValidationResult.INSUFFICIENT_CREDITS: "Insufficient ElevenLabs credits.",
}
