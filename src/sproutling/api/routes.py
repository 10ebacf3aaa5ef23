"""REST API routes over the session tracker and the speech client.

Handlers are ``async def`` so every tracker mutation runs on the event loop,
the same thread as the usage ticker.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from sproutling.models.navigation import Screen
from sproutling.models.profile import MAX_STARS, Profile, Subject
from sproutling.speech.client import SpeechClient
from sproutling.speech.errors import (
    InsufficientCreditsError,
    NoAPIKeyError,
    RateLimitedError,
    SpeechError,
    UnauthorizedError,
)
from sproutling.speech.voices import SpeechModel, VoiceSettings
from sproutling.storage.errors import StorageError
from sproutling.tracker.pin import is_valid_pin
from sproutling.tracker.session import SessionTracker

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


def get_tracker(request: Request) -> SessionTracker:
    return request.app.state.tracker


def get_speech(request: Request) -> SpeechClient:
    return request.app.state.speech


def require_parent(tracker: SessionTracker = Depends(get_tracker)) -> SessionTracker:
    """Gate parent-only routes behind the PIN when one is required."""
    if tracker.requires_pin and not tracker.is_pin_verified:
        raise HTTPException(status_code=403, detail="Parent PIN required")
    return tracker


# Request bodies

class ProfileCreate(BaseModel):
    name: str = Field(min_length=1, max_length=40)
    avatar_index: int = Field(default=0, ge=0)
    background_index: int = Field(default=0, ge=0)
    make_active: bool = False


class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=40)
    avatar_index: int | None = Field(default=None, ge=0)
    background_index: int | None = Field(default=None, ge=0)


class ReorderRequest(BaseModel):
    from_indices: list[int]
    to_index: int


class LessonRef(BaseModel):
    subject: Subject
    level: int


class LessonResult(LessonRef):
    stars: int = Field(ge=0, le=MAX_STARS)


class PinRequest(BaseModel):
    pin: str


class TimeLimitRequest(BaseModel):
    enabled: bool
    minutes: int | None = None


class SettingsUpdate(BaseModel):
    sound_enabled: bool | None = None
    haptics_enabled: bool | None = None


class SpeechRequest(BaseModel):
    text: str = Field(min_length=1, max_length=1000)
    voice: str | None = None
    model: SpeechModel | None = None
    settings: VoiceSettings | None = None


class ApiKeyRequest(BaseModel):
    api_key: str = Field(min_length=1)


# Helpers

def _profile_payload(profile: Profile | None) -> dict | None:
    if profile is None:
        return None
    return profile.model_dump(mode="json")


def _state_payload(tracker: SessionTracker) -> dict:
    return {
        "screen": tracker.screen.model_dump(mode="json"),
        "current_profile": _profile_payload(tracker.current_profile),
        "profiles": [_profile_payload(p) for p in tracker.profiles],
        "settings": tracker.settings.model_dump(mode="json"),
        "usage": {
            "today_seconds": tracker.today_usage_seconds,
            "remaining_seconds": tracker.remaining_time_seconds,
            "remaining_formatted": tracker.remaining_time_formatted,
            "time_limit_reached": tracker.is_time_limit_reached,
            "tracking": tracker.is_tracking,
        },
        "pin": {
            "has_pin": tracker.has_pin(),
            "required": tracker.requires_pin,
            "verified": tracker.is_pin_verified,
        },
        "sync": {
            **tracker.sync_status.model_dump(mode="json"),
            "description": tracker.sync_status.description,
        },
    }


def _find_profile(tracker: SessionTracker, profile_id: str) -> Profile:
    for profile in tracker.profiles:
        if profile.profile_id == profile_id:
            return profile
    raise HTTPException(status_code=404, detail="Profile not found")


def _speech_http_error(error: SpeechError) -> HTTPException:
    logger.warning(
        "speech_request_failed",
        error_type=type(error).__name__,
        status_code=error.status_code,
    )
    if isinstance(error, NoAPIKeyError):
        return HTTPException(status_code=503, detail=error.message)
    if isinstance(error, UnauthorizedError):
        return HTTPException(status_code=401, detail=error.message)
    if isinstance(error, InsufficientCreditsError):
        return HTTPException(status_code=402, detail=error.message)
    if isinstance(error, RateLimitedError):
        return HTTPException(status_code=429, detail=error.message)
    return HTTPException(status_code=502, detail=error.message)


# Health and state

@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/state")
async def get_state(tracker: SessionTracker = Depends(get_tracker)) -> dict:
    return _state_payload(tracker)


# Profiles

@router.get("/profiles")
async def list_profiles(tracker: SessionTracker = Depends(get_tracker)) -> list[dict]:
    return [_profile_payload(p) for p in tracker.profiles]


@router.post("/profiles", status_code=201)
async def create_profile(
    body: ProfileCreate, tracker: SessionTracker = Depends(require_parent)
) -> dict:
    profile = tracker.create_profile(
        name=body.name,
        avatar_index=body.avatar_index,
        background_index=body.background_index,
        make_active=body.make_active,
    )
    return _profile_payload(profile)


@router.put("/profiles/{profile_id}")
async def update_profile(
    profile_id: str, body: ProfileUpdate, tracker: SessionTracker = Depends(require_parent)
) -> dict:
    existing = _find_profile(tracker, profile_id)
    changes = body.model_dump(exclude_none=True)
    tracker.update_profile(existing.model_copy(update=changes))
    return _profile_payload(_find_profile(tracker, profile_id))


@router.delete("/profiles/{profile_id}")
async def delete_profile(
    profile_id: str, tracker: SessionTracker = Depends(require_parent)
) -> dict:
    _find_profile(tracker, profile_id)
    if not tracker.delete_profile(profile_id):
        raise HTTPException(status_code=409, detail="Cannot delete the last profile")
    return {"deleted": profile_id}


@router.post("/profiles/{profile_id}/select")
async def select_profile(profile_id: str, tracker: SessionTracker = Depends(get_tracker)) -> dict:
    _find_profile(tracker, profile_id)
    tracker.select_profile(profile_id)
    return _state_payload(tracker)


@router.post("/profiles/reorder")
async def reorder_profiles(
    body: ReorderRequest, tracker: SessionTracker = Depends(require_parent)
) -> list[dict]:
    try:
        tracker.reorder_profiles(body.from_indices, body.to_index)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_profile_payload(p) for p in tracker.profiles]


# Lessons and navigation

@router.get("/subjects/{subject}/levels")
async def get_levels(subject: Subject, tracker: SessionTracker = Depends(get_tracker)) -> list[dict]:
    return [level.model_dump() for level in tracker.levels(subject)]


@router.post("/lessons/start")
async def start_lesson(body: LessonRef, tracker: SessionTracker = Depends(get_tracker)) -> dict:
    try:
        tracker.start_lesson(body.subject, body.level)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return tracker.screen.model_dump(mode="json")


@router.post("/lessons/complete")
async def complete_lesson(
    body: LessonResult, tracker: SessionTracker = Depends(get_tracker)
) -> dict:
    try:
        tracker.complete_lesson(body.subject, body.level, body.stars)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state_payload(tracker)


@router.post("/lessons/ready-check/pass")
async def pass_ready_check(body: LessonRef, tracker: SessionTracker = Depends(get_tracker)) -> list[dict]:
    try:
        tracker.unlock_next_level(body.subject, body.level)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [level.model_dump() for level in tracker.levels(body.subject)]


@router.post("/navigate")
async def navigate(screen: Screen, tracker: SessionTracker = Depends(get_tracker)) -> dict:
    tracker.navigate_to(screen)
    return tracker.screen.model_dump(mode="json")


# Parent PIN

@router.post("/pin")
async def set_pin(body: PinRequest, tracker: SessionTracker = Depends(require_parent)) -> dict:
    if not is_valid_pin(body.pin):
        raise HTTPException(status_code=400, detail="PIN must be 4 digits")
    if not tracker.set_pin(body.pin):
        raise HTTPException(status_code=503, detail="PIN could not be stored")
    return {"required": tracker.requires_pin}


@router.post("/pin/verify")
async def verify_pin(body: PinRequest, tracker: SessionTracker = Depends(get_tracker)) -> dict:
    return {"verified": tracker.verify_pin(body.pin)}


@router.delete("/pin")
async def clear_pin(tracker: SessionTracker = Depends(require_parent)) -> dict:
    tracker.clear_pin()
    return {"required": tracker.requires_pin}


@router.post("/pin/lock")
async def lock_settings(tracker: SessionTracker = Depends(get_tracker)) -> dict:
    tracker.lock_settings()
    return {"verified": tracker.is_pin_verified}


# Settings and usage

@router.put("/settings/time-limit")
async def set_time_limit(
    body: TimeLimitRequest, tracker: SessionTracker = Depends(require_parent)
) -> dict:
    try:
        tracker.set_time_limit(body.enabled, body.minutes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return tracker.settings.model_dump(mode="json")


@router.put("/settings")
async def update_settings(
    body: SettingsUpdate, tracker: SessionTracker = Depends(require_parent)
) -> dict:
    tracker.update_settings(
        sound_enabled=body.sound_enabled, haptics_enabled=body.haptics_enabled
    )
    return tracker.settings.model_dump(mode="json")


@router.post("/usage/reset")
async def reset_usage(tracker: SessionTracker = Depends(require_parent)) -> dict:
    tracker.reset_daily_usage()
    return _state_payload(tracker)["usage"]


# Speech

@router.post("/speech")
async def synthesize(body: SpeechRequest, speech: SpeechClient = Depends(get_speech)) -> Response:
    try:
        audio = await speech.generate_speech(
            body.text, voice=body.voice, model=body.model, settings=body.settings
        )
    except SpeechError as e:
        raise _speech_http_error(e) from e
    return Response(content=audio, media_type="audio/mpeg")


@router.get("/speech/voices")
async def list_voices(speech: SpeechClient = Depends(get_speech)) -> list[dict]:
    try:
        voices = await speech.fetch_voices()
    except SpeechError as e:
        raise _speech_http_error(e) from e
    return [v.model_dump() for v in voices]


@router.post("/speech/validate")
async def validate_key(speech: SpeechClient = Depends(get_speech)) -> dict:
    result = await speech.validate_api_key()
    return {"result": result.value, "valid": result.is_valid, "message": result.user_message}


@router.put("/speech/key", dependencies=[Depends(require_parent)])
async def save_key(body: ApiKeyRequest, speech: SpeechClient = Depends(get_speech)) -> dict:
    try:
        speech.save_api_key(body.api_key)
    except (StorageError, OSError) as e:
        logger.warning("speech_key_store_failed", error=str(e))
        raise HTTPException(status_code=503, detail="API key could not be stored")
    return {"configured": speech.has_api_key()}


@router.delete("/speech/key", dependencies=[Depends(require_parent)])
async def delete_key(speech: SpeechClient = Depends(get_speech)) -> dict:
    speech.delete_api_key()
    return {"configured": speech.has_api_key()}
