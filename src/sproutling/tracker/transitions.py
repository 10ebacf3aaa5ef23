"""Pure state transitions for the session/progress tracker.

Every function takes the current ``TrackerState`` and returns a
``Transition``: the next state plus the side effects the owner has to carry
out (persist a record, announce a navigation). Nothing in this module touches
storage, timers or the wall clock; dates and ids are passed in.
"""

from collections.abc import Callable, Iterable
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from sproutling.models.navigation import Screen, ScreenKind
from sproutling.models.profile import (
    DEFAULT_PROFILE_NAME,
    MAX_STARS,
    Profile,
    Subject,
    has_level,
    level_ids,
)
from sproutling.models.settings import DailyUsage, ParentSettings


class PersistProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["persist_profile"] = "persist_profile"
    profile: Profile


class RemoveProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["remove_profile"] = "remove_profile"
    profile_id: str


class PersistSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["persist_settings"] = "persist_settings"
    settings: ParentSettings


class PersistUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["persist_usage"] = "persist_usage"
    usage: DailyUsage


class Navigate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["navigate"] = "navigate"
    screen: Screen


Effect = PersistProfile | RemoveProfile | PersistSettings | PersistUsage | Navigate


class TrackerState(BaseModel):
    """Everything the tracker knows about the running session."""

    model_config = ConfigDict(frozen=True)

    screen: Screen = Field(default_factory=Screen.home)
    profiles: tuple[Profile, ...] = ()
    profiles_loaded: bool = False
    settings: ParentSettings = Field(default_factory=ParentSettings)
    # None until today's counter has been read from the store
    usage: DailyUsage | None = None
    pin_verified: bool = False
    time_limit_reached: bool = False

    @property
    def active_profile(self) -> Profile | None:
        return next((p for p in self.profiles if p.is_active), None)

    @property
    def remaining_time_seconds(self) -> int:
        return max(0, self.settings.limit_seconds - self.usage_seconds)

    @property
    def usage_seconds(self) -> int:
        return self.usage.seconds if self.usage is not None else 0


class Transition(BaseModel):
    """Next state plus the effects needed to reach it."""

    model_config = ConfigDict(frozen=True)

    state: TrackerState
    effects: tuple[Effect, ...] = ()

    def then(self, step: Callable[[TrackerState], "Transition"]) -> "Transition":
        """Chain another transition, concatenating effects in order."""
        following = step(self.state)
        return Transition(state=following.state, effects=self.effects + following.effects)


def _with_profiles(state: TrackerState, profiles: Iterable[Profile]) -> TrackerState:
    return state.model_copy(update={"profiles": tuple(profiles)})


def _replace_profile(state: TrackerState, profile: Profile) -> TrackerState:
    return _with_profiles(
        state,
        (profile if p.profile_id == profile.profile_id else p for p in state.profiles),
    )


def _activate_only(
    profiles: Iterable[Profile], profile_id: str, today: date | None
) -> tuple[list[Profile], list[Effect]]:
    """Mark one profile active and every other inactive.

    The newly active profile gets its streak advanced when ``today`` is given.
    Only records that actually changed are returned as effects.
    """
    updated: list[Profile] = []
    effects: list[Effect] = []
    for profile in profiles:
        if profile.profile_id == profile_id:
            changed = profile.model_copy(update={"is_active": True})
            if today is not None:
                changed = changed.with_streak_updated(today)
        else:
            changed = profile.model_copy(update={"is_active": False})
        if changed != profile:
            effects.append(PersistProfile(profile=changed))
        updated.append(changed)
    return updated, effects


# Navigation

def navigate(state: TrackerState, screen: Screen) -> Transition:
    """Move to ``screen``; leaving the settings area re-locks it."""
    pin_verified = state.pin_verified
    if state.screen.in_settings_area and not screen.in_settings_area:
        pin_verified = False
    new_state = state.model_copy(update={"screen": screen, "pin_verified": pin_verified})
    return Transition(state=new_state, effects=(Navigate(screen=screen),))


# Profiles

def load_profiles(
    state: TrackerState,
    stored: Iterable[Profile],
    today: date,
    new_profile_id: str | None = None,
) -> Transition:
    """Adopt the stored profiles and settle which one is active.

    Args:
        state: Current state.
        stored: Profiles read from the durable store.
        today: Current calendar day, for the streak.
        new_profile_id: Id for the default profile if none exist.
    """
    profiles = sorted(stored, key=lambda p: p.sort_order)
    state = _with_profiles(state, profiles).model_copy(update={"profiles_loaded": True})

    if not profiles:
        return create_profile(
            state,
            name=DEFAULT_PROFILE_NAME,
            avatar_index=0,
            background_index=0,
            make_active=True,
            today=today,
            profile_id=new_profile_id,
        )

    active = next((p for p in profiles if p.is_active), None)
    chosen = active or profiles[0]
    updated, effects = _activate_only(profiles, chosen.profile_id, today)
    transition = Transition(state=_with_profiles(state, updated), effects=tuple(effects))

    if active is None and len(profiles) > 1:
        return transition.then(lambda s: navigate(s, Screen.profile_selection()))
    return transition


def select_profile(state: TrackerState, profile_id: str, today: date) -> Transition:
    if not any(p.profile_id == profile_id for p in state.profiles):
        return Transition(state=state)
    updated, effects = _activate_only(state.profiles, profile_id, today)
    transition = Transition(state=_with_profiles(state, updated), effects=tuple(effects))
    return transition.then(lambda s: navigate(s, Screen.home()))


def create_profile(
    state: TrackerState,
    name: str,
    avatar_index: int,
    background_index: int = 0,
    make_active: bool = False,
    today: date | None = None,
    profile_id: str | None = None,
) -> Transition:
    fields: dict[str, Any] = {
        "name": name,
        "avatar_index": avatar_index,
        "background_index": background_index,
        "is_active": False,
        "sort_order": len(state.profiles),
    }
    if profile_id is not None:
        fields["profile_id"] = profile_id
    profile = Profile(**fields)

    profiles = [*state.profiles, profile]
    if make_active:
        profiles, effects = _activate_only(profiles, profile.profile_id, today)
    else:
        effects = [PersistProfile(profile=profile)]
    return Transition(state=_with_profiles(state, profiles), effects=tuple(effects))


def update_profile(state: TrackerState, profile: Profile) -> Transition:
    """Overwrite a stored profile's fields, keeping its activation and position."""
    existing = next((p for p in state.profiles if p.profile_id == profile.profile_id), None)
    if existing is None:
        return Transition(state=state)
    merged = profile.model_copy(
        update={"is_active": existing.is_active, "sort_order": existing.sort_order}
    )
    return Transition(
        state=_replace_profile(state, merged),
        effects=(PersistProfile(profile=merged),),
    )


def delete_profile(state: TrackerState, profile_id: str) -> Transition:
    """Remove a profile; the last remaining profile can never be deleted."""
    target = next((p for p in state.profiles if p.profile_id == profile_id), None)
    if target is None or len(state.profiles) <= 1:
        return Transition(state=state)

    remaining = [p for p in state.profiles if p.profile_id != profile_id]
    effects: list[Effect] = [RemoveProfile(profile_id=profile_id)]
    if target.is_active:
        promoted = remaining[0].model_copy(update={"is_active": True})
        remaining[0] = promoted
        effects.append(PersistProfile(profile=promoted))
    return Transition(state=_with_profiles(state, remaining), effects=tuple(effects))


def reorder_profiles(
    state: TrackerState, from_indices: Iterable[int], to_index: int
) -> Transition:
    """Move the profiles at ``from_indices`` so they land before ``to_index``.

    ``to_index`` refers to positions in the list before the move, matching
    the usual drag-and-drop "move offsets" convention.
    """
    profiles = list(state.profiles)
    moving_indices = sorted(set(from_indices))
    count = len(profiles)
    if any(not 0 <= i < count for i in moving_indices):
        raise ValueError(f"profile index out of range: {moving_indices}")
    if not 0 <= to_index <= count:
        raise ValueError(f"destination out of range: {to_index}")

    moving = [profiles[i] for i in moving_indices]
    staying = [p for i, p in enumerate(profiles) if i not in moving_indices]
    insert_at = to_index - sum(1 for i in moving_indices if i < to_index)
    staying[insert_at:insert_at] = moving

    reordered: list[Profile] = []
    effects: list[Effect] = []
    for position, profile in enumerate(staying):
        if profile.sort_order != position:
            profile = profile.model_copy(update={"sort_order": position})
            effects.append(PersistProfile(profile=profile))
        reordered.append(profile)
    return Transition(state=_with_profiles(state, reordered), effects=tuple(effects))


# Progress

def _check_lesson_args(subject: Subject, level: int) -> None:
    if not has_level(subject, level):
        raise ValueError(f"unknown level {level} for subject {subject}")


def _unlock_after(profile: Profile, subject: Subject, level: int) -> Profile:
    ids = level_ids(subject)
    position = ids.index(level)
    if position + 1 >= len(ids):
        return profile
    next_level = ids[position + 1]
    if profile.is_unlocked(subject, next_level):
        return profile
    unlocked = {s: set(levels) for s, levels in profile.unlocked_levels.items()}
    unlocked.setdefault(subject, set()).add(next_level)
    return profile.model_copy(update={"unlocked_levels": unlocked})


def complete_lesson(state: TrackerState, subject: Subject, level: int, stars: int) -> Transition:
    """Record a finished lesson for the active profile.

    Stored stars only ever go up, any star unlocks the next level, and the
    navigation moves to the lesson-complete screen.
    """
    if not 0 <= stars <= MAX_STARS:
        raise ValueError(f"stars must be between 0 and {MAX_STARS}, got {stars}")
    _check_lesson_args(subject, level)
    profile = state.active_profile
    if profile is None:
        return Transition(state=state)

    progress = {s: dict(levels) for s, levels in profile.progress.items()}
    subject_progress = progress.setdefault(subject, {})
    subject_progress[level] = max(subject_progress.get(level, 0), stars)
    updated = profile.model_copy(
        update={"total_stars": profile.total_stars + stars, "progress": progress}
    )
    if stars >= 1:
        updated = _unlock_after(updated, subject, level)

    transition = Transition(
        state=_replace_profile(state, updated),
        effects=(PersistProfile(profile=updated),),
    )
    return transition.then(lambda s: navigate(s, Screen.lesson_complete(subject, stars)))


def unlock_next_level(state: TrackerState, subject: Subject, level: int) -> Transition:
    _check_lesson_args(subject, level)
    profile = state.active_profile
    if profile is None:
        return Transition(state=state)
    updated = _unlock_after(profile, subject, level)
    if updated == profile:
        return Transition(state=state)
    return Transition(
        state=_replace_profile(state, updated),
        effects=(PersistProfile(profile=updated),),
    )


# Settings and PIN

def adopt_settings(state: TrackerState, settings: ParentSettings | None) -> Transition:
    """Take the stored settings, or persist defaults if there are none."""
    if settings is None:
        settings = ParentSettings()
        return Transition(
            state=state.model_copy(update={"settings": settings}),
            effects=(PersistSettings(settings=settings),),
        )
    return Transition(state=state.model_copy(update={"settings": settings}))


def update_settings(state: TrackerState, **changes: Any) -> Transition:
    """Apply validated settings changes and re-check the time limit.

    Raises:
        ValueError: If a change fails validation (e.g. a disallowed limit).
    """
    settings = ParentSettings.model_validate({**state.settings.model_dump(), **changes})
    transition = Transition(
        state=state.model_copy(update={"settings": settings}),
        effects=(PersistSettings(settings=settings),),
    )
    return transition.then(check_time_limit)


def set_time_limit(state: TrackerState, enabled: bool, minutes: int | None = None) -> Transition:
    changes: dict[str, Any] = {"time_limit_enabled": enabled}
    if minutes is not None:
        changes["daily_time_limit_minutes"] = minutes
    return update_settings(state, **changes)


def pin_set(state: TrackerState) -> Transition:
    return update_settings(state, require_pin=True).then(
        lambda s: Transition(state=s.model_copy(update={"pin_verified": True}))
    )


def pin_cleared(state: TrackerState) -> Transition:
    return update_settings(state, require_pin=False).then(lock_settings)


def pin_verified(state: TrackerState) -> Transition:
    return Transition(state=state.model_copy(update={"pin_verified": True}))


def lock_settings(state: TrackerState) -> Transition:
    return Transition(state=state.model_copy(update={"pin_verified": False}))


# Daily usage and time limit

def check_time_limit(state: TrackerState) -> Transition:
    """Fire the break navigation on the rising edge of the daily limit.

    The break screen is shown only when the limit is newly reached and the
    parent is not on the settings screen.
    """
    if not state.settings.time_limit_enabled:
        return Transition(state=state.model_copy(update={"time_limit_reached": False}))

    reached = state.usage is not None and state.usage.seconds >= state.settings.limit_seconds
    was_reached = state.time_limit_reached
    new_state = state.model_copy(update={"time_limit_reached": reached})
    if reached and not was_reached and state.screen.kind != ScreenKind.SETTINGS:
        return navigate(new_state, Screen.time_for_break())
    return Transition(state=new_state)


def load_usage(
    state: TrackerState, stored_day: str | None, stored_seconds: int | None, today: date
) -> Transition:
    today_key = today.isoformat()
    if stored_day == today_key:
        usage = DailyUsage(day=today_key, seconds=max(0, int(stored_seconds or 0)))
        transition = Transition(state=state.model_copy(update={"usage": usage}))
    else:
        usage = DailyUsage(day=today_key, seconds=0)
        transition = Transition(
            state=state.model_copy(update={"usage": usage, "time_limit_reached": False}),
            effects=(PersistUsage(usage=usage),),
        )
    return transition.then(check_time_limit)


def tick(state: TrackerState, today: date, flush_every: int) -> Transition:
    """Count one second of use, flushing every ``flush_every`` seconds.

    Crossing midnight starts a fresh counter for the new day. A tick before
    the counter has been loaded is ignored.
    """
    if state.usage is None:
        return Transition(state=state)
    today_key = today.isoformat()
    updates: dict[str, Any] = {}
    if state.usage.day != today_key:
        usage = DailyUsage(day=today_key, seconds=1)
        updates["time_limit_reached"] = False
        flush = True
    else:
        usage = DailyUsage(day=today_key, seconds=state.usage.seconds + 1)
        flush = usage.seconds % flush_every == 0
    updates["usage"] = usage

    effects = (PersistUsage(usage=usage),) if flush else ()
    transition = Transition(state=state.model_copy(update=updates), effects=effects)
    return transition.then(check_time_limit)


def flush_usage(state: TrackerState) -> Transition:
    """Persist the counter; nothing is written if it was never loaded."""
    if state.usage is None:
        return Transition(state=state)
    return Transition(state=state, effects=(PersistUsage(usage=state.usage),))


def reset_daily_usage(state: TrackerState, today: date) -> Transition:
    usage = DailyUsage(day=today.isoformat(), seconds=0)
    return Transition(
        state=state.model_copy(update={"usage": usage, "time_limit_reached": False}),
        effects=(PersistUsage(usage=usage),),
    )
