"""Child profile, subject and level models."""

import uuid
from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_STARS = 3
DEFAULT_PROFILE_NAME = "Little Learner"


class Subject(StrEnum):
    """Curriculum subjects."""

    MATH = "math"
    READING = "reading"
    SHAPES = "shapes"

    @property
    def title(self) -> str:
        return _SUBJECT_TITLES[self][0]

    @property
    def subtitle(self) -> str:
        return _SUBJECT_TITLES[self][1]


_SUBJECT_TITLES: dict[Subject, tuple[str, str]] = {
    Subject.MATH: ("Numbers & Counting", "Count and learn 1-20"),
    Subject.READING: ("Letters & Phonics", "ABCs and phonics"),
    Subject.SHAPES: ("Shapes", "Circles, squares and more"),
}


class Level(BaseModel):
    """A curriculum level as seen by the active profile."""

    model_config = ConfigDict(frozen=True)

    level_id: int
    title: str
    subtitle: str
    is_unlocked: bool = False
    stars_earned: int = Field(default=0, ge=0, le=MAX_STARS)


# (level_id, title, subtitle)
LEVEL_CATALOG: dict[Subject, list[tuple[int, str, str]]] = {
    Subject.MATH: [
        (1, "Numbers 1-3", "Learn to count!"),
        (2, "Numbers 4-5", "Count higher!"),
        (3, "Numbers 6-10", "Count to ten!"),
        (4, "Numbers 11-13", "Teen numbers!"),
        (5, "Numbers 14-17", "Keep counting!"),
        (6, "Numbers 18-20", "Count to twenty!"),
    ],
    Subject.READING: [
        (1, "Letters A-D", "First letters!"),
        (2, "Letters E-H", "More letters!"),
        (3, "Letters I-L", "Keep learning!"),
        (4, "Letters M-P", "Halfway there!"),
        (5, "Letters Q-T", "Almost done!"),
        (6, "Letters U-Z", "Finish the alphabet!"),
    ],
    Subject.SHAPES: [
        (1, "Circles & Squares", "First shapes!"),
        (2, "Triangles", "Three sides!"),
        (3, "Rectangles", "Long and short!"),
        (4, "Stars & Hearts", "Fancy shapes!"),
        (5, "Mixed Shapes", "Tell them apart!"),
        (6, "Shape Hunt", "Find them all!"),
    ],
}


def level_ids(subject: Subject) -> list[int]:
    return [level_id for level_id, _, _ in LEVEL_CATALOG[subject]]


def has_level(subject: Subject, level_id: int) -> bool:
    return level_id in level_ids(subject)


class Profile(BaseModel):
    """A child's independent progress and identity record."""

    model_config = ConfigDict(frozen=True)

    profile_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = DEFAULT_PROFILE_NAME
    avatar_index: int = 0
    background_index: int = 0
    total_stars: int = Field(default=0, ge=0)
    streak_days: int = Field(default=0, ge=0)
    last_session_date: date | None = None
    progress: dict[Subject, dict[int, int]] = Field(default_factory=dict)
    unlocked_levels: dict[Subject, set[int]] = Field(default_factory=dict)
    is_active: bool = False
    sort_order: int = 0

    @field_validator("progress")
    @classmethod
    def _stars_in_range(cls, value: dict[Subject, dict[int, int]]) -> dict[Subject, dict[int, int]]:
        for subject, levels in value.items():
            for level_id, stars in levels.items():
                if not 0 <= stars <= MAX_STARS:
                    raise ValueError(
                        f"stars for {subject} level {level_id} out of range: {stars}"
                    )
        return value

    def stars_for(self, subject: Subject, level_id: int) -> int:
        return self.progress.get(subject, {}).get(level_id, 0)

    def is_unlocked(self, subject: Subject, level_id: int) -> bool:
        first = level_ids(subject)[0]
        return level_id == first or level_id in self.unlocked_levels.get(subject, set())

    def with_streak_updated(self, today: date) -> "Profile":
        """Return a copy with the daily streak advanced for a session today.

        Same day leaves the streak alone, the following day extends it and any
        longer gap (or no previous session) restarts it at one.
        """
        streak = self.streak_days
        if self.last_session_date is None:
            streak = 1
        else:
            days = (today - self.last_session_date).days
            if days == 1:
                streak += 1
            elif days != 0:
                streak = 1
        return self.model_copy(update={"streak_days": streak, "last_session_date": today})


def levels_for(profile: Profile | None, subject: Subject) -> list[Level]:
    """Overlay a profile's stars and unlocks onto the subject's level catalog."""
    levels = []
    for index, (level_id, title, subtitle) in enumerate(LEVEL_CATALOG[subject]):
        if profile is None:
            unlocked, stars = index == 0, 0
        else:
            unlocked = profile.is_unlocked(subject, level_id)
            stars = profile.stars_for(subject, level_id)
        levels.append(
            Level(
                level_id=level_id,
                title=title,
                subtitle=subtitle,
                is_unlocked=unlocked,
                stars_earned=stars,
            )
        )
    return levels
