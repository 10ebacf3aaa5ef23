"""Navigation targets."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, model_validator

from sproutling.models.profile import MAX_STARS, Subject, has_level


class ScreenKind(StrEnum):
    """Screens the app can show."""

    HOME = "home"
    PROGRESS = "progress"
    SETTINGS = "settings"
    PROFILE_SELECTION = "profile_selection"
    PROFILE_MANAGEMENT = "profile_management"
    SUBJECT_SELECTION = "subject_selection"
    LESSON = "lesson"
    LESSON_COMPLETE = "lesson_complete"
    READY_CHECK = "ready_check"
    TIME_FOR_BREAK = "time_for_break"


# Screens that need a subject, a catalog level, or a star count
SUBJECT_SCREENS = frozenset({
    ScreenKind.SUBJECT_SELECTION, ScreenKind.LESSON, ScreenKind.LESSON_COMPLETE, ScreenKind.READY_CHECK,
})
LEVEL_SCREENS = frozenset({ScreenKind.LESSON, ScreenKind.READY_CHECK})

# Screens behind the parent PIN
SETTINGS_AREA = frozenset({ScreenKind.SETTINGS, ScreenKind.PROFILE_MANAGEMENT})


class Screen(BaseModel):
    """A navigation target plus the data it carries."""

    model_config = ConfigDict(frozen=True)

    kind: ScreenKind
    subject: Subject | None = None
    level: int | None = None
    stars: int | None = None

    @model_validator(mode="after")
    def _carries_required_data(self) -> "Screen":
        if self.kind in SUBJECT_SCREENS and self.subject is None:
            raise ValueError(f"{self.kind.value} screen needs a subject")
        if self.kind in LEVEL_SCREENS:
            if self.level is None or not has_level(self.subject, self.level):
                raise ValueError(f"{self.kind.value} screen needs a level from the {self.subject.value} catalog")
        if self.kind == ScreenKind.LESSON_COMPLETE:
            if self.stars is None or not 0 <= self.stars <= MAX_STARS:
                raise ValueError(f"lesson_complete screen needs 0-{MAX_STARS} stars")
        return self

    @classmethod
    def home(cls) -> "Screen":
        return cls(kind=ScreenKind.HOME)

    @classmethod
    def progress(cls) -> "Screen":
        return cls(kind=ScreenKind.PROGRESS)

    @classmethod
    def settings(cls) -> "Screen":
        return cls(kind=ScreenKind.SETTINGS)

    @classmethod
    def profile_selection(cls) -> "Screen":
        return cls(kind=ScreenKind.PROFILE_SELECTION)

    @classmethod
    def profile_management(cls) -> "Screen":
        return cls(kind=ScreenKind.PROFILE_MANAGEMENT)

    @classmethod
    def subject_selection(cls, subject: Subject) -> "Screen":
        return cls(kind=ScreenKind.SUBJECT_SELECTION, subject=subject)

    @classmethod
    def lesson(cls, subject: Subject, level: int) -> "Screen":
        return cls(kind=ScreenKind.LESSON, subject=subject, level=level)

    @classmethod
    def lesson_complete(cls, subject: Subject, stars: int) -> "Screen":
        return cls(kind=ScreenKind.LESSON_COMPLETE, subject=subject, stars=stars)

    @classmethod
    def ready_check(cls, subject: Subject, level: int) -> "Screen":
        return cls(kind=ScreenKind.READY_CHECK, subject=subject, level=level)

    @classmethod
    def time_for_break(cls) -> "Screen":
        return cls(kind=ScreenKind.TIME_FOR_BREAK)

    @property
    def in_settings_area(self) -> bool:
        return self.kind in SETTINGS_AREA
