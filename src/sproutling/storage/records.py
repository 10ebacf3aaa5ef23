"""Durable store for profiles and parent settings."""

from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from sproutling.models.profile import Profile
from sproutling.models.settings import ParentSettings
from sproutling.storage.errors import StorageError
from sproutling.storage.json_file import read_json, update_json

PROFILES_FILENAME = "profiles.json"
SETTINGS_FILENAME = "settings.json"


class RecordStore(Protocol):
    """Create/read/update/delete of Profile and ParentSettings records."""

    def list_profiles(self) -> list[Profile]: ...

    def save_profile(self, profile: Profile) -> None: ...

    def delete_profile(self, profile_id: str) -> None: ...

    def load_settings(self) -> ParentSettings | None: ...

    def save_settings(self, settings: ParentSettings) -> None: ...


class InMemoryRecordStore:
    """Record store kept in process memory."""

    def __init__(self, profiles: list[Profile] | None = None):
        self._profiles: dict[str, Profile] = {p.profile_id: p for p in profiles or []}
        self._settings: ParentSettings | None = None

    def list_profiles(self) -> list[Profile]:
        return sorted(self._profiles.values(), key=lambda p: p.sort_order)

    def save_profile(self, profile: Profile) -> None:
        self._profiles[profile.profile_id] = profile

    def delete_profile(self, profile_id: str) -> None:
        self._profiles.pop(profile_id, None)

    def load_settings(self) -> ParentSettings | None:
        return self._settings

    def save_settings(self, settings: ParentSettings) -> None:
        self._settings = settings


class JsonRecordStore:
    """Record store persisted as JSON documents in a directory.

    Args:
        directory: Directory holding profiles.json and settings.json.
    """

    def __init__(self, directory: Path):
        self.directory = directory

    @property
    def profiles_path(self) -> Path:
        return self.directory / PROFILES_FILENAME

    @property
    def settings_path(self) -> Path:
        return self.directory / SETTINGS_FILENAME

    def list_profiles(self) -> list[Profile]:
        data = read_json(self.profiles_path, {"profiles": {}})
        try:
            profiles = [Profile(**record) for record in data["profiles"].values()]
        except (ValidationError, KeyError, TypeError, AttributeError) as e:
            raise StorageError(f"Unreadable profile records: {e}", str(self.profiles_path)) from e
        return sorted(profiles, key=lambda p: p.sort_order)

    def save_profile(self, profile: Profile) -> None:
        record = profile.model_dump(mode="json")

        def _put(data: dict) -> dict:
            data["profiles"][profile.profile_id] = record
            return data

        update_json(self.profiles_path, {"profiles": {}}, _put)

    def delete_profile(self, profile_id: str) -> None:
        def _remove(data: dict) -> dict:
            data["profiles"].pop(profile_id, None)
            return data

        update_json(self.profiles_path, {"profiles": {}}, _remove)

    def load_settings(self) -> ParentSettings | None:
        data = read_json(self.settings_path, None)
        if data is None:
            return None
        try:
            return ParentSettings(**data)
        except (ValidationError, TypeError) as e:
            raise StorageError(f"Unreadable settings record: {e}", str(self.settings_path)) from e

    def save_settings(self, settings: ParentSettings) -> None:
        update_json(self.settings_path, None, lambda _: settings.model_dump(mode="json"))
