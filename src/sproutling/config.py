"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if "server" in data:
            flattened["host"] = data["server"].get("host")
            flattened["port"] = data["server"].get("port")
        if "tracking" in data:
            tracking = data["tracking"]
            flattened["tick_interval_seconds"] = tracking.get("tick_interval_seconds")
            flattened["usage_flush_interval_ticks"] = (
                tracking.get("usage_flush_interval_ticks")
            )
        if "security" in data:
            flattened["credential_service"] = data["security"].get("credential_service")
            flattened["pin_hash_rounds"] = data["security"].get("pin_hash_rounds")
        if "elevenlabs" in data:
            elevenlabs = data["elevenlabs"]
            flattened["elevenlabs_base_url"] = elevenlabs.get("base_url")
            flattened["elevenlabs_timeout_seconds"] = elevenlabs.get("timeout_seconds")
            flattened["default_voice"] = elevenlabs.get("default_voice")
            flattened["default_model"] = elevenlabs.get("default_model")

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    # Authentication (optional: None disables auth)
    app_secret: str | None = Field(default=None)

    # Usage tracking
    tick_interval_seconds: float = Field(default=1.0, gt=0)
    usage_flush_interval_ticks: int = Field(default=10, ge=1)

    # Secure storage
    credential_service: str = Field(default="com.sproutling.app")
    pin_hash_rounds: int = Field(default=12, ge=4, le=31)

    # ElevenLabs text-to-speech
    elevenlabs_base_url: str = Field(default="https://api.elevenlabs.io/v1")
    elevenlabs_timeout_seconds: float = Field(default=30.0)
    default_voice: str = Field(default="EXAVITQu4vr4xnSDxMaL")
    default_model: str = Field(default="eleven_flash_v2_5")

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)
    data_dir: Path | None = Field(default=None)

    @property
    def resolved_data_dir(self) -> Path:
        d = self.data_dir or self.project_root / "data"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def records_dir(self) -> Path:
        d = self.resolved_data_dir / "records"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def usage_path(self) -> Path:
        return self.resolved_data_dir / "usage.json"

    @property
    def credentials_path(self) -> Path:
        return self.resolved_data_dir / "credentials.json"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
