import os
from typing import Any

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


class ServiceSettings(BaseModel):
    """One pluggable service: the handler name plus its constructor arguments."""

    handler: str
    configuration: dict[str, Any] = {}


class Settings(BaseSettings):
    database_url: str = "sqlite+pysqlite:///run_tracker.db"
    # Raw FIT copies and rendered route images live under here
    data_dir: str = "data"
    # Locations to check for FIT files, e.g. the mount point of the watch
    import_paths: list[str] = []
    log_level: str = "INFO"
    # Timezone for displaying activity local times.
    # Examples: "America/New_York", "Europe/London", or "local" to use system tz.
    timezone: str = "local"
    # Keys: "elevation", "route_visualization"
    services: dict[str, ServiceSettings] = {}

    model_config = SettingsConfigDict(
        env_file=".env",
        yaml_file=os.environ.get("RUN_TRACKER_CONFIG", "config.yml"),
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, v):
        if v in ("", None):
            return "INFO"
        return str(v).upper()

    @field_validator("import_paths", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v

    def service(self, name: str) -> ServiceSettings | None:
        return self.services.get(name)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # env and .env win over the YAML file
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


settings = Settings()
