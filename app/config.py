import os

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from app.models import LimitConfig, PathConfig, ServerConfig, UpstreamConfig

CONFIG_ENV_VAR = "SUBGATE_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SUBGATE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    upstream: UpstreamConfig
    path: PathConfig = Field(default_factory=PathConfig)
    limit: LimitConfig = Field(default_factory=LimitConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over the YAML file; a missing file is skipped
        yaml_file = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )


settings = Settings()
