"""Configuration management for ratify."""

import os
from pathlib import Path
from typing import Optional, Tuple, Type

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from ratify.algorithms import DigestAlgorithm

CONFIG_FILE_NAME = "ratify.toml"


def config_file_path() -> Path:
    """User configuration file, ``~/.config/ratify.toml``."""
    return Path.home() / ".config" / CONFIG_FILE_NAME


def default_worker_pool_size() -> int:
    return (os.cpu_count() or 1) * 2


class RatifyConfig(BaseSettings):
    """Settings for a ratify run.

    Sources, highest priority first: constructor arguments, ``RATIFY_*``
    environment variables, ``~/.config/ratify.toml``, field defaults.
    """

    default_sign_algo: Optional[DigestAlgorithm] = Field(
        default=None,
        description="Algorithm used by sign when none is given on the command line",
    )
    catalog_file: Optional[Path] = Field(
        default=None,
        description="Catalog file to use instead of <root>/<root-name>.<algo>",
    )
    worker_pool_size: int = Field(
        default_factory=default_worker_pool_size,
        ge=1,
        description="Maximum number of files hashed at the same time",
    )
    follow_symlinks: bool = Field(
        default=False,
        description="Descend into symlinked directories and hash symlinked files",
    )
    include_hidden: bool = Field(
        default=False,
        description="Include dot files and dot directories",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATIFY_",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # resolved per instance so a changed HOME is picked up
        toml_settings = TomlConfigSettingsSource(settings_cls, toml_file=config_file_path())
        return init_settings, env_settings, toml_settings


def get_config(**overrides) -> RatifyConfig:
    """Build a fresh configuration. None values in ``overrides`` are ignored."""
    return RatifyConfig(**{k: v for k, v in overrides.items() if v is not None})
