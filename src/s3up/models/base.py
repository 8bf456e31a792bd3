from collections.abc import Iterable
from os import PathLike
from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ..exceptions import ConfigurationError
from ..utils.config import read_and_merge_config_files


class StrictBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        use_enum_values=True,
    )


class IgnoringBaseSettings(BaseSettings):
    """
    Settings read from YAML config files and ``S3UP_*`` environment variables.

    Environment variables take precedence over values from config files,
    nested keys are separated by ``__`` (e.g. ``S3UP_S3__BUCKET``).
    """

    model_config = SettingsConfigDict(
        env_prefix="s3up_",
        env_nested_delimiter="__",
        extra="ignore",
        validate_assignment=True,
        use_enum_values=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_path(cls, config_files: str | PathLike | Iterable[str | PathLike] | None) -> Self:
        """
        Load settings from one or more YAML files merged in order.

        :param config_files: a single path, several paths or ``None`` for environment only
        :raises ConfigurationError: if the merged configuration is invalid or incomplete
        """
        if config_files is None:
            paths: list[Path] = []
        elif isinstance(config_files, str | PathLike):
            paths = [Path(config_files)]
        else:
            paths = [Path(p) for p in config_files]

        try:
            data = read_and_merge_config_files(paths)
        except RuntimeError as e:
            raise ConfigurationError(str(e)) from e

        try:
            return cls(**data)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid or incomplete configuration: {errors}") from e
